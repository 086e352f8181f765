"""Order Builder — turns a cart into a committed, priced order.

Flow:
    1. Validate the request (non-empty cart, line quantities, address)
    2. Read every product; missing or inactive products fail before any
       stock is touched
    3. Reserve each line in ascending product-id order
    4. Price the snapshot
    5. Issue an order number
    6. Dispatch CreateOrder, which persists the order as pending/pending

Any failure in steps 3-6 releases every reservation granted in this attempt
before the error propagates, so a failed checkout leaves stock exactly as it
found it and writes no order.
"""

import json
from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from inventory.catalogue import Catalogue
from inventory.ledger import InventoryLedger, Reservation
from ordering.numbering.authority import OrderNumberAuthority
from ordering.order.creation import CreateOrder
from ordering.order.order import Order, PaymentMethod
from ordering.order.pricing import line_total, price_lines
from ordering.settings import setting
from shared.errors import (
    EmptyCart,
    IncompleteAddress,
    InsufficientStock,
    PersistenceError,
    ProductUnavailable,
)

logger = structlog.get_logger(__name__)

REQUIRED_ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")
OPTIONAL_ADDRESS_FIELDS = ("first_name", "last_name", "company", "phone")
MAX_NOTES_LENGTH = 500


@dataclass(frozen=True)
class _PricedLine:
    product_id: str
    name: str
    unit_price: float
    quantity: int
    image: str


def _quantity_of(line):
    return line["quantity"] if isinstance(line, dict) else line.quantity


def _product_of(line):
    return str(line["product_id"] if isinstance(line, dict) else line.product_id)


def _clean_address(address):
    """Keep known address fields; return the cleaned dict and any missing required ones."""
    address = address or {}
    if not isinstance(address, dict):
        address = address.to_dict() if hasattr(address, "to_dict") else dict(address)

    cleaned = {}
    for key in REQUIRED_ADDRESS_FIELDS + OPTIONAL_ADDRESS_FIELDS:
        value = address.get(key)
        if isinstance(value, str):
            value = value.strip()
        if value:
            cleaned[key] = value

    missing = [key for key in REQUIRED_ADDRESS_FIELDS if key not in cleaned]
    return cleaned, missing


class OrderBuilder:
    def __init__(
        self,
        catalogue: Catalogue | None = None,
        ledger: InventoryLedger | None = None,
        numbering: OrderNumberAuthority | None = None,
    ) -> None:
        self.catalogue = catalogue or Catalogue()
        self.ledger = ledger or InventoryLedger()
        self.numbering = numbering or OrderNumberAuthority()

    def build_order(
        self,
        customer_id,
        cart_lines,
        shipping_address,
        billing_address=None,
        payment_method=None,
        customer_notes=None,
    ) -> Order:
        """Validate, reserve, price, number and persist one order.

        Args:
            customer_id: The customer placing the order.
            cart_lines: Iterable of ``CartLine`` or dicts with product_id and quantity.
            shipping_address: Dict with street, city, state, zip_code, country
                              and optionally first_name, last_name, company, phone.
            billing_address: Same shape; defaults to the shipping address.
            payment_method: One of ``PaymentMethod``'s values, or None.
            customer_notes: Free text shown to staff, up to 500 characters.
        """
        quantities = self._validate_lines(cart_lines)

        shipping, missing = _clean_address(shipping_address)
        if missing:
            raise IncompleteAddress(missing)

        billing = None
        if billing_address:
            billing, missing_billing = _clean_address(billing_address)
            if missing_billing:
                raise ValidationError(
                    {"billing_address": [f"Billing address is incomplete; missing: {', '.join(missing_billing)}"]}
                )

        if payment_method is not None and payment_method not in {method.value for method in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unsupported payment method '{payment_method}'"]})
        if customer_notes and len(customer_notes) > MAX_NOTES_LENGTH:
            raise ValidationError({"customer_notes": [f"Notes cannot exceed {MAX_NOTES_LENGTH} characters"]})

        priced = self._snapshot_products(quantities)
        reservations = self._reserve_all(priced)

        try:
            lines = [
                {
                    "product_id": line.product_id,
                    "name": line.name,
                    "unit_price": line.unit_price,
                    "quantity": line.quantity,
                    "line_total": float(line_total(line.unit_price, line.quantity)),
                    "image": line.image,
                }
                for line in priced
            ]
            breakdown = price_lines(line["line_total"] for line in lines)
            order_number = self.numbering.generate()

            pricing = breakdown.as_dict()
            order_id = current_domain.process(
                CreateOrder(
                    order_number=order_number,
                    customer_id=str(customer_id),
                    items=json.dumps(lines),
                    shipping_address=json.dumps(shipping),
                    billing_address=json.dumps(billing) if billing else None,
                    payment_method=payment_method,
                    customer_notes=customer_notes,
                    **pricing,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            logger.error(
                "Order persistence failed, releasing reservations",
                customer_id=str(customer_id),
                reservations=len(reservations),
                error=str(exc),
            )
            self._release_all(reservations)
            if isinstance(exc, PersistenceError):
                raise
            raise PersistenceError("Order could not be saved") from exc

        order = current_domain.repository_for(Order).get(order_id)
        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(customer_id),
            total_amount=order.pricing.total_amount,
            items=len(lines),
        )
        return order

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _validate_lines(self, cart_lines) -> dict[str, int]:
        """Merge duplicate product lines and check quantity bounds."""
        cart_lines = list(cart_lines or [])
        if not cart_lines:
            raise EmptyCart()

        max_quantity = setting("MAX_LINE_QUANTITY")
        quantities: dict[str, int] = {}
        for line in cart_lines:
            quantity = _quantity_of(line)
            if not isinstance(quantity, int) or quantity < 1 or quantity > max_quantity:
                raise ValidationError({"quantity": [f"Quantity must be between 1 and {max_quantity}"]})
            product_id = _product_of(line)
            quantities[product_id] = quantities.get(product_id, 0) + quantity

        for product_id, quantity in quantities.items():
            if quantity > max_quantity:
                raise ValidationError(
                    {"quantity": [f"Quantity for product {product_id} must be between 1 and {max_quantity}"]}
                )
        return quantities

    def _snapshot_products(self, quantities) -> list[_PricedLine]:
        priced = []
        for product_id in sorted(quantities):
            product = self.catalogue.get_product(product_id)
            if product is None or not product.is_active:
                raise ProductUnavailable(product_id, name=product.name if product else None)
            priced.append(
                _PricedLine(
                    product_id=product.product_id,
                    name=product.name,
                    unit_price=product.price,
                    quantity=quantities[product_id],
                    image=product.image,
                )
            )
        return priced

    def _reserve_all(self, priced) -> list[Reservation]:
        reservations: list[Reservation] = []
        for line in priced:
            try:
                reservations.append(self.ledger.reserve(line.product_id, line.quantity))
            except InsufficientStock as exc:
                self._release_all(reservations)
                raise InsufficientStock(
                    line.product_id, requested=exc.requested, available=exc.available, name=line.name
                ) from exc
            except Exception:
                self._release_all(reservations)
                raise
        return reservations

    def _release_all(self, reservations) -> None:
        for reservation in reversed(reservations):
            try:
                self.ledger.release(reservation)
            except Exception as exc:
                # Keep compensating the remaining lines; the original error still propagates.
                logger.error(
                    "Failed to release reservation",
                    reservation_id=reservation.reservation_id,
                    product_id=reservation.product_id,
                    quantity=reservation.quantity,
                    error=str(exc),
                )
