"""Cart management — the customer-facing operations on the cart store.

Adding a product checks the catalogue first: the product must exist, be
active and have enough stock for the combined quantity, and a single line is
capped at ``MAX_LINE_QUANTITY``. Stock is not reserved here; reservation
happens only at checkout.
"""

import structlog
from protean.exceptions import ValidationError

from inventory.catalogue import Catalogue
from ordering.cart import get_cart_store
from ordering.cart.port import Cart
from ordering.settings import setting
from shared.errors import ConcurrencyConflict, InsufficientStock, ProductNotFound, ProductUnavailable

logger = structlog.get_logger(__name__)

CLEAR_ATTEMPTS = 3


def add_item(user_id, product_id, quantity, catalogue: Catalogue | None = None) -> Cart:
    """Add ``quantity`` of a product to the user's cart, merging with an existing line."""
    catalogue = catalogue or Catalogue()
    max_quantity = setting("MAX_LINE_QUANTITY")

    if quantity is None or quantity < 1 or quantity > max_quantity:
        raise ValidationError({"quantity": [f"Quantity must be between 1 and {max_quantity}"]})

    product = catalogue.get_product(product_id)
    if product is None:
        raise ProductNotFound(product_id)
    if not product.is_active:
        raise ProductUnavailable(product_id, name=product.name)

    store = get_cart_store()
    combined = store.get(user_id).quantity_of(product_id) + quantity
    if combined > max_quantity:
        raise ValidationError({"quantity": [f"Cannot hold more than {max_quantity} of one product in the cart"]})
    if combined > product.available_quantity:
        raise InsufficientStock(
            product_id, requested=combined, available=product.available_quantity, name=product.name
        )

    cart = store.set_quantity(user_id, product.product_id, combined)
    logger.info("Cart item added", user_id=str(user_id), product_id=product.product_id, quantity=combined)
    return cart


def update_item(user_id, product_id, quantity, catalogue: Catalogue | None = None) -> Cart:
    """Set an existing cart line to exactly ``quantity``."""
    catalogue = catalogue or Catalogue()
    max_quantity = setting("MAX_LINE_QUANTITY")

    if quantity is None or quantity < 1 or quantity > max_quantity:
        raise ValidationError({"quantity": [f"Quantity must be between 1 and {max_quantity}"]})

    store = get_cart_store()
    if store.get(user_id).quantity_of(product_id) == 0:
        raise ValidationError({"product_id": ["Item not found in cart"]})

    product = catalogue.get_product(product_id)
    if product is None:
        raise ProductNotFound(product_id)
    if not product.is_active:
        raise ProductUnavailable(product_id, name=product.name)
    if quantity > product.available_quantity:
        raise InsufficientStock(
            product_id, requested=quantity, available=product.available_quantity, name=product.name
        )

    cart = store.set_quantity(user_id, product.product_id, quantity)
    logger.info("Cart item updated", user_id=str(user_id), product_id=product.product_id, quantity=quantity)
    return cart


def remove_item(user_id, product_id) -> Cart:
    store = get_cart_store()
    if store.get(user_id).quantity_of(product_id) == 0:
        raise ValidationError({"product_id": ["Item not found in cart"]})
    cart = store.remove_line(user_id, product_id)
    logger.info("Cart item removed", user_id=str(user_id), product_id=str(product_id))
    return cart


def clear_cart(user_id) -> Cart:
    """Empty the user's cart."""
    store = get_cart_store()
    for _ in range(CLEAR_ATTEMPTS):
        cart = store.get(user_id)
        if store.clear(user_id, cart.version):
            logger.info("Cart cleared", user_id=str(user_id), lines=len(cart.lines))
            return store.get(user_id)
    raise ConcurrencyConflict(f"Cart for {user_id} is being changed concurrently; retry the request")


def view_cart(user_id, catalogue: Catalogue | None = None) -> dict:
    """The cart with current catalogue names and prices for display.

    Displayed prices are indicative; checkout re-reads the catalogue.
    """
    catalogue = catalogue or Catalogue()
    cart = get_cart_store().get(user_id)
    items = []
    for line in cart.lines:
        product = catalogue.get_product(line.product_id)
        items.append(
            {
                "product_id": line.product_id,
                "quantity": line.quantity,
                "name": product.name if product else None,
                "price": product.price if product else None,
                "image": product.image if product else None,
                "is_active": bool(product and product.is_active),
            }
        )
    total = round(sum(item["price"] * item["quantity"] for item in items if item["price"] is not None), 2)
    return {"user_id": cart.user_id, "version": cart.version, "items": items, "total": total}
