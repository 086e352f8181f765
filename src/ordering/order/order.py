"""Order aggregate — a priced, numbered order and its two state machines.

An order moves along two axes that change independently but are governed
together:

    Status:   PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
              PENDING/CONFIRMED → CANCELLED
    Payment:  PENDING → PROCESSING → COMPLETED/FAILED
              COMPLETED → REFUNDED/PARTIALLY_REFUNDED

Every accepted change appends exactly one entry to the status history and
bumps ``revision``. The revision is the token the lifecycle coordinator
compares-and-sets, so two concurrent transitions of one order can never both
commit.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentStatusChanged,
    TrackingNumberAssigned,
)
from shared.errors import InvalidStateTransition


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"


# Status transition map. REFUNDED has no inbound edge; refunds are recorded on
# the payment axis.
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_VALID_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING},
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
    PaymentStatus.PARTIALLY_REFUNDED: set(),
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# A tracking number only makes sense once the order is with the warehouse
_TRACKABLE_STATES = {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED}

# Payment may not progress on a cancelled order
_PAYMENT_BLOCKED_WHEN_CANCELLED = {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED}

_STATUS_MILESTONES = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def _parse_status(enum_cls, value, field):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError({field: [f"Invalid value '{value}'. Expected one of: {allowed}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """A delivery or billing address captured at checkout time.

    Once recorded on an Order, the address is immutable. It represents where
    the order was shipped, regardless of later changes to the customer profile.
    """

    first_name = String(max_length=100)
    last_name = String(max_length=100)
    company = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=50)


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Amounts locked at checkout: subtotal, tax, shipping, discount and total."""

    subtotal = Float(required=True, min_value=0.0)
    tax = Float(required=True, min_value=0.0)
    shipping_cost = Float(required=True, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)

    @invariant.post
    def total_must_add_up(self):
        expected = round(self.subtotal + self.tax + self.shipping_cost - (self.discount or 0.0), 2)
        if abs(expected - self.total_amount) > 0.005:
            raise ValidationError({"total_amount": ["Total must equal subtotal + tax + shipping - discount"]})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A snapshot of one purchased product: name, price and image as sold."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)
    image = String(max_length=1024)


@ordering.entity(part_of="Order")
class StatusHistoryEntry:
    sequence = Integer(required=True, min_value=1)
    status = String(required=True, max_length=20)
    payment_status = String(required=True, max_length=20)
    note = String(max_length=500)
    actor_id = Identifier()
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=32, unique=True)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    pricing = ValueObject(OrderPricing)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(choices=PaymentMethod)
    shipping_address = ValueObject(ShippingAddress)
    billing_address = ValueObject(ShippingAddress)
    tracking_number = String(max_length=255)
    customer_notes = String(max_length=500)
    status_history = HasMany(StatusHistoryEntry)
    revision = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()
    confirmed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    paid_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        lines,
        pricing,
        shipping_address,
        billing_address=None,
        payment_method=None,
        customer_notes=None,
    ):
        """Create a pending order from priced checkout lines.

        Args:
            order_number: The number issued by the numbering authority.
            customer_id: The customer placing the order.
            lines: List of dicts with product_id, name, unit_price, quantity,
                   line_total and optionally image.
            pricing: Dict with subtotal, tax, shipping_cost, discount,
                     total_amount.
            shipping_address: Dict with street, city, state, zip_code,
                              country and the optional contact fields.
            billing_address: Same shape as shipping_address; defaults to it.
        """
        if not lines:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        subtotal = round(sum(line["line_total"] for line in lines), 2)
        if abs(subtotal - pricing["subtotal"]) > 0.005:
            raise ValidationError({"subtotal": ["Subtotal must equal the sum of line totals"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=str(customer_id),
            pricing=OrderPricing(**pricing),
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            shipping_address=ShippingAddress(**shipping_address),
            billing_address=ShippingAddress(**(billing_address or shipping_address)),
            customer_notes=customer_notes,
            revision=0,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(
                OrderItem(
                    product_id=str(line["product_id"]),
                    name=line["name"],
                    unit_price=line["unit_price"],
                    quantity=line["quantity"],
                    line_total=line["line_total"],
                    image=line.get("image") or None,
                )
            )
        order._record_history(note="Order placed", actor_id=customer_id, at=now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps(
                    [
                        {
                            "product_id": str(line["product_id"]),
                            "name": line["name"],
                            "quantity": line["quantity"],
                            "unit_price": line["unit_price"],
                        }
                        for line in lines
                    ]
                ),
                total_amount=order.pricing.total_amount,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def history(self):
        """Status history entries in the order they were recorded."""
        return sorted(self.status_history, key=lambda entry: entry.sequence)

    @property
    def total_items(self):
        return sum(item.quantity for item in self.items)

    @property
    def is_cancellable(self):
        return OrderStatus(self.status) in _CANCELLABLE_STATES

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def check_update(self, status=None, payment_status=None, tracking_number=None):
        """Validate a requested change without applying it.

        Returns the parsed ``(status, payment_status)`` targets; either is
        None when that axis is not being changed.
        """
        if status is None and payment_status is None and tracking_number is None:
            raise ValidationError({"update": ["At least one of status, payment_status or tracking_number is required"]})

        current_status = OrderStatus(self.status)
        current_payment = PaymentStatus(self.payment_status)

        target_status = _parse_status(OrderStatus, status, "status") if status is not None else None
        target_payment = (
            _parse_status(PaymentStatus, payment_status, "payment_status") if payment_status is not None else None
        )

        if target_status is not None and target_status not in _VALID_TRANSITIONS[current_status]:
            raise InvalidStateTransition("status", current_status.value, target_status.value)

        if target_payment is not None and target_payment not in _VALID_PAYMENT_TRANSITIONS[current_payment]:
            raise InvalidStateTransition("payment_status", current_payment.value, target_payment.value)

        resulting_status = target_status or current_status
        if resulting_status == OrderStatus.CANCELLED and target_payment in _PAYMENT_BLOCKED_WHEN_CANCELLED:
            raise InvalidStateTransition("payment_status", current_payment.value, target_payment.value)

        if tracking_number is not None:
            if not str(tracking_number).strip():
                raise ValidationError({"tracking_number": ["Tracking number cannot be blank"]})
            if resulting_status not in _TRACKABLE_STATES:
                raise ValidationError(
                    {
                        "tracking_number": [
                            f"Tracking number cannot be set while the order is {resulting_status.value}"
                        ]
                    }
                )

        return target_status, target_payment

    def apply_update(self, status=None, payment_status=None, tracking_number=None, actor_id=None, note=None):
        """Apply a validated status, payment-status and/or tracking change.

        Nothing is mutated unless the whole request is valid. A status or
        payment change appends one history entry; a tracking-only change
        appends none. Every accepted call bumps ``revision``.
        """
        target_status, target_payment = self.check_update(status, payment_status, tracking_number)

        now = datetime.now(UTC)
        previous_status = self.status
        previous_payment = self.payment_status
        notes = []

        if target_status is not None:
            self.status = target_status.value
            milestone = _STATUS_MILESTONES.get(target_status)
            if milestone:
                setattr(self, milestone, now)
            notes.append(f"Order status updated to {target_status.value}")

        if target_payment is not None:
            self.payment_status = target_payment.value
            if target_payment == PaymentStatus.COMPLETED:
                self.paid_at = now
            notes.append(f"Payment status updated to {target_payment.value}")

        if tracking_number is not None:
            self.tracking_number = str(tracking_number).strip()

        if notes:
            if note:
                notes.append(note)
            self._record_history(note="; ".join(notes), actor_id=actor_id, at=now)

        self.revision = (self.revision or 0) + 1
        self.updated_at = now

        if target_status is not None:
            self.raise_(
                OrderStatusChanged(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    previous_status=previous_status,
                    new_status=self.status,
                    actor_id=actor_id,
                    changed_at=now,
                )
            )
            if target_status == OrderStatus.CANCELLED:
                self.raise_(
                    OrderCancelled(
                        order_id=str(self.id),
                        order_number=self.order_number,
                        items=json.dumps(
                            [{"product_id": str(item.product_id), "quantity": item.quantity} for item in self.items]
                        ),
                        cancelled_by=actor_id,
                        cancelled_at=now,
                    )
                )
        if target_payment is not None:
            self.raise_(
                PaymentStatusChanged(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    previous_status=previous_payment,
                    new_status=self.payment_status,
                    actor_id=actor_id,
                    changed_at=now,
                )
            )
        if tracking_number is not None:
            self.raise_(
                TrackingNumberAssigned(
                    order_id=str(self.id),
                    tracking_number=self.tracking_number,
                    assigned_at=now,
                )
            )

    def cancel(self, actor_id=None, reason=None):
        """Move the order to CANCELLED. Stock is returned by the lifecycle coordinator."""
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise InvalidStateTransition("status", current.value, OrderStatus.CANCELLED.value)
        self.apply_update(status=OrderStatus.CANCELLED.value, actor_id=actor_id, note=reason)

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _record_history(self, note, actor_id, at):
        sequence = max((entry.sequence for entry in self.status_history), default=0) + 1
        self.add_status_history(
            StatusHistoryEntry(
                sequence=sequence,
                status=self.status,
                payment_status=self.payment_status,
                note=note,
                actor_id=str(actor_id) if actor_id is not None else None,
                recorded_at=at,
            )
        )
