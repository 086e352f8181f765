"""Domain events raised by the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into a priced, numbered order with stock reserved."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{product_id, name, quantity, unit_price}]
    total_amount = Float(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    actor_id = Identifier()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentStatusChanged:
    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    actor_id = Identifier()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class TrackingNumberAssigned:
    __version__ = "v1"

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    assigned_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled. Its reserved stock is due back to inventory."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    items = Text(required=True)  # JSON: [{product_id, quantity}]
    cancelled_by = Identifier()
    cancelled_at = DateTime(required=True)
