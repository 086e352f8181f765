"""Order status, payment-status and tracking updates — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    expected_revision = Integer(default=0, min_value=0)
    status = String(max_length=50)
    payment_status = String(max_length=50)
    tracking_number = String(max_length=255)
    actor_id = String(max_length=255)
    note = String(max_length=500)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_at_revision(command.order_id, command.expected_revision or 0)
        order.apply_update(
            status=command.status,
            payment_status=command.payment_status,
            tracking_number=command.tracking_number,
            actor_id=command.actor_id,
            note=command.note,
        )
        repo.add(order)
        return str(order.id)
