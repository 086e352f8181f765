"""Order cancellation — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    expected_revision = Integer(default=0, min_value=0)
    reason = String(max_length=500)
    cancelled_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_at_revision(command.order_id, command.expected_revision or 0)
        order.cancel(actor_id=command.cancelled_by, reason=command.reason)
        repo.add(order)
        return str(order.id)
