"""Order creation — command and handler."""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CreateOrder:
    order_number = String(required=True, max_length=32)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of priced line dicts
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict; defaults to shipping
    subtotal = Float(required=True)
    tax = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    discount = Float(default=0.0)
    total_amount = Float(required=True)
    payment_method = String(max_length=50)
    customer_notes = String(max_length=500)


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


@ordering.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        order = Order.place(
            order_number=command.order_number,
            customer_id=command.customer_id,
            lines=_loads(command.items),
            pricing={
                "subtotal": command.subtotal,
                "tax": command.tax or 0.0,
                "shipping_cost": command.shipping_cost or 0.0,
                "discount": command.discount or 0.0,
                "total_amount": command.total_amount,
            },
            shipping_address=_loads(command.shipping_address),
            billing_address=_loads(command.billing_address) if command.billing_address else None,
            payment_method=command.payment_method,
            customer_notes=command.customer_notes,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
