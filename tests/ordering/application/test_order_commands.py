"""Tests for the order commands and their handlers, dispatched through the domain."""

import json

import pytest
from protean import current_domain

from ordering.order.cancellation import CancelOrder
from ordering.order.creation import CreateOrder
from ordering.order.order import Order
from ordering.order.status_update import UpdateOrderStatus
from shared.errors import ConcurrencyConflict, InvalidStateTransition


@pytest.fixture()
def order_id(address):
    lines = [
        {
            "product_id": "p-mug",
            "name": "Mug",
            "unit_price": 10.0,
            "quantity": 2,
            "line_total": 20.0,
            "image": "",
        }
    ]
    return current_domain.process(
        CreateOrder(
            order_number="ORD-20260101-001",
            customer_id="cust-001",
            items=json.dumps(lines),
            shipping_address=json.dumps(address),
            subtotal=20.0,
            tax=1.6,
            shipping_cost=10.0,
            total_amount=31.6,
        ),
        asynchronous=False,
    )


def _reload(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestCreateOrder:
    def test_handler_persists_pending_order(self, order_id, address):
        order = _reload(order_id)

        assert order.order_number == "ORD-20260101-001"
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.pricing.total_amount == 31.6
        assert order.billing_address.street == address["street"]
        assert [item.quantity for item in order.items] == [2]


class TestUpdateOrderStatus:
    def test_handler_applies_update(self, order_id):
        current_domain.process(
            UpdateOrderStatus(order_id=order_id, expected_revision=0, status="confirmed", actor_id="admin-001"),
            asynchronous=False,
        )

        order = _reload(order_id)
        assert order.status == "confirmed"
        assert order.revision == 1
        assert order.history[-1].actor_id == "admin-001"

    def test_stale_revision_is_refused(self, order_id):
        with pytest.raises(ConcurrencyConflict):
            current_domain.process(
                UpdateOrderStatus(order_id=order_id, expected_revision=3, status="confirmed"),
                asynchronous=False,
            )

        assert _reload(order_id).status == "pending"


class TestCancelOrder:
    def test_handler_cancels_through_the_aggregate(self, order_id):
        current_domain.process(
            CancelOrder(order_id=order_id, expected_revision=0, reason="Changed my mind", cancelled_by="cust-001"),
            asynchronous=False,
        )

        order = _reload(order_id)
        assert order.status == "cancelled"
        assert order.cancelled_at is not None
        assert "Changed my mind" in order.history[-1].note

    def test_shipped_order_cannot_be_cancelled(self, order_id):
        for revision, status in enumerate(("confirmed", "processing", "shipped")):
            current_domain.process(
                UpdateOrderStatus(order_id=order_id, expected_revision=revision, status=status),
                asynchronous=False,
            )

        with pytest.raises(InvalidStateTransition):
            current_domain.process(CancelOrder(order_id=order_id, expected_revision=3), asynchronous=False)

        assert _reload(order_id).status == "shipped"
