"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

from inventory.ledger import InventoryLedger
from ordering.checkout.builder import OrderBuilder
from ordering.order.lifecycle import OrderLifecycle
from ordering.order.order import Order
from shared.errors import InvalidStateTransition


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer_id():
    return "cust-001"


@pytest.fixture()
def error():
    """Container for the error raised by a When step."""
    return {"exc": None}


@pytest.fixture()
def lifecycle(store):
    return OrderLifecycle(store, InventoryLedger(store))


# ---------------------------------------------------------------------------
# Given steps — catalogue and orders
# ---------------------------------------------------------------------------
@given(parsers.cfparse('product "{product_id}" costs {price:f} with {quantity:d} in stock'))
def _(catalogue, product_id, price, quantity):
    catalogue.stock_product(product_id, product_id.title(), price, quantity)


@given(
    parsers.cfparse('the customer placed an order for {quantity:d} of "{product_id}"'),
    target_fixture="order",
)
def _(store, catalogue, address, customer_id, quantity, product_id):
    builder = OrderBuilder(catalogue, InventoryLedger(store))
    return builder.build_order(customer_id, [{"product_id": product_id, "quantity": quantity}], address)


@given(parsers.cfparse('the order was moved to "{status}"'), target_fixture="order")
def _(order, lifecycle, status):
    tracking = "TRACK-001" if status == "shipped" else None
    return lifecycle.transition(order.id, status=status, tracking_number=tracking, actor_id="admin-001")


@given("the order was cancelled", target_fixture="order")
def _(order, lifecycle, customer_id):
    return lifecycle.cancel(order.id, actor_id=customer_id)


# ---------------------------------------------------------------------------
# Then steps — shared, plain assertions
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert current_domain.repository_for(Order).get(order.id).status == status


@then(parsers.cfparse('the payment status is "{payment_status}"'))
def _(order, payment_status):
    assert current_domain.repository_for(Order).get(order.id).payment_status == payment_status


@then(parsers.cfparse('"{product_id}" has {quantity:d} in stock'))
def _(catalogue, product_id, quantity):
    assert catalogue.get_product(product_id).available_quantity == quantity


@then("the action fails with an invalid transition")
def _(error):
    assert isinstance(error["exc"], InvalidStateTransition), f"Got {error['exc']!r}"


@then("the action fails with a validation error")
def _(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse("the order history has {count:d} entries"))
def _(order, count):
    assert len(current_domain.repository_for(Order).get(order.id).history) == count
