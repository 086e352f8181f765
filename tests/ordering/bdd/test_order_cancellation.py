"""BDD tests for order cancellation."""

from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, when

scenarios("features/order_cancellation.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the customer cancels the order with reason "{reason}"'))
def _(order, lifecycle, customer_id, reason, error):
    try:
        lifecycle.cancel(order.id, actor_id=customer_id, reason=reason)
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the payment status is changed to "{payment_status}"'))
def _(order, lifecycle, payment_status, error):
    try:
        lifecycle.transition(order.id, payment_status=payment_status, actor_id="admin-001")
    except ValidationError as exc:
        error["exc"] = exc
