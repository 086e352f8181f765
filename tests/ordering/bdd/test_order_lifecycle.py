"""BDD tests for the order lifecycle."""

from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, when

scenarios("features/order_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the order is moved to "{status}"'))
def _(order, lifecycle, status, error):
    tracking = "TRACK-001" if status == "shipped" else None
    try:
        lifecycle.transition(order.id, status=status, tracking_number=tracking, actor_id="admin-001")
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the payment status is changed to "{payment_status}"'))
def _(order, lifecycle, payment_status, error):
    try:
        lifecycle.transition(order.id, payment_status=payment_status, actor_id="admin-001")
    except ValidationError as exc:
        error["exc"] = exc
