"""Order Lifecycle — revision-checked transitions of persisted orders.

A transition is validated against a freshly loaded order and committed only
if the caller wins ``compare_and_set`` on the order's revision register in the
atomic store. Of two concurrent transitions of one order exactly one wins;
the other re-reads, re-validates against the winner's result and either
proceeds, fails ``InvalidStateTransition``, or gives up with
``ConcurrencyConflict`` after ``MAX_TRANSITION_ATTEMPTS``.

The winner writes the order by dispatching ``UpdateOrderStatus`` or
``CancelOrder``; if the handler fails, the revision claim is handed back.

Cancellation returns stock only after the cancelled order is persisted, and
only from the call that won the move into CANCELLED. Each (order, product)
release is claimed in the store, so re-running it never double-credits.
"""

import time

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from inventory.ledger import InventoryLedger
from ordering.order.cancellation import CancelOrder
from ordering.order.order import Order, OrderStatus
from ordering.order.status_update import UpdateOrderStatus
from ordering.settings import setting
from shared.errors import (
    ConcurrencyConflict,
    InvalidStateTransition,
    OrderingError,
    OrderNotFound,
    PersistenceError,
)
from shared.storage import get_store
from shared.storage.port import AtomicStore

logger = structlog.get_logger(__name__)

ORDER_REVISIONS = "order-revision"
RETRY_BACKOFF_SECONDS = 0.01


class OrderLifecycle:
    def __init__(
        self,
        store: AtomicStore | None = None,
        ledger: InventoryLedger | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._store = store
        self.ledger = ledger or InventoryLedger(store)
        self._max_attempts = max_attempts

    @property
    def store(self) -> AtomicStore:
        return self._store or get_store()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts or setting("MAX_TRANSITION_ATTEMPTS")

    def load(self, order_id) -> Order:
        try:
            return current_domain.repository_for(Order).get(str(order_id))
        except ObjectNotFoundError as exc:
            raise OrderNotFound(order_id) from exc

    def transition(
        self,
        order_id,
        status=None,
        payment_status=None,
        tracking_number=None,
        actor_id=None,
        note=None,
    ) -> Order:
        """Apply a status, payment-status and/or tracking change to an order."""

        def command_for(expected):
            return UpdateOrderStatus(
                order_id=str(order_id),
                expected_revision=expected,
                status=status,
                payment_status=payment_status,
                tracking_number=tracking_number,
                actor_id=str(actor_id) if actor_id is not None else None,
                note=note,
            )

        return self._commit(
            order_id,
            lambda order: order.check_update(status, payment_status, tracking_number),
            command_for,
            actor_id,
        )

    def cancel(self, order_id, actor_id=None, reason=None) -> Order:
        """Cancel a pending or confirmed order and return its stock."""

        def check_cancellable(order):
            if not order.is_cancellable:
                raise InvalidStateTransition("status", order.status, OrderStatus.CANCELLED.value)

        def command_for(expected):
            return CancelOrder(
                order_id=str(order_id),
                expected_revision=expected,
                reason=reason,
                cancelled_by=str(actor_id) if actor_id is not None else None,
            )

        return self._commit(order_id, check_cancellable, command_for, actor_id)

    def release_stock(self, order: Order) -> int:
        """Return every item of a cancelled order to inventory.

        Every line is attempted even if an earlier one fails; the call then
        raises ``PersistenceError``. Safe to call again: lines already
        returned are skipped. Returns the number of lines released by this call.
        """
        if order.status != OrderStatus.CANCELLED.value:
            raise InvalidStateTransition("status", order.status, "restocked")

        released = 0
        failed = []
        for item in order.items:
            try:
                if self.ledger.release_for_order(order.id, item.product_id, item.quantity):
                    released += 1
            except Exception as exc:
                logger.error(
                    "Could not restock order line",
                    order_id=str(order.id),
                    product_id=str(item.product_id),
                    quantity=item.quantity,
                    error=str(exc),
                )
                failed.append(str(item.product_id))

        logger.info(
            "Cancelled order restocked",
            order_id=str(order.id),
            lines_released=released,
            lines_failed=len(failed),
        )
        if failed:
            raise PersistenceError(
                f"Order {order.id} is cancelled but stock for {', '.join(failed)} was not returned; "
                "run restock-order to retry"
            )
        return released

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------
    def _commit(self, order_id, validate, command_for, actor_id) -> Order:
        """Validate, win the revision register, then dispatch the write command."""
        for attempt in range(1, self.max_attempts + 1):
            order = self.load(order_id)
            expected = order.revision or 0
            previous_status = order.status

            validate(order)

            if not self.store.compare_and_set(ORDER_REVISIONS, str(order.id), expected, expected + 1):
                logger.info(
                    "Order transition lost race, retrying",
                    order_id=str(order.id),
                    revision=expected,
                    attempt=attempt,
                )
                time.sleep(RETRY_BACKOFF_SECONDS * attempt)
                continue

            self._dispatch(command_for(expected), str(order.id), expected)
            order = self.load(order_id)
            logger.info(
                "Order transitioned",
                order_id=str(order.id),
                order_number=order.order_number,
                previous_status=previous_status,
                status=order.status,
                payment_status=order.payment_status,
                tracking_number=order.tracking_number,
                actor_id=str(actor_id) if actor_id is not None else None,
                revision=order.revision,
            )

            if previous_status != OrderStatus.CANCELLED.value and order.status == OrderStatus.CANCELLED.value:
                self.release_stock(order)
            return order

        logger.warning("Order transition abandoned after retries", order_id=str(order_id), attempts=self.max_attempts)
        raise ConcurrencyConflict(f"Order {order_id} is being updated concurrently; retry the request")

    def _dispatch(self, command, order_id: str, expected_revision: int) -> None:
        try:
            current_domain.process(command, asynchronous=False)
        except Exception as exc:
            logger.error(
                "Order transition could not be saved",
                order_id=order_id,
                revision=expected_revision + 1,
                error=str(exc),
            )
            if not self.store.compare_and_set(ORDER_REVISIONS, order_id, expected_revision + 1, expected_revision):
                logger.error("Could not roll back order revision", order_id=order_id)
            if isinstance(exc, (ValidationError, OrderingError)):
                raise
            raise PersistenceError("Order update could not be saved") from exc
