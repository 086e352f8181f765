"""Inventory ledger — atomic stock reservation and idempotent release.

Stock Model:
    available_quantity: what can still be sold; never negative

A reservation is one conditional decrement in the atomic store ("take
``quantity`` iff the product is active and at least that much is available").
There is no read-then-write path, so two concurrent callers can never both
take the last unit.

Releases are guarded by claims in the store:
    reservation-release  one release per reservation (checkout compensation)
    order-release        one release per (order, product) (cancellation)

The claim and the credit are one store operation: either both are recorded
or neither is. A release that failed can be retried safely, and a retried
release never credits the same units twice.
"""

import time
from dataclasses import dataclass
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError

from shared.errors import InsufficientStock, PersistenceError, ProductInactive, ProductNotFound
from shared.storage import get_store
from shared.storage.port import AtomicStore, DecrementStatus

logger = structlog.get_logger(__name__)

RESERVATION_RELEASES = "reservation-release"
ORDER_RELEASES = "order-release"
RELEASE_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 0.01


@dataclass(frozen=True)
class Reservation:
    """Stock taken to back one order line."""

    reservation_id: str
    product_id: str
    quantity: int
    remaining: int


class InventoryLedger:
    def __init__(self, store: AtomicStore | None = None, release_attempts: int = RELEASE_ATTEMPTS) -> None:
        self._store = store
        self.release_attempts = release_attempts

    @property
    def store(self) -> AtomicStore:
        return self._store or get_store()

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, product_id, quantity) -> Reservation:
        """Atomically take ``quantity`` units of a product."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        product_id = str(product_id)
        outcome = self.store.decrement_stock(product_id, quantity)

        if outcome.status is DecrementStatus.NOT_FOUND:
            raise ProductNotFound(product_id)
        if outcome.status is DecrementStatus.INACTIVE:
            raise ProductInactive(product_id)
        if outcome.status is DecrementStatus.INSUFFICIENT:
            logger.info(
                "Stock reservation refused",
                product_id=product_id,
                requested=quantity,
                available=outcome.remaining,
            )
            raise InsufficientStock(product_id, requested=quantity, available=outcome.remaining)

        reservation = Reservation(
            reservation_id=str(uuid4()),
            product_id=product_id,
            quantity=quantity,
            remaining=outcome.remaining,
        )
        logger.info(
            "Reserved stock",
            reservation_id=reservation.reservation_id,
            product_id=product_id,
            quantity=quantity,
            remaining=outcome.remaining,
        )
        self._check_low_stock(product_id, outcome.remaining)
        return reservation

    def _check_low_stock(self, product_id, remaining):
        product = self.store.get_product(product_id)
        if product is not None and remaining <= product.low_stock_threshold:
            logger.warning(
                "Low stock detected",
                product_id=product_id,
                available=remaining,
                threshold=product.low_stock_threshold,
            )

    # -------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------
    def release(self, reservation: Reservation) -> bool:
        """Undo a reservation. Returns False if it was already released."""
        available = self._release_once(
            RESERVATION_RELEASES, reservation.reservation_id, reservation.product_id, reservation.quantity
        )
        if available is None:
            logger.info(
                "Reservation already released",
                reservation_id=reservation.reservation_id,
                product_id=reservation.product_id,
            )
            return False

        logger.info(
            "Released reservation",
            reservation_id=reservation.reservation_id,
            product_id=reservation.product_id,
            quantity=reservation.quantity,
            available=available,
        )
        return True

    def release_for_order(self, order_id, product_id, quantity) -> bool:
        """Return an order line's stock. Returns False if it was already returned."""
        available = self._release_once(ORDER_RELEASES, f"{order_id}:{product_id}", str(product_id), quantity)
        if available is None:
            logger.info(
                "Order stock already released",
                order_id=str(order_id),
                product_id=str(product_id),
            )
            return False

        logger.info(
            "Released order stock",
            order_id=str(order_id),
            product_id=str(product_id),
            quantity=quantity,
            available=available,
        )
        return True

    def _release_once(self, namespace, key, product_id, quantity):
        """Claim and credit in one store operation, retrying storage failures.

        A failed attempt records nothing, so retrying never double-credits.
        """
        for attempt in range(1, self.release_attempts + 1):
            try:
                return self.store.release_once(namespace, key, product_id, quantity)
            except KeyError:
                raise ProductNotFound(product_id) from None
            except Exception as exc:
                if attempt == self.release_attempts:
                    logger.error(
                        "Stock release failed",
                        release_key=key,
                        product_id=product_id,
                        quantity=quantity,
                        attempts=attempt,
                        error=str(exc),
                    )
                    if isinstance(exc, PersistenceError):
                        raise
                    raise PersistenceError(f"Could not return {quantity} of {product_id} to stock") from exc
                logger.warning(
                    "Stock release failed, retrying",
                    release_key=key,
                    product_id=product_id,
                    attempt=attempt,
                    error=str(exc),
                )
                time.sleep(RETRY_BACKOFF_SECONDS * attempt)
