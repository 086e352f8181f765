"""Order numbering authority.

Numbers have the form ``PREFIX-YYYYMMDD-NNN``. The per-day sequence comes from
one atomic counter increment in the shared store, so concurrent checkouts can
never read the same value. Each issued number is also claimed in the store's
``order_number`` namespace; a failed claim means the counter was reset or
tampered with and is reported rather than silently reused.
"""

from datetime import UTC, date, datetime

import structlog

from ordering.settings import setting
from shared.errors import DuplicateOrderNumber
from shared.storage import get_store
from shared.storage.port import AtomicStore

logger = structlog.get_logger(__name__)

ORDER_NUMBERS = "order_number"


class OrderNumberAuthority:
    def __init__(self, store: AtomicStore | None = None, prefix: str | None = None) -> None:
        self._store = store
        self._prefix = prefix

    @property
    def store(self) -> AtomicStore:
        return self._store or get_store()

    @property
    def prefix(self) -> str:
        return self._prefix or setting("ORDER_NUMBER_PREFIX")

    def generate(self, on_date: date | None = None) -> str:
        """Issue the next order number for ``on_date`` (today, UTC, by default)."""
        day = (on_date or datetime.now(UTC).date()).strftime("%Y%m%d")
        sequence = self.store.increment_counter(f"order-number:{day}")
        number = f"{self.prefix}-{day}-{sequence:03d}"

        if not self.store.claim(ORDER_NUMBERS, number):
            logger.error("Order number already issued", order_number=number)
            raise DuplicateOrderNumber(number)

        logger.info("Issued order number", order_number=number)
        return number
