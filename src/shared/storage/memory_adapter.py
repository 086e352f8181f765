"""In-memory atomic store for development and testing.

All primitives share one lock and each call holds it for exactly one
operation, so every call is indivisible with respect to every other call.
No lock is ever held across calls.
"""

import threading
from collections import defaultdict
from dataclasses import replace

from shared.storage.port import AtomicStore, DecrementStatus, ProductRecord, StockDecrement


class InMemoryAtomicStore(AtomicStore):
    """Dictionary-backed store guarded by a single mutex."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._products: dict[str, ProductRecord] = {}
        self._counters: dict[str, int] = defaultdict(int)
        self._claims: dict[str, set[str]] = defaultdict(set)
        self._registers: dict[tuple[str, str], int] = {}

    def add_product(self, record: ProductRecord) -> None:
        if record.available_quantity < 0:
            raise ValueError("available_quantity cannot be negative")
        with self._lock:
            self._products[str(record.product_id)] = record

    def get_product(self, product_id: str) -> ProductRecord | None:
        with self._lock:
            return self._products.get(str(product_id))

    def decrement_stock(self, product_id: str, quantity: int) -> StockDecrement:
        with self._lock:
            record = self._products.get(str(product_id))
            if record is None:
                return StockDecrement(DecrementStatus.NOT_FOUND)
            if not record.is_active:
                return StockDecrement(DecrementStatus.INACTIVE, record.available_quantity)
            if record.available_quantity < quantity:
                return StockDecrement(DecrementStatus.INSUFFICIENT, record.available_quantity)

            remaining = record.available_quantity - quantity
            self._products[record.product_id] = replace(record, available_quantity=remaining)
            return StockDecrement(DecrementStatus.APPLIED, remaining)

    def increment_stock(self, product_id: str, quantity: int) -> int:
        with self._lock:
            record = self._products.get(str(product_id))
            if record is None:
                raise KeyError(product_id)
            updated = replace(record, available_quantity=record.available_quantity + quantity)
            self._products[record.product_id] = updated
            return updated.available_quantity

    def release_once(self, namespace: str, key: str, product_id: str, quantity: int) -> int | None:
        with self._lock:
            claimed = self._claims[namespace]
            if key in claimed:
                return None
            record = self._products.get(str(product_id))
            if record is None:
                raise KeyError(product_id)
            updated = replace(record, available_quantity=record.available_quantity + quantity)
            self._products[record.product_id] = updated
            claimed.add(key)
            return updated.available_quantity

    def increment_counter(self, key: str) -> int:
        with self._lock:
            self._counters[key] += 1
            return self._counters[key]

    def claim(self, namespace: str, key: str) -> bool:
        with self._lock:
            claimed = self._claims[namespace]
            if key in claimed:
                return False
            claimed.add(key)
            return True

    def compare_and_set(self, namespace: str, key: str, expected: int, new: int) -> bool:
        with self._lock:
            current = self._registers.get((namespace, key), 0)
            if current != expected:
                return False
            self._registers[(namespace, key)] = new
            return True

    def reset(self) -> None:
        with self._lock:
            self._products.clear()
            self._counters.clear()
            self._claims.clear()
            self._registers.clear()
