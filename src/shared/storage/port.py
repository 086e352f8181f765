"""Atomic storage port (abstract interface).

Defines the primitives the ordering core relies on for correctness under
concurrent access. Every method is one indivisible storage operation; callers
never read a value and write it back. Adapters:

- InMemoryAtomicStore for development and testing
- SqlAtomicStore for a relational backend (SQLAlchemy Core)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ProductRecord:
    """Catalogue row backing a product's price and stock."""

    product_id: str
    name: str
    price: float
    available_quantity: int
    is_active: bool = True
    image: str = ""
    low_stock_threshold: int = 10


class DecrementStatus(Enum):
    APPLIED = "Applied"
    NOT_FOUND = "Not_Found"
    INACTIVE = "Inactive"
    INSUFFICIENT = "Insufficient"


@dataclass(frozen=True)
class StockDecrement:
    """Outcome of a conditional stock decrement."""

    status: DecrementStatus
    remaining: int | None = None

    @property
    def applied(self) -> bool:
        return self.status is DecrementStatus.APPLIED


class AtomicStore(ABC):
    """Abstract storage backend offering atomic conditional writes."""

    # -------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------
    @abstractmethod
    def add_product(self, record: ProductRecord) -> None:
        """Insert or replace a product row."""
        ...

    @abstractmethod
    def get_product(self, product_id: str) -> ProductRecord | None: ...

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> StockDecrement:
        """Decrement available quantity iff the product is active and has enough stock."""
        ...

    @abstractmethod
    def increment_stock(self, product_id: str, quantity: int) -> int:
        """Add quantity back to a product and return the new available quantity."""
        ...

    @abstractmethod
    def release_once(self, namespace: str, key: str, product_id: str, quantity: int) -> int | None:
        """Claim ``key`` under ``namespace`` and add ``quantity`` back to a product, as one operation.

        Returns the new available quantity, or None if ``key`` was already
        claimed. If the product is missing (``KeyError``) or the write fails,
        neither the claim nor the stock change is recorded.
        """
        ...

    # -------------------------------------------------------------------
    # Counters, claims and compare-and-set registers
    # -------------------------------------------------------------------
    @abstractmethod
    def increment_counter(self, key: str) -> int:
        """Increment the counter at ``key`` (starting from 0) and return the new value."""
        ...

    @abstractmethod
    def claim(self, namespace: str, key: str) -> bool:
        """Record ``key`` under ``namespace``. False if it was already recorded."""
        ...

    @abstractmethod
    def compare_and_set(self, namespace: str, key: str, expected: int, new: int) -> bool:
        """Set the register to ``new`` iff it currently holds ``expected``.

        A register that was never written holds 0.
        """
        ...

    @abstractmethod
    def reset(self) -> None:
        """Drop all state. Used by tests and local tooling."""
        ...
