"""Cart store port (abstract interface).

The cart is owned by a collaborator outside the ordering core. Checkout only
needs to read a customer's lines and to clear them afterwards, and clearing
is conditional on the version checkout read so items added mid-checkout are
never lost.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class Cart:
    """A customer's cart at one version. Every change produces a new version."""

    user_id: str
    version: int = 0
    lines: tuple[CartLine, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def quantity_of(self, product_id) -> int:
        return sum(line.quantity for line in self.lines if line.product_id == str(product_id))


class CartStore(ABC):
    """Abstract cart store interface."""

    @abstractmethod
    def get(self, user_id: str) -> Cart:
        """Return the user's cart; an empty version-0 cart if none exists."""
        ...

    @abstractmethod
    def set_quantity(self, user_id: str, product_id: str, quantity: int) -> Cart:
        """Set a line's quantity, adding the line if absent."""
        ...

    @abstractmethod
    def remove_line(self, user_id: str, product_id: str) -> Cart:
        ...

    @abstractmethod
    def clear(self, user_id: str, expected_version: int) -> bool:
        """Empty the cart iff it is still at ``expected_version``."""
        ...

    @abstractmethod
    def reset(self) -> None:
        ...
