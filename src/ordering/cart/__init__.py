"""Cart store factory.

Provides get_cart_store() / set_cart_store() to swap implementations:
- InMemoryCartStore for development and testing (default)
"""

from ordering.cart.memory_adapter import InMemoryCartStore
from ordering.cart.port import CartStore

_current_cart_store: CartStore | None = None


def get_cart_store() -> CartStore:
    """Return the current cart store. Defaults to InMemoryCartStore."""
    global _current_cart_store
    if _current_cart_store is None:
        _current_cart_store = InMemoryCartStore()
    return _current_cart_store


def set_cart_store(store: CartStore) -> None:
    """Override the active cart store (useful for tests)."""
    global _current_cart_store
    _current_cart_store = store


def reset_cart_store() -> None:
    """Reset to default cart store."""
    global _current_cart_store
    _current_cart_store = None
