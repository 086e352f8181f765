"""In-memory cart store for development and testing."""

import threading

from ordering.cart.port import Cart, CartLine, CartStore


class InMemoryCartStore(CartStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._carts: dict[str, Cart] = {}

    def get(self, user_id: str) -> Cart:
        with self._lock:
            return self._carts.get(str(user_id)) or Cart(user_id=str(user_id))

    def set_quantity(self, user_id: str, product_id: str, quantity: int) -> Cart:
        user_id, product_id = str(user_id), str(product_id)
        with self._lock:
            cart = self._carts.get(user_id) or Cart(user_id=user_id)
            lines = [line for line in cart.lines if line.product_id != product_id]
            lines.append(CartLine(product_id=product_id, quantity=quantity))
            updated = Cart(user_id=user_id, version=cart.version + 1, lines=tuple(lines))
            self._carts[user_id] = updated
            return updated

    def remove_line(self, user_id: str, product_id: str) -> Cart:
        user_id, product_id = str(user_id), str(product_id)
        with self._lock:
            cart = self._carts.get(user_id) or Cart(user_id=user_id)
            lines = tuple(line for line in cart.lines if line.product_id != product_id)
            if len(lines) == len(cart.lines):
                return cart
            updated = Cart(user_id=user_id, version=cart.version + 1, lines=lines)
            self._carts[user_id] = updated
            return updated

    def clear(self, user_id: str, expected_version: int) -> bool:
        user_id = str(user_id)
        with self._lock:
            cart = self._carts.get(user_id) or Cart(user_id=user_id)
            if cart.version != expected_version:
                return False
            self._carts[user_id] = Cart(user_id=user_id, version=cart.version + 1)
            return True

    def reset(self) -> None:
        with self._lock:
            self._carts.clear()
