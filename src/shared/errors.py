"""Error taxonomy shared by the inventory and ordering contexts.

Caller-actionable failures build on protean's own exceptions so they carry the
same ``messages`` payload the rest of the domain raises:

- ``ValidationError`` subclasses: bad input, unavailable products, stock
  shortfalls and illegal state transitions.
- ``ObjectNotFoundError`` subclasses: unknown orders and products.

Failures the caller cannot act on directly (lost races, storage faults)
derive from ``OrderingError``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class OrderingError(Exception):
    """Base for non-validation failures raised by the ordering core."""


# ---------------------------------------------------------------------------
# Validation family
# ---------------------------------------------------------------------------
class EmptyCart(ValidationError):
    def __init__(self):
        super().__init__({"cart": ["Cart is empty"]})


class IncompleteAddress(ValidationError):
    def __init__(self, missing_fields):
        self.missing_fields = list(missing_fields)
        super().__init__(
            {"shipping_address": [f"Complete shipping address is required; missing: {', '.join(self.missing_fields)}"]}
        )


class ProductUnavailable(ValidationError):
    """A cart line references a product that is missing or no longer sold."""

    def __init__(self, product_id, name=None):
        self.product_id = str(product_id)
        self.name = name
        label = name or self.product_id
        super().__init__({"product_id": [f'Product "{label}" is no longer available']})


class ProductInactive(ProductUnavailable):
    pass


class InsufficientStock(ValidationError):
    def __init__(self, product_id, requested, available, name=None):
        self.product_id = str(product_id)
        self.requested = requested
        self.available = available
        label = name or self.product_id
        super().__init__(
            {"quantity": [f'Insufficient stock for "{label}". Only {available} available, {requested} requested']}
        )


class InvalidStateTransition(ValidationError):
    def __init__(self, field, current, target):
        self.field = field
        self.current = current
        self.target = target
        super().__init__({field: [f"Cannot transition from {current} to {target}"]})


# ---------------------------------------------------------------------------
# Not-found family
# ---------------------------------------------------------------------------
class NotFoundError(ObjectNotFoundError):
    pass


class OrderNotFound(NotFoundError):
    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__({"order_id": [f"Order {self.order_id} not found"]})


class ProductNotFound(NotFoundError):
    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {self.product_id} not found"]})


# ---------------------------------------------------------------------------
# Operational family
# ---------------------------------------------------------------------------
class PermissionDenied(OrderingError):
    pass


class ConcurrencyConflict(OrderingError):
    """Lost a race on a conditional update. Safe for the caller to retry."""


class PersistenceError(OrderingError):
    pass


class DuplicateOrderNumber(PersistenceError):
    def __init__(self, order_number):
        self.order_number = order_number
        super().__init__(f"Order number {order_number} has already been issued")
