"""Repository for the Order aggregate."""

from ordering.domain import ordering
from ordering.order.order import Order
from shared.errors import ConcurrencyConflict

_BATCH_SIZE = 100


@ordering.repository(part_of=Order)
class OrderRepository:
    """Order lookups beyond get-by-id.

    Listing queries return every match, newest first. Callers paginate.
    """

    def find_by_number(self, order_number: str) -> Order | None:
        results = self._dao.query.filter(order_number=order_number).all().items
        return results[0] if results else None

    def find_matching(self, **filters) -> list[Order]:
        """All orders whose fields equal ``filters``, newest first."""
        query = self._dao.query.filter(**filters) if filters else self._dao.query
        orders = []
        offset = 0
        while True:
            batch = query.order_by("-created_at").offset(offset).limit(_BATCH_SIZE).all()
            orders.extend(batch.items)
            offset += len(batch.items)
            if len(batch.items) < _BATCH_SIZE or offset >= batch.total:
                break
        return orders

    def find_for_customer(self, customer_id, status=None) -> list[Order]:
        filters = {"customer_id": str(customer_id)}
        if status is not None:
            filters["status"] = status
        return self.find_matching(**filters)

    def get_at_revision(self, order_id, expected_revision: int) -> Order:
        """Load an order, refusing it if another writer has moved its revision on."""
        order = self.get(str(order_id))
        if (order.revision or 0) != expected_revision:
            raise ConcurrencyConflict(
                f"Order {order_id} is at revision {order.revision}, expected {expected_revision}"
            )
        return order
