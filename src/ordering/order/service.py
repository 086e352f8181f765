"""Order service — the operations exposed to customers and administrators.

Identity is trusted as passed in. Customers only ever see their own orders:
another customer's order is reported as not found rather than forbidden so
order ids cannot be probed. Administrative operations require the ``admin``
role.
"""

import math
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart import get_cart_store
from ordering.cart.port import CartStore
from ordering.checkout.builder import OrderBuilder
from ordering.order.lifecycle import OrderLifecycle
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.settings import setting
from shared.errors import OrderNotFound, PermissionDenied

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"
MAX_PAGE_LIMIT = 100


@dataclass(frozen=True)
class Requester:
    user_id: str
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass(frozen=True)
class Page:
    """One page of orders, newest first."""

    items: list
    page: int
    limit: int
    total: int
    summary: dict = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def _validate_paging(page, limit):
    if page is None or page < 1:
        raise ValidationError({"page": ["Page must be at least 1"]})
    if limit is None or limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError({"limit": [f"Limit must be between 1 and {MAX_PAGE_LIMIT}"]})


def _validate_choice(enum_cls, value, field_name):
    if value is None:
        return None
    try:
        return enum_cls(value).value
    except ValueError:
        raise ValidationError({field_name: [f"Invalid {field_name} '{value}'"]}) from None


def _as_utc(moment):
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def _range_bound(value, end_of_day=False):
    """Dates cover the whole day; datetimes are taken as given (UTC when naive)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=UTC)
    raise ValidationError({"date": [f"Invalid date '{value}'"]})


def _paginate(orders, page, limit, summary=None) -> Page:
    start = (page - 1) * limit
    return Page(
        items=orders[start : start + limit],
        page=page,
        limit=limit,
        total=len(orders),
        summary=summary or {},
    )


class OrderService:
    def __init__(
        self,
        builder: OrderBuilder | None = None,
        lifecycle: OrderLifecycle | None = None,
        cart_store: CartStore | None = None,
    ) -> None:
        self.builder = builder or OrderBuilder()
        self.lifecycle = lifecycle or OrderLifecycle()
        self._cart_store = cart_store

    @property
    def cart_store(self) -> CartStore:
        return self._cart_store or get_cart_store()

    # -------------------------------------------------------------------
    # Customer operations
    # -------------------------------------------------------------------
    def create_order(
        self,
        user_id,
        shipping_address,
        billing_address=None,
        payment_method=None,
        customer_notes=None,
    ) -> Order:
        """Check out the user's cart, then clear it if it did not change meanwhile."""
        cart = self.cart_store.get(user_id)
        order = self.builder.build_order(
            customer_id=user_id,
            cart_lines=cart.lines,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            customer_notes=customer_notes,
        )

        if not self.cart_store.clear(user_id, cart.version):
            logger.warning(
                "Cart changed during checkout, left intact",
                user_id=str(user_id),
                order_id=str(order.id),
                checkout_version=cart.version,
            )
        return order

    def get_order(self, order_id, requester: Requester) -> Order:
        order = self.lifecycle.load(order_id)
        if not requester.is_admin and str(order.customer_id) != str(requester.user_id):
            raise OrderNotFound(order_id)
        return order

    def list_orders(self, user_id, status=None, page=1, limit=None) -> Page:
        if limit is None:
            limit = setting("DEFAULT_PAGE_LIMIT")
        _validate_paging(page, limit)
        status = _validate_choice(OrderStatus, status, "status")

        orders = current_domain.repository_for(Order).find_for_customer(user_id, status=status)
        return _paginate(orders, page, limit)

    def cancel_order(self, order_id, requester: Requester, reason=None) -> Order:
        self.get_order(order_id, requester)
        order = self.lifecycle.cancel(order_id, actor_id=requester.user_id, reason=reason)
        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            cancelled_by=str(requester.user_id),
        )
        return order

    # -------------------------------------------------------------------
    # Administrative operations
    # -------------------------------------------------------------------
    def admin_list_orders(
        self,
        requester: Requester,
        status=None,
        payment_status=None,
        start_date=None,
        end_date=None,
        page=1,
        limit=None,
    ) -> Page:
        """All orders matching the filters, with revenue over non-cancelled matches."""
        self._require_admin(requester)
        if limit is None:
            limit = setting("ADMIN_PAGE_LIMIT")
        _validate_paging(page, limit)

        filters = {}
        if status is not None:
            filters["status"] = _validate_choice(OrderStatus, status, "status")
        if payment_status is not None:
            filters["payment_status"] = _validate_choice(PaymentStatus, payment_status, "payment_status")

        start = _range_bound(start_date)
        end = _range_bound(end_date, end_of_day=True)
        if start and end and start > end:
            raise ValidationError({"start_date": ["Start date must not be after end date"]})

        orders = current_domain.repository_for(Order).find_matching(**filters)
        if start or end:
            orders = [
                order
                for order in orders
                if (start is None or _as_utc(order.created_at) >= start)
                and (end is None or _as_utc(order.created_at) <= end)
            ]
        orders.sort(key=lambda order: _as_utc(order.created_at), reverse=True)

        revenue = sum(order.pricing.total_amount for order in orders if order.status != OrderStatus.CANCELLED.value)
        summary = {"total_orders": len(orders), "total_revenue": round(revenue, 2)}
        return _paginate(orders, page, limit, summary=summary)

    def admin_update_order(
        self,
        order_id,
        actor: Requester,
        status=None,
        payment_status=None,
        tracking_number=None,
        note=None,
    ) -> Order:
        self._require_admin(actor)
        return self.lifecycle.transition(
            order_id,
            status=status,
            payment_status=payment_status,
            tracking_number=tracking_number,
            actor_id=actor.user_id,
            note=note,
        )

    @staticmethod
    def _require_admin(requester: Requester) -> None:
        if not requester.is_admin:
            logger.warning("Admin operation refused", user_id=str(requester.user_id), role=requester.role)
            raise PermissionDenied("Administrator role required")
