"""FastAPI routes for the Ordering domain — cart, checkout and orders.

Identity comes from the ``X-User-Id`` and ``X-User-Role`` headers set by the
upstream gateway after authentication.
"""

from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException

from ordering.api.schemas import (
    AddToCartRequest,
    CancelOrderRequest,
    CartResponse,
    CreateOrderRequest,
    OrderPageResponse,
    OrderResponse,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
)
from ordering.cart import management
from ordering.order.service import OrderService, Page, Requester


def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default="customer"),
) -> Requester:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authorized, no user identity")
    return Requester(user_id=x_user_id, role=x_user_role)


def _address(value):
    return value.to_dict() if value is not None else None


def order_response(order) -> OrderResponse:
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        items=[
            {
                "product_id": str(item.product_id),
                "name": item.name,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "line_total": item.line_total,
                "image": item.image,
            }
            for item in order.items
        ],
        total_items=order.total_items,
        subtotal=order.pricing.subtotal,
        tax=order.pricing.tax,
        shipping_cost=order.pricing.shipping_cost,
        discount=order.pricing.discount or 0.0,
        total_amount=order.pricing.total_amount,
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        tracking_number=order.tracking_number,
        customer_notes=order.customer_notes,
        status_history=[
            {
                "sequence": entry.sequence,
                "status": entry.status,
                "payment_status": entry.payment_status,
                "note": entry.note,
                "actor_id": str(entry.actor_id) if entry.actor_id else None,
                "recorded_at": entry.recorded_at,
            }
            for entry in order.history
        ],
        revision=order.revision or 0,
        created_at=order.created_at,
        updated_at=order.updated_at,
        confirmed_at=order.confirmed_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        paid_at=order.paid_at,
    )


def page_response(page: Page, with_summary=False) -> OrderPageResponse:
    return OrderPageResponse(
        orders=[order_response(order) for order in page.items],
        pagination={
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "total_pages": page.total_pages,
            "has_next": page.has_next,
            "has_prev": page.has_prev,
        },
        summary=page.summary if with_summary else None,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(requester: Requester = Depends(get_requester)) -> CartResponse:
    return CartResponse(**management.view_cart(requester.user_id))


@cart_router.post("/items", status_code=201, response_model=CartResponse)
async def add_cart_item(body: AddToCartRequest, requester: Requester = Depends(get_requester)) -> CartResponse:
    management.add_item(requester.user_id, body.product_id, body.quantity)
    return CartResponse(**management.view_cart(requester.user_id))


@cart_router.put("/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str, body: UpdateCartItemRequest, requester: Requester = Depends(get_requester)
) -> CartResponse:
    management.update_item(requester.user_id, product_id, body.quantity)
    return CartResponse(**management.view_cart(requester.user_id))


@cart_router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(product_id: str, requester: Requester = Depends(get_requester)) -> CartResponse:
    management.remove_item(requester.user_id, product_id)
    return CartResponse(**management.view_cart(requester.user_id))


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(requester: Requester = Depends(get_requester)) -> CartResponse:
    management.clear_cart(requester.user_id)
    return CartResponse(**management.view_cart(requester.user_id))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(body: CreateOrderRequest, requester: Requester = Depends(get_requester)) -> OrderResponse:
    order = OrderService().create_order(
        user_id=requester.user_id,
        shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        customer_notes=body.customer_notes,
    )
    return order_response(order)


@order_router.get("", response_model=OrderPageResponse)
async def list_orders(
    status: str | None = None,
    page: int = 1,
    limit: int | None = None,
    requester: Requester = Depends(get_requester),
) -> OrderPageResponse:
    result = OrderService().list_orders(requester.user_id, status=status, page=page, limit=limit)
    return page_response(result)


# Admin routes are declared before /{order_id} so "admin" is never taken as an id
@order_router.get("/admin/all", response_model=OrderPageResponse)
async def admin_list_orders(
    status: str | None = None,
    payment_status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    limit: int | None = None,
    requester: Requester = Depends(get_requester),
) -> OrderPageResponse:
    result = OrderService().admin_list_orders(
        requester,
        status=status,
        payment_status=payment_status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return page_response(result, with_summary=True)


@order_router.put("/admin/{order_id}/status", response_model=OrderResponse)
async def admin_update_order(
    order_id: str,
    body: UpdateOrderStatusRequest,
    requester: Requester = Depends(get_requester),
) -> OrderResponse:
    order = OrderService().admin_update_order(
        order_id,
        requester,
        status=body.status,
        payment_status=body.payment_status,
        tracking_number=body.tracking_number,
        note=body.note,
    )
    return order_response(order)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, requester: Requester = Depends(get_requester)) -> OrderResponse:
    return order_response(OrderService().get_order(order_id, requester))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    requester: Requester = Depends(get_requester),
) -> OrderResponse:
    order = OrderService().cancel_order(order_id, requester, reason=body.reason if body else None)
    return order_response(order)
