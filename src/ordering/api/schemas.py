"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
internal aggregate. Address fields are all optional here so an incomplete
address reaches the domain and is reported as a validation failure naming
the missing fields.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone: str | None = None


class OrderItemSchema(BaseModel):
    product_id: str
    name: str
    unit_price: float
    quantity: int
    line_total: float
    image: str | None = None


class StatusHistorySchema(BaseModel):
    sequence: int
    status: str
    payment_status: str
    note: str | None = None
    actor_id: str | None = None
    recorded_at: datetime


# ---------------------------------------------------------------------------
# Cart Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int

    model_config = {"json_schema_extra": {"examples": [{"quantity": 3}]}}


class CartItemResponse(BaseModel):
    product_id: str
    quantity: int
    name: str | None = None
    price: float | None = None
    image: str | None = None
    is_active: bool


class CartResponse(BaseModel):
    user_id: str
    version: int
    items: list[CartItemResponse]
    total: float


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    payment_method: str | None = None
    customer_notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": {
                        "first_name": "Ada",
                        "last_name": "Lovelace",
                        "street": "12 Analytical Way",
                        "city": "London",
                        "state": "Greater London",
                        "zip_code": "N1 9GU",
                        "country": "UK",
                    },
                    "payment_method": "credit_card",
                    "customer_notes": "Leave at the front desk",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    status: str | None = None
    payment_status: str | None = None
    tracking_number: str | None = None
    note: str | None = Field(default=None, max_length=500)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "shipped",
                    "tracking_number": "1Z999AA10123456784",
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Order Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    items: list[OrderItemSchema]
    total_items: int
    subtotal: float
    tax: float
    shipping_cost: float
    discount: float
    total_amount: float
    status: str
    payment_status: str
    payment_method: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    tracking_number: str | None = None
    customer_notes: str | None = None
    status_history: list[StatusHistorySchema]
    revision: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    confirmed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    paid_at: datetime | None = None


class PaginationSchema(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class OrderSummarySchema(BaseModel):
    total_orders: int
    total_revenue: float


class OrderPageResponse(BaseModel):
    orders: list[OrderResponse]
    pagination: PaginationSchema
    summary: OrderSummarySchema | None = None
