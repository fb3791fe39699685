import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .models import OrderStatus

# Digits with the usual separators, optional leading +: "06 12 34 56 78", "+212612345678"
PHONE_PATTERN = r"^\+?[0-9][0-9 .()\-]{5,19}$"


# --- Requests ---

class OrderItemCreate(BaseModel):
    product_id: uuid.UUID
    product_name: str = Field(min_length=1, max_length=255)
    product_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(ge=1, le=1000)

    class Config:
        str_strip_whitespace = True


class OrderCreate(BaseModel):
    customer_name: str = Field(min_length=1, max_length=255)
    shipping_address: str = Field(min_length=1, max_length=1000)
    shipping_city: str = Field(min_length=1, max_length=255)
    shipping_postal_code: Optional[str] = Field(default=None, max_length=20)
    shipping_country: Optional[str] = Field(default=None, max_length=100)
    shipping_phone: str = Field(pattern=PHONE_PATTERN)
    whatsapp_phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    billing_address: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=2000)
    items: List[OrderItemCreate] = Field(min_length=1)
    shipping_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    # Totals as shown by the storefront; informational, the server recomputes them
    subtotal: Optional[Decimal] = Field(default=None, ge=0)
    total: Optional[Decimal] = Field(default=None, ge=0)

    class Config:
        str_strip_whitespace = True


class StatusUpdate(BaseModel):
    # Plain string: unknown values are reported by the service as a field error
    status: str


class TrackRequest(BaseModel):
    order_number: str

    @field_validator("order_number", mode="before")
    @classmethod
    def _as_text(cls, value):
        # Any JSON value is looked up as text, so a number of the wrong type
        # gets the same not-found answer as any other unknown number
        return value if isinstance(value, str) else str(value)


# --- Responses ---

class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[uuid.UUID]
    product_name: str
    product_price: Decimal
    quantity: int
    subtotal: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    status: OrderStatus
    user_id: Optional[int]
    customer_name: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: Optional[str]
    shipping_country: str
    shipping_phone: str
    whatsapp_phone: Optional[str]
    billing_address: Optional[str]
    notes: Optional[str]
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class TrackedItemResponse(BaseModel):
    product_name: str
    product_price: Decimal
    quantity: int
    subtotal: Decimal

    class Config:
        from_attributes = True


class OrderTrackingResponse(BaseModel):
    """What an anonymous caller may learn about an order: no address, phone,
    customer identity or internal ids."""

    order_number: str
    status: OrderStatus
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    created_at: datetime
    updated_at: datetime
    items: List[TrackedItemResponse] = []

    class Config:
        from_attributes = True


class OrderPage(BaseModel):
    data: List[OrderResponse]
    current_page: int
    per_page: int
    total: int
    last_page: int


class MessageResponse(BaseModel):
    message: str


class OrderStatsResponse(BaseModel):
    period: str
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    processing: int = 0
    shipped: int = 0
    delivered: int = 0
    cancelled: int = 0
    revenue: Decimal = Decimal("0.00")
    total_shipping: Decimal = Decimal("0.00")
    today: int = 0
    this_month: int = 0


class ProductSummary(BaseModel):
    total: int = 0
    active: int = 0
    low_stock: int = 0


class DashboardOrderSummary(BaseModel):
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    revenue: Decimal = Decimal("0.00")
    today: int = 0
    this_month: int = 0


class DashboardStatsResponse(BaseModel):
    products: ProductSummary
    orders: DashboardOrderSummary


class TopProductResponse(BaseModel):
    product_id: uuid.UUID
    product_name: str
    order_count: int
    units_sold: int
