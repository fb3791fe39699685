import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from shared.config.database import Base
from shared.config.settings import DEFAULT_SHIPPING_COUNTRY
from shared.errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Any, field: str = "status") -> "OrderStatus":
        """Turns raw input into a status or raises a field-level ValidationError."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(s.value for s in cls)
        raise ValidationError.for_field(field, f"Unknown status {value!r}; expected one of: {allowed}")

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Fulfilment graph: one step forward at a time, or cancellation of an
        order that is not finished yet. Re-applying the current status is allowed."""
        if target is self:
            return True
        if target is OrderStatus.CANCELLED:
            return not self.is_terminal
        return _NEXT_STATUS.get(self) is target


_NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}


class Order(Base):
    __tablename__ = "orders"
    # We use a separate schema to simulate microservice isolation
    __table_args__ = {"schema": "order_schema"}

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number = Column(String(32), unique=True, index=True, nullable=False)
    # Guest checkout leaves this empty; users live in another service, so no FK
    user_id = Column(Integer, nullable=True, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    customer_name = Column(String(255), nullable=False)
    shipping_address = Column(Text, nullable=False)
    shipping_city = Column(String(255), nullable=False)
    shipping_postal_code = Column(String(20), nullable=True)
    shipping_country = Column(String(100), nullable=False, default=DEFAULT_SHIPPING_COUNTRY)
    shipping_phone = Column(String(30), nullable=False)
    whatsapp_phone = Column(String(30), nullable=True)
    billing_address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    """Snapshot of a product line as it was sold. Never updated after checkout."""

    __tablename__ = "order_items"
    __table_args__ = {"schema": "order_schema"}

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        Uuid,
        ForeignKey("order_schema.orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Catalog reference only; the product may be removed later
    product_id = Column(Uuid, nullable=True, index=True)
    product_name = Column(String(255), nullable=False)
    product_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
