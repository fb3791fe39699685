import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, or_, select
from .models import Order, OrderItem


class OrderRepository:
    @staticmethod
    async def add_order(db: AsyncSession, order: Order):
        """Stages the order and its items. The caller commits or rolls back."""
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def save(db: AsyncSession, order: Order):
        await db.commit()
        return order

    @staticmethod
    async def delete_order(db: AsyncSession, order: Order):
        await db.delete(order)
        await db.commit()

    @staticmethod
    async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Optional[Order]:
        result = await db.execute(select(Order).where(Order.id == order_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_order_number(db: AsyncSession, order_number: str) -> Optional[Order]:
        result = await db.execute(select(Order).where(Order.order_number == order_number))
        return result.scalars().first()

    @staticmethod
    async def order_number_exists(db: AsyncSession, order_number: str) -> bool:
        result = await db.execute(
            select(Order.id).where(Order.order_number == order_number).limit(1)
        )
        return result.first() is not None

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        *,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        created_from: Optional[datetime] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ):
        """Returns (orders newest first, total matching count)."""
        clauses = []
        if user_id is not None:
            clauses.append(Order.user_id == user_id)
        if status is not None:
            clauses.append(Order.status == status)
        if created_from is not None:
            clauses.append(Order.created_at >= created_from)
        if search:
            needle = search.lower()
            clauses.append(or_(
                func.lower(Order.order_number).contains(needle, autoescape=True),
                func.lower(Order.customer_name).contains(needle, autoescape=True),
                Order.shipping_phone.contains(search, autoescape=True),
            ))

        total = await db.scalar(select(func.count(Order.id)).where(*clauses))
        result = await db.execute(
            select(Order)
            .where(*clauses)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(offset)
            .limit(limit)
        )
        return result.scalars().all(), int(total or 0)

    @staticmethod
    async def recent_orders(db: AsyncSession, limit: int = 10):
        result = await db.execute(
            select(Order).order_by(Order.created_at.desc()).limit(limit)
        )
        return result.scalars().all()

    @staticmethod
    async def totals_by_status(db: AsyncSession, created_from: Optional[datetime] = None) -> dict:
        """Per status: (order count, Σ subtotal, Σ shipping_cost, Σ total)."""
        stmt = select(
            Order.status,
            func.count(Order.id),
            func.coalesce(func.sum(Order.subtotal), 0),
            func.coalesce(func.sum(Order.shipping_cost), 0),
            func.coalesce(func.sum(Order.total), 0),
        ).group_by(Order.status)
        if created_from is not None:
            stmt = stmt.where(Order.created_at >= created_from)

        result = await db.execute(stmt)
        return {row[0]: tuple(row[1:]) for row in result.all()}

    @staticmethod
    async def count_since(db: AsyncSession, start: datetime) -> int:
        total = await db.scalar(select(func.count(Order.id)).where(Order.created_at >= start))
        return int(total or 0)

    @staticmethod
    async def top_products(db: AsyncSession, limit: int = 5):
        result = await db.execute(
            select(
                OrderItem.product_id,
                func.max(OrderItem.product_name),
                func.count(OrderItem.id).label("order_count"),
                func.coalesce(func.sum(OrderItem.quantity), 0),
            )
            .where(OrderItem.product_id.is_not(None))
            .group_by(OrderItem.product_id)
            .order_by(func.count(OrderItem.id).desc())
            .limit(limit)
        )
        return result.all()
