import uuid
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import case, func, select, update
from .models import Product


class ProductRepository:

    @staticmethod
    async def create_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def get_active_products(db: AsyncSession):
        result = await db.execute(
            select(Product).where(Product.is_active.is_(True)).order_by(Product.name)
        )
        return result.scalars().all()

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: uuid.UUID) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def get_products_by_ids(db: AsyncSession, product_ids: Iterable[uuid.UUID]) -> dict:
        ids = set(product_ids)
        if not ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(ids)))
        return {product.id: product for product in result.scalars().all()}

    @staticmethod
    async def reserve_stock(db: AsyncSession, product_id: uuid.UUID, quantity: int) -> bool:
        """Decrements stock only if enough is left. Does not commit: the caller
        owns the transaction. Returns False when the stock was insufficient."""
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def summary(db: AsyncSession, low_stock_threshold: int) -> dict:
        result = await db.execute(
            select(
                func.count(Product.id),
                func.coalesce(func.sum(case((Product.is_active.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(case((Product.stock_quantity < low_stock_threshold, 1), else_=0)), 0),
            )
        )
        total, active, low_stock = result.one()
        return {"total": int(total), "active": int(active), "low_stock": int(low_stock)}
