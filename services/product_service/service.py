import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import NotFoundError
from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate

logger = structlog.get_logger(__name__)


class ProductService:

    @staticmethod
    async def create_product(db: AsyncSession, data: ProductCreate):
        product = Product(
            name=data.name,
            price=data.price,
            stock_quantity=data.stock_quantity,
            is_active=data.is_active,
        )
        product = await ProductRepository.create_product(db, product)
        logger.info("product_created", product_id=str(product.id), name=product.name)
        return product

    @staticmethod
    async def list_products(db: AsyncSession):
        return await ProductRepository.get_active_products(db)

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: uuid.UUID):
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product
