import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import require_admin
from .schemas import ProductCreate, ProductResponse
from .service import ProductService

router = APIRouter(dependencies=[Depends(require_admin)])
public_router = APIRouter()

@public_router.get("/health")
async def health_check():
    return {"service": "product", "status": "running"}


@public_router.get("/", response_model=list[ProductResponse])
async def list_products(
    query: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db)
):
    products = await ProductService.list_products(db)

    if query:
        query_words = set(query.lower().split())
        products = [p for p in products if query_words & set(p.name.lower().split())]

    return products


@public_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.get_product_by_id(db, product_id)


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.create_product(db, product)
