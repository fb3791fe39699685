import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.cache import CacheBackend, get_cache
from shared.config.database import get_db
from shared.config.settings import CHECKOUT_RATE_LIMIT, DEFAULT_PAGE_SIZE, TRACKING_RATE_LIMIT
from shared.security import CurrentUser, get_current_user, get_optional_user, limiter, require_admin
from .schemas import (
    DashboardStatsResponse,
    MessageResponse,
    OrderCreate,
    OrderPage,
    OrderResponse,
    OrderStatsResponse,
    OrderTrackingResponse,
    StatusUpdate,
    TopProductResponse,
    TrackRequest,
)
from .service import OrderService
from .stats import OrderStatsService, StatsPeriod

public_router = APIRouter()
router = APIRouter()
admin_router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


# --- Public: checkout and tracking ---

@public_router.get("/health")
async def health_check():
    return {"service": "order", "status": "running"}


@public_router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def create_order(
    request: Request,
    order: OrderCreate,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return await OrderService.create_order(db, cache, order, user)


@public_router.post("/track", response_model=OrderTrackingResponse)
@limiter.limit(TRACKING_RATE_LIMIT)
async def track_order(
    request: Request,
    payload: TrackRequest,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.track_order(db, payload.order_number)


# --- Authenticated: own orders (admins see everything) ---

@router.get("/", response_model=OrderPage)
async def list_orders(
    status: Optional[str] = Query(default=None),
    period: StatsPeriod = Query(default=StatsPeriod.ALL),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=DEFAULT_PAGE_SIZE, ge=1),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.list_orders(
        db, user, status=status, period=period, search=search, page=page, per_page=per_page
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.get_order(db, order_id, user)


# --- Admin back office ---

@admin_router.get("/stats", response_model=OrderStatsResponse)
async def order_stats(
    period: StatsPeriod = Query(default=StatsPeriod.ALL),
    db: AsyncSession = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return await OrderStatsService.order_stats(db, cache, period)


@admin_router.get("/dashboard", response_model=DashboardStatsResponse)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return await OrderStatsService.dashboard_stats(db, cache)


@admin_router.get("/recent", response_model=list[OrderResponse])
async def recent_orders(db: AsyncSession = Depends(get_db)):
    return await OrderStatsService.recent_orders(db)


@admin_router.get("/top-products", response_model=list[TopProductResponse])
async def top_products(db: AsyncSession = Depends(get_db)):
    return await OrderStatsService.top_products(db)


@admin_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_status(
    order_id: uuid.UUID,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    return await OrderService.update_status(db, cache, order_id, payload.status)


@admin_router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: CacheBackend = Depends(get_cache),
):
    await OrderService.delete_order(db, cache, order_id)
    return {"message": "Order deleted"}
