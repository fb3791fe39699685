"""
Read-only aggregates over orders for the admin back office.

Snapshots are cached through the injected cache backend and dropped by
``invalidate_order_caches`` whenever an order is created, changes status or
is deleted.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.cache import CacheBackend
from shared.config.settings import LOW_STOCK_THRESHOLD, STATS_CACHE_TTL_SECONDS
from shared.observability import ecomm_stats_cache_requests_total
from .models import OrderStatus
from .repository import OrderRepository
from .schemas import (
    DashboardOrderSummary,
    DashboardStatsResponse,
    OrderStatsResponse,
    ProductSummary,
    TopProductResponse,
)

logger = structlog.get_logger(__name__)

ORDER_STATS_KEY = "order_stats"
DASHBOARD_STATS_KEY = "dashboard_stats"
GENERATION_KEY = "order_stats:generation"

CENT = Decimal("0.01")

# Statuses whose totals count as revenue on the dashboard
_BOOKED_STATUSES = (
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


class StatsPeriod(str, Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"

    def start(self, now: datetime) -> Optional[datetime]:
        """UTC instant the period starts at, None for ``all``."""
        midnight = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        if self is StatsPeriod.DAY:
            return midnight
        if self is StatsPeriod.MONTH:
            return midnight.replace(day=1)
        if self is StatsPeriod.YEAR:
            return midnight.replace(month=1, day=1)
        return None


def order_stats_key(period: StatsPeriod) -> str:
    return f"{ORDER_STATS_KEY}:{period.value}"


async def invalidate_order_caches(cache: CacheBackend) -> None:
    # Bump first: a rebuild already in flight then writes a snapshot that
    # readers will reject.
    await cache.incr(GENERATION_KEY)
    await cache.delete(DASHBOARD_STATS_KEY, *(order_stats_key(p) for p in StatsPeriod))


async def _cached_snapshot(cache: CacheBackend, key: str, generation: int, label: str) -> Optional[dict]:
    entry = await cache.get(key)
    if isinstance(entry, dict) and entry.get("generation") == generation:
        ecomm_stats_cache_requests_total.labels(cache=label, result="hit").inc()
        return entry["snapshot"]
    ecomm_stats_cache_requests_total.labels(cache=label, result="miss").inc()
    return None


async def _store_snapshot(cache: CacheBackend, key: str, generation: int, snapshot) -> None:
    entry = {"generation": generation, "snapshot": snapshot.model_dump(mode="json")}
    await cache.set(key, entry, STATS_CACHE_TTL_SECONDS)


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT)


class OrderStatsService:
    @staticmethod
    async def order_stats(
        db: AsyncSession,
        cache: CacheBackend,
        period: StatsPeriod = StatsPeriod.ALL,
        now: Optional[datetime] = None,
    ) -> OrderStatsResponse:
        key = order_stats_key(period)
        generation = await cache.counter(GENERATION_KEY)
        cached = await _cached_snapshot(cache, key, generation, ORDER_STATS_KEY)
        if cached is not None:
            return OrderStatsResponse.model_validate(cached)

        now = now or datetime.now(timezone.utc)
        by_status = await OrderRepository.totals_by_status(db, period.start(now))

        counts = {status.value: 0 for status in OrderStatus}
        for status, (count, _, _, _) in by_status.items():
            counts[status] = int(count)

        _, delivered_subtotal, delivered_shipping, _ = by_status.get(
            OrderStatus.DELIVERED.value, (0, 0, 0, 0)
        )

        stats = OrderStatsResponse(
            period=period.value,
            total=sum(counts.values()),
            revenue=_money(delivered_subtotal),
            total_shipping=_money(delivered_shipping),
            today=await OrderRepository.count_since(db, StatsPeriod.DAY.start(now)),
            this_month=await OrderRepository.count_since(db, StatsPeriod.MONTH.start(now)),
            **counts,
        )
        await _store_snapshot(cache, key, generation, stats)
        return stats

    @staticmethod
    async def dashboard_stats(
        db: AsyncSession,
        cache: CacheBackend,
        now: Optional[datetime] = None,
    ) -> DashboardStatsResponse:
        generation = await cache.counter(GENERATION_KEY)
        cached = await _cached_snapshot(cache, DASHBOARD_STATS_KEY, generation, DASHBOARD_STATS_KEY)
        if cached is not None:
            return DashboardStatsResponse.model_validate(cached)

        now = now or datetime.now(timezone.utc)
        by_status = await OrderRepository.totals_by_status(db)

        def count(*statuses: OrderStatus) -> int:
            return sum(int(by_status.get(s.value, (0,))[0]) for s in statuses)

        revenue = sum(
            (_money(by_status[s.value][3]) for s in _BOOKED_STATUSES if s.value in by_status),
            Decimal("0.00"),
        )

        stats = DashboardStatsResponse(
            products=ProductSummary(**await ProductRepository.summary(db, LOW_STOCK_THRESHOLD)),
            orders=DashboardOrderSummary(
                total=count(*OrderStatus),
                pending=count(OrderStatus.PENDING),
                processing=count(OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
                completed=count(OrderStatus.DELIVERED),
                revenue=revenue,
                today=await OrderRepository.count_since(db, StatsPeriod.DAY.start(now)),
                this_month=await OrderRepository.count_since(db, StatsPeriod.MONTH.start(now)),
            ),
        )
        await _store_snapshot(cache, DASHBOARD_STATS_KEY, generation, stats)
        return stats

    @staticmethod
    async def recent_orders(db: AsyncSession, limit: int = 10):
        return await OrderRepository.recent_orders(db, limit)

    @staticmethod
    async def top_products(db: AsyncSession, limit: int = 5) -> list[TopProductResponse]:
        rows = await OrderRepository.top_products(db, limit)
        return [
            TopProductResponse(
                product_id=product_id,
                product_name=product_name,
                order_count=int(order_count),
                units_sold=int(units_sold),
            )
            for product_id, product_name, order_count, units_sold in rows
        ]
