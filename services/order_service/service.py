import math
import time
import uuid
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.cache import CacheBackend
from shared.config.settings import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SHIPPING_COST,
    DEFAULT_SHIPPING_COUNTRY,
    MAX_PAGE_SIZE,
    ORDER_NUMBER_MAX_ATTEMPTS,
    ORDER_STRICT_TRANSITIONS,
)
from shared.errors import (
    AppError,
    AuthorizationError,
    GenerationFailure,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from shared.observability import (
    ecomm_order_creation_duration_seconds,
    ecomm_order_number_collisions_total,
    ecomm_order_status_changes_total,
    ecomm_orders_created_total,
)
from shared.security import CurrentUser
from .models import Order, OrderItem, OrderStatus, utcnow
from .numbering import generate_order_number, normalize_order_number
from .repository import OrderRepository
from .schemas import OrderCreate, OrderPage, OrderResponse
from .stats import StatsPeriod, invalidate_order_caches

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
TAX_RATE = Decimal("0")
# Largest value the Numeric(10, 2) money columns hold
MAX_AMOUNT = Decimal("99999999.99")


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENT)


class OrderService:
    @staticmethod
    async def create_order(
        db: AsyncSession,
        cache: CacheBackend,
        data: OrderCreate,
        user: Optional[CurrentUser] = None,
    ) -> Order:
        """Validates the cart against the catalog, prices it and persists the
        order, its items and the stock decrements as one transaction."""
        started = time.perf_counter()

        line_totals = [_money(item.product_price * item.quantity) for item in data.items]
        subtotal = _money(sum(line_totals, Decimal("0")))
        shipping_cost = _money(
            data.shipping_cost if data.shipping_cost is not None else DEFAULT_SHIPPING_COST
        )
        tax = _money(subtotal * TAX_RATE)
        total = subtotal + shipping_cost + tax

        too_large = [
            {"field": f"items.{index}.quantity", "message": "The line total exceeds the maximum order amount"}
            for index, line_total in enumerate(line_totals)
            if line_total > MAX_AMOUNT
        ]
        if not too_large and total > MAX_AMOUNT:
            too_large.append({"field": "total", "message": "The order total exceeds the maximum order amount"})
        if too_large:
            raise ValidationError(too_large)

        if data.subtotal is not None and _money(data.subtotal) != subtotal:
            logger.warning("client_subtotal_mismatch", submitted=str(data.subtotal), computed=str(subtotal))
        if data.total is not None and _money(data.total) != total:
            logger.warning("client_total_mismatch", submitted=str(data.total), computed=str(total))

        pricing = {"subtotal": subtotal, "shipping_cost": shipping_cost, "tax": tax, "total": total}

        # The unique index is the last word on order numbers: a number taken
        # after the existence check fails the insert and the whole attempt
        # is replayed.
        for attempt in range(1, ORDER_NUMBER_MAX_ATTEMPTS + 1):
            try:
                order = await OrderService._place_order(db, data, user, line_totals, pricing)
                break
            except IntegrityError as exc:
                await db.rollback()
                if "order_number" not in str(exc.orig):
                    logger.error("order_persist_failed", error=str(exc))
                    raise PersistenceError() from exc
                ecomm_order_number_collisions_total.inc()
                logger.warning("order_number_taken_on_insert", attempt=attempt)
            except AppError:
                await db.rollback()
                raise
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.error("order_persist_failed", error=str(exc))
                raise PersistenceError() from exc
        else:
            logger.error("order_number_exhausted", attempts=ORDER_NUMBER_MAX_ATTEMPTS)
            raise GenerationFailure()

        await invalidate_order_caches(cache)

        ecomm_orders_created_total.labels(customer_type="registered" if user else "guest").inc()
        ecomm_order_creation_duration_seconds.observe(time.perf_counter() - started)
        logger.info(
            "order_created",
            order_id=str(order.id),
            order_number=order.order_number,
            items=len(order.items),
            total=str(total),
            guest=user is None,
        )
        return await OrderRepository.get_order(db, order.id)

    @staticmethod
    async def _place_order(
        db: AsyncSession,
        data: OrderCreate,
        user: Optional[CurrentUser],
        line_totals: list[Decimal],
        pricing: dict,
    ) -> Order:
        products = await ProductRepository.get_products_by_ids(
            db, (item.product_id for item in data.items)
        )
        missing = [
            {"field": f"items.{index}.product_id", "message": "The selected product does not exist"}
            for index, item in enumerate(data.items)
            if item.product_id not in products
        ]
        if missing:
            raise ValidationError(missing)

        # Lines keep the submitted unit price; divergence from the catalog is
        # recorded for review.
        for index, item in enumerate(data.items):
            catalog_price = _money(products[item.product_id].price)
            if _money(item.product_price) != catalog_price:
                logger.warning(
                    "item_price_mismatch",
                    line=index,
                    product_id=str(item.product_id),
                    submitted=str(item.product_price),
                    catalog=str(catalog_price),
                )

        short = []
        for index, item in enumerate(data.items):
            if not await ProductRepository.reserve_stock(db, item.product_id, item.quantity):
                short.append({
                    "field": f"items.{index}.quantity",
                    "message": f"Insufficient stock for {products[item.product_id].name}",
                })
        if short:
            raise ValidationError(short)

        order_number = await generate_order_number(
            lambda candidate: OrderRepository.order_number_exists(db, candidate)
        )

        order = Order(
            order_number=order_number,
            user_id=user.id if user else None,
            status=OrderStatus.PENDING.value,
            customer_name=data.customer_name,
            shipping_address=data.shipping_address,
            shipping_city=data.shipping_city,
            shipping_postal_code=data.shipping_postal_code,
            shipping_country=data.shipping_country or DEFAULT_SHIPPING_COUNTRY,
            shipping_phone=data.shipping_phone,
            whatsapp_phone=data.whatsapp_phone or data.shipping_phone,
            billing_address=data.billing_address or data.shipping_address,
            notes=data.notes,
            **pricing,
        )
        order.items = [
            OrderItem(
                product_id=item.product_id,
                product_name=item.product_name,
                product_price=_money(item.product_price),
                quantity=item.quantity,
                subtotal=line_total,
            )
            for item, line_total in zip(data.items, line_totals)
        ]

        await OrderRepository.add_order(db, order)
        await db.commit()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: uuid.UUID, user: CurrentUser) -> Order:
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFoundError("Order not found")

        # Customers only see their own orders
        if not user.is_admin and order.user_id != user.id:
            raise AuthorizationError("Unauthorized")
        return order

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        user: CurrentUser,
        status: Optional[str] = None,
        period: StatsPeriod = StatsPeriod.ALL,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> OrderPage:
        per_page = max(1, min(per_page, MAX_PAGE_SIZE))
        page = max(1, page)

        filters = {}
        if user.is_admin:
            if status and status != "all":
                filters["status"] = OrderStatus.parse(status).value
            filters["created_from"] = period.start(utcnow())
            filters["search"] = search.strip() if search else None
        else:
            filters["user_id"] = user.id

        orders, total = await OrderRepository.list_orders(
            db, offset=(page - 1) * per_page, limit=per_page, **filters
        )
        return OrderPage(
            data=[OrderResponse.model_validate(order) for order in orders],
            current_page=page,
            per_page=per_page,
            total=total,
            last_page=max(1, math.ceil(total / per_page)),
        )

    @staticmethod
    async def update_status(
        db: AsyncSession,
        cache: CacheBackend,
        order_id: uuid.UUID,
        status: str,
        strict: bool = ORDER_STRICT_TRANSITIONS,
    ) -> Order:
        new_status = OrderStatus.parse(status)

        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFoundError("Order not found")

        current = OrderStatus(order.status)
        if strict and not current.can_transition_to(new_status):
            raise ValidationError.for_field(
                "status",
                f"An order cannot move from {current.value} to {new_status.value}",
            )

        order.status = new_status.value
        order.updated_at = utcnow()
        await OrderRepository.save(db, order)

        # Stats must not be served stale once this call returns
        await invalidate_order_caches(cache)

        ecomm_order_status_changes_total.labels(status=new_status.value).inc()
        logger.info(
            "order_status_updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous=current.value,
            status=new_status.value,
        )
        return order

    @staticmethod
    async def delete_order(db: AsyncSession, cache: CacheBackend, order_id: uuid.UUID) -> None:
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFoundError("Order not found")

        order_number = order.order_number
        await OrderRepository.delete_order(db, order)
        await invalidate_order_caches(cache)
        logger.info("order_deleted", order_id=str(order_id), order_number=order_number)

    @staticmethod
    async def track_order(db: AsyncSession, order_number: str) -> Order:
        # Malformed and unknown numbers get the same answer
        not_found = NotFoundError("Order not found")

        normalized = normalize_order_number(order_number)
        if normalized is None:
            raise not_found

        order = await OrderRepository.get_by_order_number(db, normalized)
        if not order:
            raise not_found
        return order
