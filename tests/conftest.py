import os

# Must be set before the services are imported
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shared.cache import InMemoryCache, get_cache
from shared.config.database import Base, SERVICE_SCHEMAS, get_db
from shared.security import create_access_token
from services.order_service.main import order_app
from services.product_service.main import product_app
from services.product_service.models import Product

ADMIN_ID = 1
CUSTOMER_ID = 2
OTHER_CUSTOMER_ID = 3


@pytest.fixture
async def engine():
    base_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(base_engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # SQLite has no schemas: put every table in the main database
    engine = base_engine.execution_options(
        schema_translate_map={schema: None for schema in SERVICE_SCHEMAS}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await base_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def override_dependencies(session_factory, cache):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    apps = (order_app, product_app)
    for app in apps:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_cache] = lambda: cache
    yield
    for app in apps:
        app.dependency_overrides.clear()


@pytest.fixture
async def client(override_dependencies):
    async with AsyncClient(transport=ASGITransport(app=order_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def product_client(override_dependencies):
    async with AsyncClient(transport=ASGITransport(app=product_app), base_url="http://test") as ac:
        yield ac


def bearer(user_id: int, role: str = "customer") -> dict:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_id():
    return CUSTOMER_ID


@pytest.fixture
def admin_headers():
    return bearer(ADMIN_ID, "admin")


@pytest.fixture
def customer_headers():
    return bearer(CUSTOMER_ID)


@pytest.fixture
def other_customer_headers():
    return bearer(OTHER_CUSTOMER_ID)


@pytest.fixture
async def products(session_factory):
    """Two in-stock perfumes priced 100.00 and 50.00."""
    async with session_factory() as session:
        oud = Product(name="Oud Royal", price=Decimal("100.00"), stock_quantity=10)
        rose = Product(name="Rose Musk", price=Decimal("50.00"), stock_quantity=10)
        session.add_all([oud, rose])
        await session.commit()
        return oud, rose


@pytest.fixture
def order_payload(products):
    """Builds a checkout body; by default two Oud Royal and one Rose Musk,
    shipped for 20.00."""
    oud, rose = products

    def build(items=None, **overrides):
        if items is None:
            items = [(oud, 2), (rose, 1)]
        payload = {
            "customer_name": "Salma Benali",
            "shipping_address": "12 Rue des Orangers",
            "shipping_city": "Casablanca",
            "shipping_phone": "0612345678",
            "items": [
                {
                    "product_id": str(product.id),
                    "product_name": product.name,
                    "product_price": str(product.price),
                    "quantity": quantity,
                }
                for product, quantity in items
            ],
            "shipping_cost": "20.00",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def place_order(client, order_payload):
    async def place(headers=None, **overrides):
        response = await client.post("/", json=order_payload(**overrides), headers=headers or {})
        assert response.status_code == 201, response.text
        return response.json()

    return place
