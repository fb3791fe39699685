from fastapi import FastAPI
from sqlalchemy import text
from shared.config.database import engine, Base
from shared.errors import register_exception_handlers
from shared.observability import setup_observability
from shared.security import limiter
from .router import router, public_router, admin_router
from .models import Order, OrderItem # Import to register with Base

order_app = FastAPI(title="Order Service", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(order_app, "order_service")
register_exception_handlers(order_app)

# slowapi looks the limiter up on the app serving the request
order_app.state.limiter = limiter

order_app.include_router(public_router)
order_app.include_router(admin_router)
order_app.include_router(router)

@order_app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.execute(text("CREATE SCHEMA IF NOT EXISTS order_schema"))
        await conn.run_sync(
            Base.metadata.create_all, tables=[Order.__table__, OrderItem.__table__]
        )
