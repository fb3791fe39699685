from fastapi import FastAPI
from sqlalchemy import text
from shared.config.database import engine, Base, SERVICE_SCHEMAS

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models
from services.order_service import models as order_models

from services.product_service.main import product_app
from services.order_service.main import order_app

app = FastAPI(title="Rayova Storefront API")

@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        # Create schemas
        for schema in SERVICE_SCHEMAS:
            await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))

        # Create all tables
        await conn.run_sync(Base.metadata.create_all)

@app.get("/health")
async def health_check():
    return {"service": "storefront", "status": "running"}

app.mount("/products", product_app)
app.mount("/orders", order_app)
