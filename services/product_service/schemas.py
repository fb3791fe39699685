import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock_quantity: int = Field(default=0, ge=0)
    is_active: bool = True


class ProductResponse(BaseModel):
    id: uuid.UUID
    name: str
    price: Decimal
    stock_quantity: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
