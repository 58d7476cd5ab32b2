import enum
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.schemas import Money


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    sku: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None
    price: Decimal
    stock: int = 0
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    sku: Optional[str] = Field(default=None, min_length=1, max_length=64)
    description: Optional[str] = None
    price: Optional[Decimal] = None
    stock: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("name", "sku", "price", "stock", "is_active")
    @classmethod
    def not_null(cls, value):
        # Omit a field to leave it unchanged; null is not a value for these columns
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class StockDirection(str, enum.Enum):
    ADD = "add"
    SUBTRACT = "subtract"


class StockUpdate(BaseModel):
    quantity: int


class StockAdjustment(BaseModel):
    quantity: int
    operation: StockDirection = StockDirection.ADD


class ProductResponse(BaseModel):
    id: int
    name: str
    sku: str
    description: Optional[str] = None
    price: Money
    stock: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductList(BaseModel):
    products: List[ProductResponse]
    total: int
