from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.schemas import Money
from services.payment_service.models import PaymentMethod, PaymentStatus

from .constants import OrderStatus


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int


class OrderCreate(BaseModel):
    customer_id: int
    items: List[OrderItemIn] = Field(min_length=1)
    shipping_address: str = Field(min_length=1)
    billing_address: str = Field(min_length=1)
    notes: Optional[str] = None


class OrderUpdate(BaseModel):
    shipping_address: Optional[str] = Field(default=None, min_length=1)
    billing_address: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    expected_delivery_date: Optional[date] = None

    @field_validator("shipping_address", "billing_address")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderCancel(BaseModel):
    reason: Optional[str] = None


class OrderItemSnapshot(BaseModel):
    """One line of an order as stored: camelCase keys, prices frozen at checkout."""

    product_id: int = Field(alias="productId")
    product_name: str = Field(alias="productName")
    quantity: int
    unit_price: Money = Field(alias="unitPrice")
    total_price: Money = Field(alias="totalPrice")

    model_config = ConfigDict(populate_by_name=True)


class OrderPayment(BaseModel):
    id: int
    amount: Money
    currency: str
    payment_method: PaymentMethod
    status: PaymentStatus
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: int
    order_number: str
    customer_id: int
    status: OrderStatus
    items: List[OrderItemSnapshot]
    total_amount: Money
    tax_amount: Money
    shipping_cost: Money
    discount_amount: Money
    final_amount: Money
    amount_paid: Money
    balance_due: Money
    is_fully_paid: bool
    shipping_address: str
    billing_address: str
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    delivered_date: Optional[date] = None
    payments: List[OrderPayment] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderList(BaseModel):
    orders: List[OrderResponse]
    total: int
