from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from shared.schemas import Money


class CustomerBase(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    company: Optional[str] = None
    tax_id: Optional[str] = None
    default_shipping_address: Optional[str] = None
    default_billing_address: Optional[str] = None
    preferred_language: str = "en"
    preferred_currency: str = Field(default="USD", min_length=3, max_length=3)
    timezone: str = "UTC"
    credit_limit: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = True
    is_vip: bool = False
    preferred_payment_method: Optional[str] = None
    notes: Optional[str] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    company: Optional[str] = None
    tax_id: Optional[str] = None
    default_shipping_address: Optional[str] = None
    default_billing_address: Optional[str] = None
    preferred_language: Optional[str] = None
    preferred_currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    timezone: Optional[str] = None
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    is_vip: Optional[bool] = None
    preferred_payment_method: Optional[str] = None
    notes: Optional[str] = None


class BalanceAdjustment(BaseModel):
    amount: Decimal


class LoyaltyPointsAward(BaseModel):
    points: int = Field(gt=0)


class CustomerResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    company: Optional[str] = None
    tax_id: Optional[str] = None
    default_shipping_address: Optional[str] = None
    default_billing_address: Optional[str] = None
    preferred_language: str
    preferred_currency: str
    timezone: str
    credit_limit: Money
    current_balance: Money
    loyalty_points: int
    is_active: bool
    is_vip: bool
    preferred_payment_method: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CustomerList(BaseModel):
    customers: List[CustomerResponse]
    total: int
