from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.schemas import Money

from .models import PaymentMethod, PaymentStatus

SUPPORTED_CURRENCIES = ["USD", "EUR", "PHP", "GBP", "CAD"]

STATUS_DESCRIPTIONS = {
    PaymentStatus.PENDING: "Payment initiated but not yet processed",
    PaymentStatus.PROCESSING: "Payment is being processed by gateway",
    PaymentStatus.COMPLETED: "Payment successfully completed",
    PaymentStatus.FAILED: "Payment failed",
    PaymentStatus.CANCELLED: "Payment was cancelled",
    PaymentStatus.REFUNDED: "Payment has been refunded",
    PaymentStatus.PARTIALLY_REFUNDED: "Payment partially refunded",
}


class PaymentCreate(BaseModel):
    order_id: int
    customer_id: int
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    payment_method: PaymentMethod
    currency: str = Field(default="USD", min_length=3, max_length=3)
    metadata: Optional[Dict[str, Any]] = None


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    reason: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    customer_id: int
    amount: Money
    currency: str
    payment_method: PaymentMethod
    status: PaymentStatus
    gateway_transaction_id: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    refund_amount: Money
    processed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="payment_metadata")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentList(BaseModel):
    payments: List[PaymentResponse]
    total: int


class PaymentMethods(BaseModel):
    methods: List[PaymentMethod]
    supported_currencies: List[str]
    default_currency: str


class PaymentStatuses(BaseModel):
    statuses: List[PaymentStatus]
    descriptions: Dict[PaymentStatus, str]


class GatewayStatus(BaseModel):
    connected: bool
    account: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
