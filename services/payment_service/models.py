import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text

from shared.config.database import Base, TimestampMixin


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class PaymentMethod(str, enum.Enum):
    STRIPE = "STRIPE"
    PAYPAL = "PAYPAL"
    MAYA = "MAYA"
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"


# Settled offline and confirmed later by staff
MANUAL_METHODS = {PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER}


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    payment_method = Column(
        Enum(PaymentMethod, name="payment_method", native_enum=False, length=20),
        nullable=False,
    )
    status = Column(
        Enum(PaymentStatus, name="payment_status", native_enum=False, length=20),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    gateway_transaction_id = Column(String(255), nullable=True)
    gateway_response = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=False, default=0)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    # "metadata" is reserved on declarative classes
    payment_metadata = Column("metadata", JSON, nullable=True)
