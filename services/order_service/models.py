from decimal import Decimal

from sqlalchemy import JSON, Column, Date, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from shared.config.database import Base, TimestampMixin
from shared.schemas import to_money
from services.payment_service.models import Payment, PaymentStatus

from .constants import OrderStatus


class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        Enum(OrderStatus, name="order_status", native_enum=False, length=20),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )

    # [{productId, productName, quantity, unitPrice, totalPrice}] captured at checkout
    items = Column(JSON, nullable=False, default=list)

    total_amount = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    final_amount = Column(Numeric(10, 2), nullable=False)

    shipping_address = Column(Text, nullable=False)
    billing_address = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    expected_delivery_date = Column(Date, nullable=True)
    delivered_date = Column(Date, nullable=True)

    payments = relationship(
        Payment,
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=Payment.id,
    )

    @property
    def amount_paid(self) -> Decimal:
        return to_money(
            sum((p.amount for p in self.payments if p.status == PaymentStatus.COMPLETED), Decimal("0"))
        )

    @property
    def balance_due(self) -> Decimal:
        return to_money(Decimal(self.final_amount) - self.amount_paid)

    @property
    def is_fully_paid(self) -> bool:
        return self.balance_due <= 0
