from sqlalchemy import Boolean, Column, Date, Integer, Numeric, String, Text

from shared.config.database import Base, TimestampMixin


class Customer(TimestampMixin, Base):
    """Customer profile; attribute storage kept apart from login accounts."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    company = Column(String(255), nullable=True)
    tax_id = Column(String(100), nullable=True)
    default_shipping_address = Column(Text, nullable=True)
    default_billing_address = Column(Text, nullable=True)
    preferred_language = Column(String(10), default="en", nullable=False)
    preferred_currency = Column(String(3), default="USD", nullable=False)
    timezone = Column(String(64), default="UTC", nullable=False)
    credit_limit = Column(Numeric(10, 2), default=0, nullable=False)
    current_balance = Column(Numeric(10, 2), default=0, nullable=False)
    loyalty_points = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_vip = Column(Boolean, default=False, nullable=False)
    preferred_payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
