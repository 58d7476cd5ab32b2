"""Pytest fixtures for the ERP backend tests."""

import os

# Settings are read at import time, so the environment must be in place first
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OTEL_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ALLOW_PARTIAL_PAYMENTS"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import main
from services.auth_service.models import User, UserRole
from services.auth_service.service import AuthService
from services.notification_service.hub import ConnectionManager
from services.notification_service.service import NotificationService
from services.order_service.constants import OrderStatus
from services.order_service.models import Order
from services.payment_service.gateways import (
    ChargeResult,
    GatewayRegistry,
    PaymentGateway,
    SimulatedGateway,
    get_gateways,
)
from services.payment_service.models import PaymentMethod
from services.product_service.models import Product
from shared.config.database import Base, get_db
from shared.errors import GatewayError
from shared.security import create_access_token

SUB_APPS = [
    main.auth_app,
    main.customer_app,
    main.product_app,
    main.order_app,
    main.payment_app,
    main.notification_app,
]

PASSWORD = "secret123"


class FakeStripe(PaymentGateway):
    """Records calls; fails when ``fail_with`` is set."""

    name = "stripe"

    def __init__(self):
        self.charges = []
        self.refunds = []
        self.fail_with = None
        self.refund_fail_with = None

    async def charge(self, amount, currency, metadata, idempotency_key=None):
        self.charges.append(
            {"amount": amount, "currency": currency, "metadata": metadata, "idempotency_key": idempotency_key}
        )
        if self.fail_with:
            raise GatewayError(self.fail_with)
        return ChargeResult(transaction_id=f"pi_test_{len(self.charges)}", raw_response={"status": "succeeded"})

    async def refund(self, transaction_id, amount):
        self.refunds.append({"transaction_id": transaction_id, "amount": amount})
        if self.refund_fail_with:
            raise GatewayError(self.refund_fail_with)
        return {"id": f"re_test_{len(self.refunds)}", "status": "succeeded"}


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def connections():
    return ConnectionManager()


@pytest.fixture
def notifier(connections):
    return NotificationService(connections)


@pytest.fixture
def fake_stripe():
    return FakeStripe()


@pytest.fixture
def gateways(fake_stripe):
    return GatewayRegistry(
        {
            PaymentMethod.STRIPE: fake_stripe,
            PaymentMethod.PAYPAL: SimulatedGateway("paypal"),
            PaymentMethod.MAYA: SimulatedGateway("maya"),
        }
    )


@pytest.fixture
def override_dependencies(session_factory, gateways):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    for sub_app in SUB_APPS:
        sub_app.dependency_overrides[get_db] = override_get_db
    main.payment_app.dependency_overrides[get_gateways] = lambda: gateways
    yield
    for sub_app in SUB_APPS:
        sub_app.dependency_overrides.clear()


@pytest.fixture
async def client(override_dependencies):
    transport = httpx.ASGITransport(app=main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def make_user(db, email, role=UserRole.CUSTOMER, name="Test User", password=PASSWORD):
    user = User(
        email=email,
        name=name,
        role=role,
        hashed_password=AuthService.hash_password(password),
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


async def make_product(db, name="Widget", sku="WID-001", price="10.00", stock=50, is_active=True):
    product = Product(name=name, sku=sku, price=Decimal(price), stock=stock, is_active=is_active)
    db.add(product)
    await db.commit()
    return product


async def make_order(db, customer_id, final_amount="110.00", status=OrderStatus.PENDING, number="ORD-20260101-000001"):
    """An order with a fixed final amount and no stock reservation behind it."""
    final = Decimal(final_amount)
    order = Order(
        order_number=number,
        customer_id=customer_id,
        status=status,
        items=[],
        total_amount=final,
        tax_amount=Decimal("0"),
        shipping_cost=Decimal("0"),
        discount_amount=Decimal("0"),
        final_amount=final,
        shipping_address="1 Main St",
        billing_address="1 Main St",
    )
    db.add(order)
    await db.commit()
    return order


def token_for(user) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
async def admin(db):
    return await make_user(db, "admin@acme.io", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
async def customer(db):
    return await make_user(db, "alice@acme.io", name="Alice")


@pytest.fixture
async def other_customer(db):
    return await make_user(db, "bob@acme.io", name="Bob")


@pytest.fixture
async def product(db):
    return await make_product(db)
