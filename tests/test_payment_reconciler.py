"""Tests for payment creation, balance reconciliation and refunds."""

from decimal import Decimal

import httpx
import pytest
from pydantic import ValidationError

from conftest import make_order
from services.order_service.constants import OrderStatus
from services.order_service.service import OrderService
from services.payment_service.gateways import GatewayRegistry, PaymentGateway, StripeGateway
from services.payment_service.models import PaymentMethod, PaymentStatus
from services.payment_service.schemas import PaymentCreate, RefundRequest
from services.payment_service.service import PaymentService
from shared.errors import (
    CustomerNotFound,
    GatewayError,
    InvalidAmount,
    OrderNotFound,
    OrderNotPayable,
    OverpaymentNotAllowed,
    PaymentNotFound,
    PaymentNotRefundable,
    RefundExceedsPayment,
    RefundFailed,
    UnderpaymentNotAllowed,
)


def pay(order, customer, amount, method=PaymentMethod.STRIPE, **extra):
    return PaymentCreate(
        order_id=order.id,
        customer_id=customer.id,
        amount=Decimal(amount),
        payment_method=method,
        **extra,
    )


@pytest.fixture
def payments(db, notifier, gateways):
    return PaymentService(db, notifier, gateways, allow_partial=False)


@pytest.fixture
async def order(db, customer):
    return await make_order(db, customer.id, final_amount="110.00")


class TestCreatePayment:
    async def test_partial_amount_is_rejected(self, payments, order, customer):
        with pytest.raises(UnderpaymentNotAllowed):
            await payments.create_payment(pay(order, customer, "50.00"))

    async def test_exact_amount_completes_and_settles_order(self, db, payments, order, customer, fake_stripe):
        payment = await payments.create_payment(pay(order, customer, "110.00"))

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.gateway_transaction_id == "pi_test_1"
        assert payment.processed_at is not None
        assert fake_stripe.charges[0]["amount"] == Decimal("110.00")
        assert fake_stripe.charges[0]["idempotency_key"] == f"erp-payment-{payment.id}"

        settled = await OrderService(db, payments.notifier).get_order(order.id)
        assert settled.amount_paid == Decimal("110.00")
        assert settled.balance_due == Decimal("0.00")
        assert settled.is_fully_paid

    async def test_overpayment_is_rejected(self, payments, order, customer):
        with pytest.raises(OverpaymentNotAllowed):
            await payments.create_payment(pay(order, customer, "110.01"))

    async def test_second_payment_on_settled_order_is_rejected(self, payments, order, customer):
        await payments.create_payment(pay(order, customer, "110.00"))
        with pytest.raises(OverpaymentNotAllowed):
            await payments.create_payment(pay(order, customer, "1.00"))

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    async def test_non_positive_amount(self, payments, order, customer, amount):
        with pytest.raises(InvalidAmount):
            await payments.create_payment(pay(order, customer, amount))

    async def test_unknown_order(self, payments, customer):
        class Missing:
            id = 999

        with pytest.raises(OrderNotFound):
            await payments.create_payment(pay(Missing, customer, "10.00"))

    async def test_unknown_customer(self, payments, order):
        class Nobody:
            id = 999

        with pytest.raises(CustomerNotFound):
            await payments.create_payment(pay(order, Nobody, "110.00"))

    @pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.CANCELLED])
    async def test_order_must_be_payable(self, db, payments, customer, status):
        order = await make_order(db, customer.id, status=status, number="ORD-20260101-000777")
        with pytest.raises(OrderNotPayable):
            await payments.create_payment(pay(order, customer, "110.00"))

    async def test_manual_method_stays_pending(self, db, payments, order, customer, fake_stripe):
        payment = await payments.create_payment(pay(order, customer, "110.00", method=PaymentMethod.CASH))

        assert payment.status == PaymentStatus.PENDING
        assert fake_stripe.charges == []
        unpaid = await OrderService(db, payments.notifier).get_order(order.id)
        assert unpaid.balance_due == Decimal("110.00")

    async def test_simulated_gateway_completes(self, payments, order, customer):
        payment = await payments.create_payment(pay(order, customer, "110.00", method=PaymentMethod.PAYPAL))
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.gateway_transaction_id.startswith("paypal_")

    async def test_metadata_and_currency_are_kept(self, payments, order, customer):
        payment = await payments.create_payment(
            pay(order, customer, "110.00", currency="eur", metadata={"channel": "web"})
        )
        assert payment.currency == "EUR"
        assert payment.payment_metadata == {"channel": "web"}

    async def test_gateway_failure_records_failed_payment(self, db, payments, order, customer, fake_stripe):
        fake_stripe.fail_with = "Your card was declined."

        with pytest.raises(GatewayError, match="declined"):
            await payments.create_payment(pay(order, customer, "110.00"))

        failed, total = await payments.list_payments(order_id=order.id)
        assert total == 1
        assert failed[0].status == PaymentStatus.FAILED
        assert failed[0].error_message == "Your card was declined."

        # A failed attempt does not count toward the balance
        fake_stripe.fail_with = None
        payment = await payments.create_payment(pay(order, customer, "110.00"))
        assert payment.status == PaymentStatus.COMPLETED

    async def test_partial_payments_when_enabled(self, db, notifier, gateways, order, customer):
        service = PaymentService(db, notifier, gateways, allow_partial=True)

        await service.create_payment(pay(order, customer, "50.00"))
        await service.create_payment(pay(order, customer, "60.00"))
        with pytest.raises(OverpaymentNotAllowed):
            await service.create_payment(pay(order, customer, "0.01"))

        settled = await OrderService(db, notifier).get_order(order.id)
        assert settled.is_fully_paid


class TestRefund:
    @pytest.fixture
    async def completed(self, payments, order, customer):
        return await payments.create_payment(pay(order, customer, "110.00"))

    async def test_full_refund(self, payments, completed, fake_stripe):
        refunded = await payments.refund_payment(completed.id, reason="Damaged")

        assert refunded.status == PaymentStatus.REFUNDED
        assert refunded.refund_amount == Decimal("110.00")
        assert refunded.refunded_at is not None
        assert refunded.payment_metadata["refundReason"] == "Damaged"
        assert fake_stripe.refunds == [{"transaction_id": "pi_test_1", "amount": Decimal("110.00")}]

    async def test_partial_refund(self, payments, completed):
        refunded = await payments.refund_payment(completed.id, Decimal("10.00"))
        assert refunded.status == PaymentStatus.PARTIALLY_REFUNDED
        assert refunded.refund_amount == Decimal("10.00")

    async def test_refund_more_than_paid(self, payments, completed):
        with pytest.raises(RefundExceedsPayment):
            await payments.refund_payment(completed.id, Decimal("110.01"))

    async def test_refund_non_positive(self, payments, completed):
        with pytest.raises(InvalidAmount):
            await payments.refund_payment(completed.id, Decimal("0"))

    async def test_only_completed_payments_refund(self, payments, completed):
        await payments.refund_payment(completed.id)
        with pytest.raises(PaymentNotRefundable):
            await payments.refund_payment(completed.id)

    async def test_gateway_refund_failure(self, payments, completed, fake_stripe):
        fake_stripe.refund_fail_with = "charge already refunded"

        with pytest.raises(RefundFailed, match="Stripe refund failed: charge already refunded"):
            await payments.refund_payment(completed.id)

        unchanged = await payments.get_payment(completed.id)
        assert unchanged.status == PaymentStatus.COMPLETED

    async def test_manual_payment_refund_skips_gateway(self, db, payments, customer, fake_stripe):
        order = await make_order(db, customer.id, number="ORD-20260101-000888")
        cash = await payments.create_payment(pay(order, customer, "110.00", method=PaymentMethod.CASH))
        cash.status = PaymentStatus.COMPLETED
        await db.commit()

        refunded = await payments.refund_payment(cash.id, Decimal("30.00"))
        assert refunded.status == PaymentStatus.PARTIALLY_REFUNDED
        assert fake_stripe.refunds == []

    async def test_unknown_payment(self, payments):
        with pytest.raises(PaymentNotFound):
            await payments.refund_payment(12345)


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_json(self, message):
        self.sent.append(message)


class CrashingGateway(PaymentGateway):
    """Fails with an unexpected error instead of a GatewayError."""

    name = "stripe"

    async def charge(self, amount, currency, metadata, idempotency_key=None):
        raise RuntimeError("connection pool exhausted")

    async def refund(self, transaction_id, amount):
        raise RuntimeError("connection pool exhausted")


class TestMisbehavingGateway:
    async def test_unreadable_stripe_response_is_recorded_as_failed(
        self, db, notifier, connections, order, customer
    ):
        def handler(request):
            return httpx.Response(200, text="<html>ok</html>")

        stripe = StripeGateway("sk_test_123", transport=httpx.MockTransport(handler))
        service = PaymentService(
            db, notifier, GatewayRegistry({PaymentMethod.STRIPE: stripe}), allow_partial=False
        )
        admin_socket, customer_socket = RecordingSocket(), RecordingSocket()
        await connections.connect(admin_socket, 99, is_admin=True)
        await connections.connect(customer_socket, customer.id, is_admin=False)

        with pytest.raises(GatewayError, match="unreadable response"):
            await service.create_payment(pay(order, customer, "110.00"))

        failed, total = await service.list_payments(order_id=order.id)
        assert total == 1
        assert failed[0].status == PaymentStatus.FAILED
        assert "unreadable response" in failed[0].error_message
        assert [m["event"] for m in admin_socket.sent] == ["payment_status_changed", "payment_failed"]
        assert customer_socket.sent[0]["event"] == "payment_status_update"
        assert customer_socket.sent[0]["data"]["status"] == "FAILED"

    async def test_unexpected_adapter_error_is_recorded_as_failed(self, db, notifier, order, customer):
        service = PaymentService(
            db, notifier, GatewayRegistry({PaymentMethod.STRIPE: CrashingGateway()}), allow_partial=False
        )

        with pytest.raises(GatewayError, match="Stripe charge failed: connection pool exhausted"):
            await service.create_payment(pay(order, customer, "110.00"))

        failed, _ = await service.list_payments(order_id=order.id)
        assert failed[0].status == PaymentStatus.FAILED

    async def test_unexpected_refund_error_becomes_refund_failed(self, db, notifier, payments, order, customer):
        completed = await payments.create_payment(pay(order, customer, "110.00"))
        service = PaymentService(
            db, notifier, GatewayRegistry({PaymentMethod.STRIPE: CrashingGateway()}), allow_partial=False
        )

        with pytest.raises(RefundFailed, match="connection pool exhausted"):
            await service.refund_payment(completed.id)
        assert (await service.get_payment(completed.id)).status == PaymentStatus.COMPLETED


class TestOutOfRangeAmounts:
    async def test_huge_payment_is_overpayment(self, payments, order, customer):
        # Bypasses schema validation the way an internal caller could
        request = PaymentCreate.model_construct(
            order_id=order.id,
            customer_id=customer.id,
            amount=Decimal("1e30"),
            payment_method=PaymentMethod.STRIPE,
            currency="USD",
            metadata=None,
        )
        with pytest.raises(OverpaymentNotAllowed):
            await payments.create_payment(request)

    async def test_huge_refund_exceeds_payment(self, payments, order, customer):
        completed = await payments.create_payment(pay(order, customer, "110.00"))
        with pytest.raises(RefundExceedsPayment):
            await payments.refund_payment(completed.id, Decimal("1e30"))

    async def test_schema_caps_amount_precision(self):
        with pytest.raises(ValidationError):
            PaymentCreate(order_id=1, customer_id=1, amount=Decimal("1e30"), payment_method=PaymentMethod.CASH)
        with pytest.raises(ValidationError):
            RefundRequest(amount=Decimal("10.001"))
