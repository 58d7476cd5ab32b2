"""Payment reconciler.

A payment is checked against what the order still owes while the order row
is locked, and the lock is held through the gateway call so two payments on
the same order cannot both pass the balance check.
"""
from decimal import Decimal
from typing import Any, Optional

import structlog
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db, utcnow
from shared.config.settings import settings
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
from shared.observability import erp_payments_total, erp_refunds_total
from shared.schemas import to_money
from services.auth_service.repository import UserRepository
from services.notification_service.service import NotificationService, get_notifier
from services.order_service.constants import PAYABLE_STATES
from services.order_service.repository import OrderRepository

from .gateways import GatewayRegistry, get_gateways
from .models import MANUAL_METHODS, Payment, PaymentStatus
from .repository import PaymentRepository
from .schemas import PaymentCreate

logger = structlog.get_logger(__name__)


def payment_details(payment: Payment, **extra: Any) -> dict:
    return {
        "amount": payment.amount,
        "currency": payment.currency,
        "paymentMethod": payment.payment_method,
        "orderId": payment.order_id,
        **extra,
    }


class PaymentService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationService,
        gateways: GatewayRegistry,
        allow_partial: Optional[bool] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.gateways = gateways
        self.allow_partial = settings.allow_partial_payments if allow_partial is None else allow_partial

    def _checked_amount(self, amount: Decimal, final: Decimal, paid: Decimal) -> Decimal:
        """Validates ``amount`` against the balance and returns it rounded to cents.

        Comparisons run on the raw value; only amounts bounded by the balance
        are quantized.
        """
        if amount <= 0:
            raise InvalidAmount("Payment amount must be greater than 0")
        remaining = final - paid
        if amount > remaining:
            raise OverpaymentNotAllowed("Payment amount exceeds remaining order balance")
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount("Payment amount must be at least 0.01")
        if not self.allow_partial and amount < remaining:
            raise UnderpaymentNotAllowed(
                f"Payment amount (${amount}) does not cover remaining balance (${remaining})."
            )
        return amount

    async def create_payment(self, data: PaymentCreate) -> Payment:
        failure: Optional[GatewayError] = None
        try:
            order = await OrderRepository.get_for_update(self.db, data.order_id)
            if not order:
                raise OrderNotFound("Order not found")
            if not await UserRepository.get_by_id(self.db, data.customer_id):
                raise CustomerNotFound("Customer not found")
            if order.status not in PAYABLE_STATES:
                raise OrderNotPayable("Order cannot be paid in current status")

            amount = self._checked_amount(data.amount, to_money(order.final_amount), order.amount_paid)

            gateway = None if data.payment_method in MANUAL_METHODS else self.gateways.get(data.payment_method)

            payment = Payment(
                order_id=order.id,
                customer_id=data.customer_id,
                amount=amount,
                currency=data.currency.upper(),
                payment_method=data.payment_method,
                status=PaymentStatus.PENDING,
                payment_metadata=data.metadata,
            )
            await PaymentRepository.add_payment(self.db, payment)

            if gateway is not None:
                payment.status = PaymentStatus.PROCESSING
                await self.db.flush()
                try:
                    result = await gateway.charge(
                        amount,
                        payment.currency,
                        {"orderId": order.id, "customerId": payment.customer_id, "paymentId": payment.id},
                        idempotency_key=f"erp-payment-{payment.id}",
                    )
                except GatewayError as exc:
                    failure = exc
                except Exception as exc:
                    # Outcome unknown; the attempt stays on record as FAILED
                    logger.exception("gateway_charge_crashed", payment_id=payment.id, gateway=gateway.name)
                    failure = GatewayError(f"{gateway.name.capitalize()} charge failed: {exc}")

                if failure is not None:
                    payment.status = PaymentStatus.FAILED
                    payment.error_message = failure.message
                else:
                    payment.gateway_transaction_id = result.transaction_id
                    payment.gateway_response = result.raw_response
                    payment.status = PaymentStatus.COMPLETED
                    payment.processed_at = utcnow()

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        erp_payments_total.labels(method=payment.payment_method.value, status=payment.status.value).inc()
        logger.info(
            "payment_recorded",
            payment_id=payment.id,
            order_id=payment.order_id,
            method=payment.payment_method.value,
            status=payment.status.value,
            amount=str(payment.amount),
        )

        if failure is not None:
            await self.notifier.notify_payment_status_update(
                payment.customer_id,
                payment.id,
                PaymentStatus.FAILED.value,
                payment_details(payment, errorMessage=failure.message),
            )
            await self.notifier.notify_failed_payment(
                payment.id, payment.customer_id, failure.message, payment_details(payment)
            )
            raise failure

        if payment.status == PaymentStatus.COMPLETED:
            await self.notifier.notify_payment_status_update(
                payment.customer_id, payment.id, payment.status.value, payment_details(payment)
            )
        return await self.get_payment(payment.id)

    async def get_order(self, order_id: int):
        order = await OrderRepository.get_order(self.db, order_id)
        if not order:
            raise OrderNotFound("Order not found")
        return order

    async def list_payments(self, **filters):
        return await PaymentRepository.search(self.db, **filters)

    async def get_payment(self, payment_id: int) -> Payment:
        payment = await PaymentRepository.get_payment(self.db, payment_id)
        if not payment:
            raise PaymentNotFound("Payment not found")
        return payment

    async def refund_payment(
        self, payment_id: int, amount: Optional[Decimal] = None, reason: Optional[str] = None
    ) -> Payment:
        try:
            payment = await PaymentRepository.get_for_update(self.db, payment_id)
            if not payment:
                raise PaymentNotFound("Payment not found")
            if payment.status != PaymentStatus.COMPLETED:
                raise PaymentNotRefundable("Only completed payments can be refunded")

            paid = to_money(payment.amount)
            requested = paid if amount is None else Decimal(amount)
            if requested <= 0:
                raise InvalidAmount("Refund amount must be greater than 0")
            if requested > paid:
                raise RefundExceedsPayment("Refund amount cannot exceed payment amount")
            refund_amount = to_money(requested)
            if refund_amount <= 0:
                raise InvalidAmount("Refund amount must be at least 0.01")

            if self.gateways.handles(payment.payment_method):
                gateway = self.gateways.get(payment.payment_method)
                try:
                    response = await gateway.refund(payment.gateway_transaction_id, refund_amount)
                except Exception as exc:
                    erp_refunds_total.labels(method=payment.payment_method.value, status="failed").inc()
                    message = exc.message if isinstance(exc, GatewayError) else str(exc)
                    raise RefundFailed(f"{gateway.name.capitalize()} refund failed: {message}") from exc
                payment.gateway_response = {**(payment.gateway_response or {}), "refund": response}

            payment.status = PaymentStatus.REFUNDED if refund_amount == paid else PaymentStatus.PARTIALLY_REFUNDED
            payment.refund_amount = refund_amount
            payment.refunded_at = utcnow()
            if reason:
                payment.payment_metadata = {**(payment.payment_metadata or {}), "refundReason": reason}

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        erp_refunds_total.labels(method=payment.payment_method.value, status=payment.status.value).inc()
        logger.info(
            "payment_refunded",
            payment_id=payment.id,
            refund_amount=str(payment.refund_amount),
            status=payment.status.value,
        )
        await self.notifier.notify_payment_status_update(
            payment.customer_id,
            payment.id,
            payment.status.value,
            payment_details(payment, refundAmount=payment.refund_amount),
        )
        return await self.get_payment(payment.id)

    async def stripe_status(self) -> dict[str, Any]:
        stripe = self.gateways.stripe
        if stripe is None:
            return {"connected": False, "error": "Stripe gateway is not configured"}
        try:
            account = await stripe.account()
        except GatewayError as exc:
            return {"connected": False, "error": exc.message}
        return {
            "connected": True,
            "account": {
                key: account.get(key)
                for key in ("id", "type", "country", "email", "charges_enabled", "payouts_enabled")
            },
        }


def get_payment_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    gateways: GatewayRegistry = Depends(get_gateways),
) -> PaymentService:
    return PaymentService(db, notifier, gateways)
