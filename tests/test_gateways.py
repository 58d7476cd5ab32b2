"""Tests for the payment gateway adapters."""

from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from services.payment_service.gateways import (
    GatewayRegistry,
    SimulatedGateway,
    StripeGateway,
    to_minor_units,
)
from services.payment_service.models import PaymentMethod
from shared.errors import GatewayError, UnsupportedPaymentMethod


def stripe_with(handler):
    return StripeGateway("sk_test_123", transport=httpx.MockTransport(handler))


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount, cents",
        [(Decimal("110.00"), 11000), (Decimal("0.01"), 1), (Decimal("19.995"), 2000)],
    )
    def test_converts_to_cents(self, amount, cents):
        assert to_minor_units(amount) == cents


class TestStripeGateway:
    async def test_charge_creates_payment_intent(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"id": "pi_123", "status": "requires_confirmation"})

        result = await stripe_with(handler).charge(
            Decimal("110.00"), "USD", {"orderId": 7}, idempotency_key="erp-payment-1"
        )

        assert result.transaction_id == "pi_123"
        assert result.raw_response["status"] == "requires_confirmation"
        assert seen["path"] == "/v1/payment_intents"
        assert seen["headers"]["Authorization"] == "Bearer sk_test_123"
        assert seen["headers"]["Idempotency-Key"] == "erp-payment-1"
        assert seen["form"]["amount"] == ["11000"]
        assert seen["form"]["currency"] == ["usd"]
        assert seen["form"]["metadata[orderId]"] == ["7"]

    async def test_card_error_becomes_gateway_error(self):
        def handler(request):
            return httpx.Response(402, json={"error": {"message": "Your card was declined."}})

        with pytest.raises(GatewayError, match="Your card was declined."):
            await stripe_with(handler).charge(Decimal("5.00"), "USD", {})

    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(500, text="upstream exploded")

        with pytest.raises(GatewayError, match="HTTP 500"):
            await stripe_with(handler).charge(Decimal("5.00"), "USD", {})

    async def test_unreadable_success_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>ok</html>")

        with pytest.raises(GatewayError, match="unreadable response"):
            await stripe_with(handler).charge(Decimal("5.00"), "USD", {})

    async def test_intent_without_id(self):
        def handler(request):
            return httpx.Response(200, json={"status": "requires_confirmation"})

        with pytest.raises(GatewayError, match="payment intent id"):
            await stripe_with(handler).charge(Decimal("5.00"), "USD", {})

    async def test_network_failure_becomes_gateway_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError, match="Stripe request failed"):
            await stripe_with(handler).charge(Decimal("5.00"), "USD", {})

    async def test_missing_key_is_not_configured(self):
        with pytest.raises(GatewayError, match="not configured"):
            await StripeGateway("").charge(Decimal("5.00"), "USD", {})

    async def test_refund_sends_cents(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"id": "re_1", "status": "succeeded"})

        response = await stripe_with(handler).refund("pi_123", Decimal("10.50"))

        assert response["id"] == "re_1"
        assert seen["path"] == "/v1/refunds"
        assert seen["form"] == {"payment_intent": ["pi_123"], "amount": ["1050"]}

    async def test_account_lookup(self):
        def handler(request):
            assert request.method == "GET"
            return httpx.Response(200, json={"id": "acct_1", "country": "US"})

        assert (await stripe_with(handler).account())["id"] == "acct_1"


class TestSimulatedGateway:
    async def test_charge_and_refund_succeed(self):
        gateway = SimulatedGateway("maya")
        result = await gateway.charge(Decimal("12.00"), "PHP", {})
        assert result.transaction_id.startswith("maya_")
        refund = await gateway.refund(result.transaction_id, Decimal("12.00"))
        assert refund["status"] == "succeeded"


class TestRegistry:
    def test_lookup(self):
        paypal = SimulatedGateway("paypal")
        registry = GatewayRegistry({PaymentMethod.PAYPAL: paypal})

        assert registry.get(PaymentMethod.PAYPAL) is paypal
        assert registry.handles(PaymentMethod.PAYPAL)
        assert not registry.handles(PaymentMethod.CASH)
        assert registry.stripe is None

    def test_unknown_method(self):
        with pytest.raises(UnsupportedPaymentMethod):
            GatewayRegistry().get(PaymentMethod.STRIPE)
