"""Payment gateway adapters.

Each adapter exposes ``charge`` and ``refund``. Failures surface as
``GatewayError`` carrying the provider's message; the payment service
decides what that means for the payment record.
"""
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import httpx
import structlog

from shared.config.settings import settings
from shared.errors import GatewayError, UnsupportedPaymentMethod
from shared.observability import erp_gateway_call_duration_seconds

from .models import PaymentMethod

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    transaction_id: str
    raw_response: dict[str, Any] = field(default_factory=dict)


def to_minor_units(amount: Decimal) -> int:
    """Dollars to cents, the unit card processors bill in."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway:
    name = "gateway"

    async def charge(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, Any],
        idempotency_key: Optional[str] = None,
    ) -> ChargeResult:
        raise NotImplementedError

    async def refund(self, transaction_id: str, amount: Decimal) -> dict[str, Any]:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self, idempotency_key: Optional[str] = None) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return httpx.AsyncClient(
            base_url=self.api_base,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            return resp.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"Stripe returned HTTP {resp.status_code}"

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        data: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        if not self.secret_key:
            raise GatewayError("Stripe is not configured")

        started = time.perf_counter()
        try:
            async with self._client(idempotency_key) as client:
                resp = await client.request(method, path, data=data)
        except httpx.HTTPError as exc:
            logger.error("stripe_unreachable", operation=operation, error=str(exc))
            raise GatewayError(f"Stripe request failed: {exc}") from exc
        finally:
            erp_gateway_call_duration_seconds.labels(gateway=self.name, operation=operation).observe(
                time.perf_counter() - started
            )

        if resp.is_error:
            message = self._error_message(resp)
            logger.warning("stripe_rejected", operation=operation, status_code=resp.status_code, error=message)
            raise GatewayError(message)
        try:
            body = resp.json()
        except ValueError as exc:
            logger.error("stripe_unreadable_response", operation=operation, status_code=resp.status_code)
            raise GatewayError(f"Stripe returned an unreadable response (HTTP {resp.status_code})") from exc
        if not isinstance(body, dict):
            raise GatewayError(f"Stripe returned an unexpected response (HTTP {resp.status_code})")
        return body

    async def charge(self, amount, currency, metadata, idempotency_key=None) -> ChargeResult:
        data: dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": currency.lower(),
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = str(value)

        intent = await self._request(
            "charge", "POST", "/v1/payment_intents", data=data, idempotency_key=idempotency_key
        )
        if not intent.get("id"):
            raise GatewayError("Stripe response did not include a payment intent id")
        return ChargeResult(transaction_id=intent["id"], raw_response=intent)

    async def refund(self, transaction_id, amount) -> dict[str, Any]:
        return await self._request(
            "refund",
            "POST",
            "/v1/refunds",
            data={"payment_intent": transaction_id, "amount": to_minor_units(amount)},
        )

    async def account(self) -> dict[str, Any]:
        return await self._request("account", "GET", "/v1/account")


class SimulatedGateway(PaymentGateway):
    """Accepts every charge and refund. Stands in for providers not wired up yet."""

    def __init__(self, name: str):
        self.name = name

    async def charge(self, amount, currency, metadata, idempotency_key=None) -> ChargeResult:
        transaction_id = f"{self.name}_{int(time.time() * 1000)}"
        return ChargeResult(
            transaction_id=transaction_id,
            raw_response={
                "id": transaction_id,
                "amount": str(amount),
                "currency": currency,
                "status": "succeeded",
                "simulated": True,
            },
        )

    async def refund(self, transaction_id, amount) -> dict[str, Any]:
        return {
            "id": f"{self.name}_refund_{int(time.time() * 1000)}",
            "transaction_id": transaction_id,
            "amount": str(amount),
            "status": "succeeded",
            "simulated": True,
        }


class GatewayRegistry:
    def __init__(self, gateways: Optional[dict[PaymentMethod, PaymentGateway]] = None):
        self._gateways: dict[PaymentMethod, PaymentGateway] = dict(gateways or {})

    def register(self, method: PaymentMethod, gateway: PaymentGateway) -> None:
        self._gateways[method] = gateway

    def handles(self, method: PaymentMethod) -> bool:
        return method in self._gateways

    def get(self, method: PaymentMethod) -> PaymentGateway:
        try:
            return self._gateways[method]
        except KeyError:
            raise UnsupportedPaymentMethod(f"No gateway configured for {method.value}") from None

    @property
    def stripe(self) -> Optional[StripeGateway]:
        gateway = self._gateways.get(PaymentMethod.STRIPE)
        return gateway if isinstance(gateway, StripeGateway) else None


def build_default_registry() -> GatewayRegistry:
    return GatewayRegistry(
        {
            PaymentMethod.STRIPE: StripeGateway(
                settings.stripe_secret_key,
                api_base=settings.stripe_api_base,
                timeout=settings.gateway_timeout_seconds,
            ),
            PaymentMethod.PAYPAL: SimulatedGateway("paypal"),
            PaymentMethod.MAYA: SimulatedGateway("maya"),
        }
    )


_registry = build_default_registry()


def get_gateways() -> GatewayRegistry:
    return _registry
