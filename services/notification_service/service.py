"""Notification sink.

Order and payment code hands events to ``NotificationService``; delivery is
fire-and-forget, so a failure here is logged and never reaches the caller.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from fastapi.encoders import jsonable_encoder

from shared.config.database import utcnow
from shared.observability import erp_notifications_failed_total

from .hub import ConnectionManager, manager

logger = structlog.get_logger(__name__)


class Audience(str, enum.Enum):
    USER = "user"
    ADMINS = "admins"
    ALL = "all"


@dataclass
class NotificationEvent:
    kind: str
    payload: dict[str, Any]
    audience: Audience = Audience.USER
    target_user_id: Optional[int] = None
    timestamp: Any = field(default_factory=utcnow)

    def message(self) -> dict[str, Any]:
        return jsonable_encoder(
            {"event": self.kind, "data": {**self.payload, "timestamp": self.timestamp}}
        )


class NotificationService:
    def __init__(self, connections: ConnectionManager = manager):
        self.connections = connections

    async def notify(self, event: NotificationEvent) -> None:
        message = event.message()
        if event.audience == Audience.USER:
            await self.connections.send_to_user(event.target_user_id, message)
        elif event.audience == Audience.ADMINS:
            await self.connections.send_to_admins(message)
        else:
            await self.connections.broadcast(message)

    async def publish(self, *events: NotificationEvent) -> None:
        for event in events:
            try:
                await self.notify(event)
            except Exception as exc:
                erp_notifications_failed_total.labels(event=event.kind).inc()
                logger.warning("notification_failed", kind=event.kind, error=str(exc))

    async def notify_new_order(self, order_id: int, customer_id: int, order_details: dict) -> None:
        await self.publish(
            NotificationEvent(
                kind="new_order",
                audience=Audience.ADMINS,
                payload={"orderId": order_id, "customerId": customer_id, "orderDetails": order_details},
            )
        )

    async def notify_order_status_update(
        self, user_id: int, order_id: int, status: str, order_details: dict
    ) -> None:
        await self.publish(
            NotificationEvent(
                kind="order_status_update",
                target_user_id=user_id,
                payload={"orderId": order_id, "status": status, "orderDetails": order_details},
            ),
            NotificationEvent(
                kind="order_status_changed",
                audience=Audience.ADMINS,
                payload={
                    "userId": user_id,
                    "orderId": order_id,
                    "status": status,
                    "orderDetails": order_details,
                },
            ),
        )

    async def notify_payment_status_update(
        self, user_id: int, payment_id: int, status: str, payment_details: dict
    ) -> None:
        await self.publish(
            NotificationEvent(
                kind="payment_status_update",
                target_user_id=user_id,
                payload={"paymentId": payment_id, "status": status, "paymentDetails": payment_details},
            ),
            NotificationEvent(
                kind="payment_status_changed",
                audience=Audience.ADMINS,
                payload={
                    "userId": user_id,
                    "paymentId": payment_id,
                    "status": status,
                    "paymentDetails": payment_details,
                },
            ),
        )

    async def notify_failed_payment(
        self, payment_id: int, customer_id: int, reason: str, payment_details: dict
    ) -> None:
        await self.publish(
            NotificationEvent(
                kind="payment_failed",
                audience=Audience.ADMINS,
                payload={
                    "paymentId": payment_id,
                    "customerId": customer_id,
                    "reason": reason,
                    "paymentDetails": payment_details,
                },
            )
        )

    async def notify_system_message(self, user_id: int, message: str, type: str = "info") -> None:
        await self.publish(
            NotificationEvent(
                kind="system_notification",
                target_user_id=user_id,
                payload={"message": message, "type": type},
            )
        )

    async def broadcast_system_announcement(self, message: str, type: str = "info") -> None:
        await self.publish(
            NotificationEvent(
                kind="system_announcement",
                audience=Audience.ALL,
                payload={"message": message, "type": type},
            )
        )

    def stats(self) -> dict[str, Any]:
        connected = self.connections.connected_clients
        return {
            "connected_clients": connected,
            "admin_clients": self.connections.admin_clients,
            "is_online": connected > 0,
        }


def get_notifier() -> NotificationService:
    return NotificationService(manager)
