"""Tests for the notification hub, the notification service and the WebSocket endpoint."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import main
from conftest import auth_headers
from services.auth_service.models import UserRole
from services.notification_service.service import NotificationService
from shared.config.database import engine

ADMIN = SimpleNamespace(id=1, email="admin@acme.io", role=UserRole.ADMIN)
ALICE = SimpleNamespace(id=2, email="alice@acme.io", role=UserRole.CUSTOMER)


class FakeSocket:
    def __init__(self, broken=False):
        self.accepted = False
        self.broken = broken
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(message)


class TestConnectionManager:
    async def test_routes_by_audience(self, connections):
        admin, alice, bob = FakeSocket(), FakeSocket(), FakeSocket()
        await connections.connect(admin, 1, is_admin=True)
        await connections.connect(alice, 2, is_admin=False)
        await connections.connect(bob, 3, is_admin=False)

        assert await connections.send_to_user(2, {"event": "a"}) == 1
        assert await connections.send_to_admins({"event": "b"}) == 1
        assert await connections.broadcast({"event": "c"}) == 3

        assert admin.accepted
        assert [m["event"] for m in alice.sent] == ["a", "c"]
        assert [m["event"] for m in admin.sent] == ["b", "c"]
        assert [m["event"] for m in bob.sent] == ["c"]

    async def test_user_with_several_tabs(self, connections):
        first, second = FakeSocket(), FakeSocket()
        await connections.connect(first, 2, is_admin=False)
        await connections.connect(second, 2, is_admin=False)

        assert await connections.send_to_user(2, {"event": "x"}) == 2

        connections.disconnect(first)
        assert await connections.send_to_user(2, {"event": "y"}) == 1
        assert connections.connected_clients == 1

    async def test_dead_socket_is_dropped(self, connections):
        healthy, dead = FakeSocket(), FakeSocket(broken=True)
        await connections.connect(healthy, 1, is_admin=True)
        await connections.connect(dead, 2, is_admin=True)

        assert await connections.send_to_admins({"event": "z"}) == 1
        assert connections.connected_clients == 1
        assert connections.admin_clients == 1

    async def test_unknown_user_and_double_disconnect(self, connections):
        socket = FakeSocket()
        assert await connections.send_to_user(42, {"event": "nobody"}) == 0

        await connections.connect(socket, 5, is_admin=False)
        connections.disconnect(socket)
        connections.disconnect(socket)
        assert connections.connected_clients == 0


class TestNotificationService:
    async def test_order_status_goes_to_owner_and_admins(self, connections, notifier):
        admin, alice = FakeSocket(), FakeSocket()
        await connections.connect(admin, 1, is_admin=True)
        await connections.connect(alice, 2, is_admin=False)

        await notifier.notify_order_status_update(2, 10, "SHIPPED", {"orderNumber": "ORD-20261018-000001"})

        assert alice.sent[0]["event"] == "order_status_update"
        assert alice.sent[0]["data"]["status"] == "SHIPPED"
        assert "timestamp" in alice.sent[0]["data"]
        assert admin.sent[0]["event"] == "order_status_changed"
        assert admin.sent[0]["data"]["userId"] == 2

    async def test_failed_payment_only_reaches_admins(self, connections, notifier):
        admin, alice = FakeSocket(), FakeSocket()
        await connections.connect(admin, 1, is_admin=True)
        await connections.connect(alice, 2, is_admin=False)

        await notifier.notify_failed_payment(7, 2, "card declined", {"amount": 12.5})

        assert [m["event"] for m in admin.sent] == ["payment_failed"]
        assert alice.sent == []

    async def test_delivery_errors_are_swallowed(self):
        class Exploding:
            async def send_to_user(self, user_id, message):
                raise RuntimeError("hub is down")

        await NotificationService(Exploding()).notify_system_message(2, "hello")

    async def test_stats(self, connections, notifier):
        assert notifier.stats() == {"connected_clients": 0, "admin_clients": 0, "is_online": False}

        await connections.connect(FakeSocket(), 1, is_admin=True)
        assert notifier.stats() == {"connected_clients": 1, "admin_clients": 1, "is_online": True}


@pytest.fixture
def ws_client():
    """Synchronous client sharing one event loop between HTTP calls and sockets."""
    with TestClient(main.app) as client:
        yield client
        client.portal.call(engine.dispose)


def socket_url(user=None, token=None):
    if user is not None:
        token = auth_headers(user)["Authorization"].split(" ", 1)[1]
    return f"/api/v1/notifications/ws?token={token}"


class TestWebSocketEndpoint:
    def test_rejects_bad_token(self, ws_client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with ws_client.websocket_connect(socket_url(token="not-a-jwt")):
                pass
        assert exc.value.code == 1008

    def test_greets_authenticated_user(self, ws_client):
        with ws_client.websocket_connect(socket_url(ALICE)) as ws:
            assert ws.receive_json() == {"event": "connected", "data": {"userId": 2, "role": "CUSTOMER"}}

    def test_admin_broadcast_reaches_sockets(self, ws_client):
        with ws_client.websocket_connect(socket_url(ALICE)) as ws:
            ws.receive_json()

            response = ws_client.post(
                "/api/v1/notifications/broadcast",
                json={"message": "Maintenance at 22:00", "type": "warning"},
                headers=auth_headers(ADMIN),
            )
            assert response.status_code == 200

            message = ws.receive_json()
            assert message["event"] == "system_announcement"
            assert message["data"]["message"] == "Maintenance at 22:00"
            assert message["data"]["type"] == "warning"

    def test_direct_message_to_user(self, ws_client):
        with ws_client.websocket_connect(socket_url(ALICE)) as ws:
            ws.receive_json()

            response = ws_client.post(
                "/api/v1/notifications/send",
                json={"user_id": 2, "message": "Your invoice is ready"},
                headers=auth_headers(ADMIN),
            )
            assert response.status_code == 200
            assert ws.receive_json()["event"] == "system_notification"

    def test_customers_cannot_broadcast(self, ws_client):
        response = ws_client.post(
            "/api/v1/notifications/broadcast", json={"message": "hi"}, headers=auth_headers(ALICE)
        )
        assert response.status_code == 403

    def test_stats_requires_token(self, ws_client):
        assert ws_client.get("/api/v1/notifications/stats").status_code == 401
        response = ws_client.get("/api/v1/notifications/stats", headers=auth_headers(ALICE))
        assert response.json()["connected_clients"] == 0
