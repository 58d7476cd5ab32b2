from collections import defaultdict
from typing import Any

import structlog
from fastapi import WebSocket

from shared.observability import erp_websocket_connections

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Tracks open notification sockets by user, plus the admin group.

    All bookkeeping happens on the event loop between awaits, so no lock is
    needed around the dictionaries.
    """

    def __init__(self):
        self._by_user: dict[int, set[WebSocket]] = defaultdict(set)
        self._admins: set[WebSocket] = set()
        self._owners: dict[WebSocket, int] = {}

    async def connect(self, websocket: WebSocket, user_id: int, is_admin: bool) -> None:
        await websocket.accept()
        self._by_user[user_id].add(websocket)
        self._owners[websocket] = user_id
        if is_admin:
            self._admins.add(websocket)
        erp_websocket_connections.inc()
        logger.info("ws_connected", user_id=user_id, admin=is_admin)

    def disconnect(self, websocket: WebSocket) -> None:
        user_id = self._owners.pop(websocket, None)
        if user_id is None:
            return
        sockets = self._by_user.get(user_id)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self._by_user[user_id]
        self._admins.discard(websocket)
        erp_websocket_connections.dec()
        logger.info("ws_disconnected", user_id=user_id)

    async def _send(self, sockets, message: dict[str, Any]) -> int:
        delivered = 0
        for websocket in list(sockets):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as exc:
                # A dead socket must not stop delivery to the rest
                logger.warning("ws_send_failed", error=str(exc))
                self.disconnect(websocket)
        return delivered

    async def send_to_user(self, user_id: int, message: dict[str, Any]) -> int:
        return await self._send(self._by_user.get(user_id, ()), message)

    async def send_to_admins(self, message: dict[str, Any]) -> int:
        return await self._send(self._admins, message)

    async def broadcast(self, message: dict[str, Any]) -> int:
        return await self._send(self._owners.keys(), message)

    @property
    def connected_clients(self) -> int:
        return len(self._owners)

    @property
    def admin_clients(self) -> int:
        return len(self._admins)


manager = ConnectionManager()
