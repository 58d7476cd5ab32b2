from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from shared.security import ADMIN, CurrentUser, get_current_user, require_role, user_from_token

from .hub import manager
from .schemas import Announcement, NotificationStats, SystemMessage
from .service import NotificationService, get_notifier

router = APIRouter(tags=["Notifications"], dependencies=[Depends(get_current_user)])
public_router = APIRouter()

admin_only = require_role(ADMIN)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "notification", "status": "running"}


@public_router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str | None = Query(default=None)):
    user = user_from_token(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, user.id, user.is_admin)
    try:
        await websocket.send_json({"event": "connected", "data": {"userId": user.id, "role": user.role}})
        while True:
            # Clients only listen; anything they send is a keep-alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)


@router.get("/stats", response_model=NotificationStats)
async def get_stats(notifier: NotificationService = Depends(get_notifier)):
    return notifier.stats()


@router.post("/send", dependencies=[Depends(admin_only)])
async def send_notification(payload: SystemMessage, notifier: NotificationService = Depends(get_notifier)):
    await notifier.notify_system_message(payload.user_id, payload.message, payload.type)
    return {"message": "Notification sent successfully"}


@router.post("/broadcast", dependencies=[Depends(admin_only)])
async def broadcast_announcement(payload: Announcement, notifier: NotificationService = Depends(get_notifier)):
    await notifier.broadcast_system_announcement(payload.message, payload.type)
    return {"message": "Announcement broadcast successfully"}


@router.post("/test")
async def test_notification(
    user: CurrentUser = Depends(admin_only),
    notifier: NotificationService = Depends(get_notifier),
):
    await notifier.notify_system_message(user.id, "This is a test notification from the ERP system", "info")
    return {"message": "Test notification sent"}
