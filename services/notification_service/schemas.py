from typing import Literal

from pydantic import BaseModel, Field

NotificationType = Literal["info", "warning", "error"]


class SystemMessage(BaseModel):
    user_id: int
    message: str = Field(min_length=1)
    type: NotificationType = "info"


class Announcement(BaseModel):
    message: str = Field(min_length=1)
    type: NotificationType = "info"


class NotificationStats(BaseModel):
    connected_clients: int
    admin_clients: int
    is_online: bool
