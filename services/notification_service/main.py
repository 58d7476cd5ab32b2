from fastapi import FastAPI

from shared.errors import register_error_handlers
from shared.observability import setup_observability

from .router import router, public_router

notification_app = FastAPI(title="Notification Service", version="1.0.0")

setup_observability(notification_app, "notification_service")
register_error_handlers(notification_app)

notification_app.include_router(public_router)
notification_app.include_router(router)
