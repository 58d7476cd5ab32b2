from .jwt_handler import create_access_token, verify_access_token
from .dependencies import (
    ADMIN,
    CUSTOMER,
    CurrentUser,
    ensure_owner_or_admin,
    get_current_user,
    require_role,
    user_from_token,
)
from .rate_limiter import limiter, user_id_or_ip

__all__ = [
    "ADMIN",
    "CUSTOMER",
    "CurrentUser",
    "create_access_token",
    "verify_access_token",
    "ensure_owner_or_admin",
    "get_current_user",
    "require_role",
    "user_from_token",
    "limiter",
    "user_id_or_ip",
]
