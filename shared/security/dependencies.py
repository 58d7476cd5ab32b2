from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from shared.errors import Forbidden, Unauthorized
from .jwt_handler import verify_access_token

ADMIN = "ADMIN"
CUSTOMER = "CUSTOMER"

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


def user_from_token(token: str | None) -> CurrentUser | None:
    if not token:
        return None
    payload = verify_access_token(token)
    if payload is None:
        return None
    sub = payload.get("sub")
    role = payload.get("role")
    if sub is None or role is None:
        return None
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        return None
    return CurrentUser(id=user_id, role=role, email=payload.get("email"))


async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Dependency to validate the JWT and return the caller."""
    user = user_from_token(token)
    if user is None:
        raise Unauthorized("Could not validate credentials")

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = user.id
    return user


def require_role(*roles: str):
    """Builds a dependency that admits only callers holding one of ``roles``."""

    async def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise Forbidden("Insufficient permissions")
        return user

    return checker


def ensure_owner_or_admin(user: CurrentUser, customer_id: int) -> None:
    """Customers may only touch records they own; admins may touch anything."""
    if not user.is_admin and user.id != customer_id:
        raise Forbidden("Access denied")
