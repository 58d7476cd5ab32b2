import re

import structlog
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.settings import settings
from shared.errors import (
    EmailAlreadyRegistered,
    Forbidden,
    Unauthorized,
    UserNotFound,
    ValidationFailed,
    WeakPassword,
)
from shared.security.jwt_handler import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token

from .models import User, UserRole
from .repository import UserRepository
from .schemas import PasswordChange, ProfileUpdate, TokenResponse, UserCreate, UserLogin, UserResponse

logger = structlog.get_logger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# At least 8 characters with one letter and one digit
_PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d@$!%*#?&]{8,}$")


class AuthService:

    @staticmethod
    def hash_password(password: str) -> str:
        return _pwd_context.hash(password)

    @staticmethod
    def verify_password(plain: str, hashed: str) -> bool:
        return _pwd_context.verify(plain, hashed)

    @staticmethod
    def _check_password_strength(password: str) -> None:
        if not _PASSWORD_RE.match(password):
            raise WeakPassword(
                "Password must be at least 8 characters long and contain at least one number and one letter"
            )

    @staticmethod
    async def signup(db: AsyncSession, data: UserCreate) -> User:
        if data.role == UserRole.ADMIN and not settings.allow_admin_signup:
            raise Forbidden("Admin accounts cannot be self-registered")
        AuthService._check_password_strength(data.password)

        existing = await UserRepository.get_by_email(db, data.email)
        if existing:
            raise EmailAlreadyRegistered("User with this email already exists")

        user = User(
            name=data.name,
            email=data.email,
            phone=data.phone,
            role=data.role,
            hashed_password=AuthService.hash_password(data.password),
            is_active=True,
        )
        user = await UserRepository.create(db, user)
        logger.info("user_registered", user_id=user.id, role=user.role.value)
        return user

    @staticmethod
    async def login(db: AsyncSession, data: UserLogin) -> TokenResponse:
        user = await UserRepository.get_by_email(db, data.email)
        if not user or not AuthService.verify_password(data.password, user.hashed_password):
            raise Unauthorized("Invalid credentials")
        if not user.is_active:
            raise Unauthorized("Account is deactivated")

        token = create_access_token(
            data={
                "sub": str(user.id),
                "email": user.email,
                "role": user.role.value,
                "name": user.name,
            }
        )
        return TokenResponse(
            access_token=token,
            expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserResponse.model_validate(user),
        )

    @staticmethod
    async def get_active_user(db: AsyncSession, user_id: int) -> User:
        user = await UserRepository.get_by_id(db, user_id)
        if not user or not user.is_active:
            raise Unauthorized("User not found or inactive")
        return user

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: int) -> User:
        user = await UserRepository.get_by_id(db, user_id)
        if not user:
            raise UserNotFound("User not found")
        return user

    @staticmethod
    async def update_profile(db: AsyncSession, user_id: int, data: ProfileUpdate) -> User:
        user = await AuthService.get_profile(db, user_id)
        changes = data.model_dump(exclude_unset=True)

        new_email = changes.get("email")
        if new_email and new_email != user.email:
            if await UserRepository.get_by_email(db, new_email):
                raise EmailAlreadyRegistered("Email already in use")

        for field, value in changes.items():
            setattr(user, field, value)
        return await UserRepository.update(db, user)

    @staticmethod
    async def change_password(db: AsyncSession, user_id: int, data: PasswordChange) -> None:
        user = await AuthService.get_profile(db, user_id)
        if not AuthService.verify_password(data.current_password, user.hashed_password):
            raise ValidationFailed("Current password is incorrect")
        AuthService._check_password_strength(data.new_password)

        user.hashed_password = AuthService.hash_password(data.new_password)
        await UserRepository.update(db, user)
        logger.info("password_changed", user_id=user.id)
