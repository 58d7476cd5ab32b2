from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.config.settings import settings
from shared.security import CurrentUser, get_current_user, limiter

from .schemas import (
    MessageResponse,
    PasswordChange,
    ProfileUpdate,
    SignupResponse,
    TokenResponse,
    TokenValidation,
    UserCreate,
    UserLogin,
    UserResponse,
)
from .service import AuthService

router = APIRouter(tags=["Authentication"])
public_router = APIRouter()  # For any public endpoints (e.g. health check)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "auth", "status": "running"}


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account",
)
@limiter.limit(settings.auth_rate_limit)
async def signup(request: Request, payload: UserCreate, db: AsyncSession = Depends(get_db)):
    user = await AuthService.signup(db, payload)
    return SignupResponse(message="User created successfully", user=UserResponse.model_validate(user))


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and receive a JWT access token",
)
@limiter.limit(settings.auth_rate_limit)
async def login(request: Request, payload: UserLogin, db: AsyncSession = Depends(get_db)):
    return await AuthService.login(db, payload)


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AuthService.get_profile(db, user.id)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AuthService.update_profile(db, user.id, payload)


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    payload: PasswordChange,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AuthService.change_password(db, user.id, payload)
    return MessageResponse(message="Password changed successfully")


@router.get("/validate", response_model=TokenValidation)
async def validate_token(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    account = await AuthService.get_active_user(db, user.id)
    return TokenValidation(valid=True, user=UserResponse.model_validate(account))
