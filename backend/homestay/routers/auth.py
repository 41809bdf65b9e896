"""Auth router - login, token refresh and password reset."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.config import get_settings
from homestay.core.database import get_db
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, get_current_user, require_capability
from homestay.schemas.auth import (
    LoginRequest,
    LoginResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshRequest,
    TokenPair,
)
from homestay.schemas.base import ApiResponse
from homestay.schemas.user import UserCreate, UserResponse
from homestay.services.users import UserService

router = APIRouter(prefix="/auth", tags=["auth"])

settings = get_settings()


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange email and password for an access/refresh token pair."""
    service = UserService(db)
    user = await service.authenticate(data.email, data.password)
    access_token, refresh_token = service.issue_tokens(user)
    return ApiResponse(
        data=LoginResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            user=UserResponse.model_validate(user),
        ),
        message="Login successful",
    )


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.USERS_MANAGE)),
):
    """Create a staff account (admin only)."""
    user = await UserService(db).create(data)
    return ApiResponse(data=UserResponse.model_validate(user), message="User registered successfully")


@router.post("/refresh", response_model=ApiResponse[TokenPair])
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    _, access_token, refresh_token = await UserService(db).refresh(data.refresh_token)
    return ApiResponse(data=TokenPair(access_token=access_token, refresh_token=refresh_token))


@router.post("/logout", response_model=ApiResponse[None])
async def logout(current_user: AuthenticatedUser = Depends(get_current_user)):
    """Tokens are stateless; the client discards them."""
    return ApiResponse(message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    user = await UserService(db).get(current_user.id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.post("/password-reset/request", response_model=ApiResponse[dict])
async def request_password_reset(data: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    """Issue a password reset token.

    The response is the same whether or not the account exists. Outside
    production the token is returned in the body since no mailer is wired.
    """
    token = await UserService(db).request_password_reset(data.email)
    payload = {"reset_token": token} if token and not settings.is_production else {}
    return ApiResponse(data=payload, message="If the account exists, a password reset has been issued")


@router.post("/password-reset/confirm", response_model=ApiResponse[None])
async def confirm_password_reset(data: PasswordResetConfirm, db: AsyncSession = Depends(get_db)):
    await UserService(db).reset_password(data.token, data.new_password)
    return ApiResponse(message="Password updated successfully")
