"""JWT issuing/verification, password hashing and auth dependencies."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.config import get_settings
from homestay.core.database import get_db
from homestay.core.errors import AuthenticationError, AuthorizationError
from homestay.core.permissions import Capability, has_capability
from homestay.models.enums import Role

logger = logging.getLogger(__name__)

settings = get_settings()

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
PASSWORD_RESET_TOKEN = "password-reset"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Malformed hash in the database
        return False


def _create_token(user_id: UUID, token_type: str, secret: str, ttl: timedelta) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: UUID) -> str:
    return _create_token(
        user_id, ACCESS_TOKEN, settings.jwt_secret,
        timedelta(minutes=settings.access_token_ttl_minutes),
    )


def create_refresh_token(user_id: UUID) -> str:
    return _create_token(
        user_id, REFRESH_TOKEN, settings.jwt_refresh_secret,
        timedelta(days=settings.refresh_token_ttl_days),
    )


def create_password_reset_token(user_id: UUID) -> str:
    return _create_token(
        user_id, PASSWORD_RESET_TOKEN, settings.jwt_secret,
        timedelta(minutes=settings.password_reset_ttl_minutes),
    )


def decode_token(token: str, secret: str, expected_type: str) -> UUID:
    """Verify a token and return the user id it was issued for.

    Raises:
        AuthenticationError: bad signature, expired, wrong type or malformed subject
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid authentication token")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")
    try:
        return UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid authentication token")


class AuthenticatedUser:
    """The staff member behind the current request."""

    def __init__(self, id: UUID, name: str, email: str, role: Role):
        self.id = id
        self.name = name
        self.email = email
        self.role = role

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    """Resolve the bearer access token to an active user."""
    from homestay.models.user import User

    if credentials is None:
        raise AuthenticationError("Access token required")

    user_id = decode_token(credentials.credentials, settings.jwt_secret, ACCESS_TOKEN)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return AuthenticatedUser(id=user.id, name=user.name, email=user.email, role=user.role)


def require_capability(*capabilities: Capability) -> Callable:
    """Dependency factory: the current user's role must grant every listed capability."""

    async def dependency(
        current_user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        missing = [c.value for c in capabilities if not current_user.can(c)]
        if missing:
            logger.warning(
                f"[AUTH] {current_user.email} ({current_user.role.value}) denied: {', '.join(missing)}"
            )
            raise AuthorizationError()
        return current_user

    return dependency
