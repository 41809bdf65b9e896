"""Staff accounts and credential checks."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.config import get_settings
from homestay.core.database import commit_or_conflict
from homestay.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from homestay.core.security import (
    PASSWORD_RESET_TOKEN,
    REFRESH_TOKEN,
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from homestay.models.enums import Role
from homestay.models.user import User
from homestay.schemas.base import PageParams
from homestay.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

settings = get_settings()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == _normalize_email(email)))
        return result.scalar_one_or_none()

    async def list_users(
        self,
        page: PageParams,
        search: Optional[str] = None,
        role: Optional[Role] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[list[User], int]:
        query = select(User)
        if search:
            term = f"%{search}%"
            query = query.where(or_(User.name.ilike(term), User.email.ilike(term)))
        if role:
            query = query.where(User.role == role)
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(User.created_at.desc()).offset(page.offset).limit(page.limit)
        )
        return list(result.scalars().all()), total or 0

    async def create(self, data: UserCreate) -> User:
        email = _normalize_email(data.email)
        if await self.get_by_email(email):
            raise ConflictError("User already exists")

        user = User(
            name=data.name,
            email=email,
            password_hash=hash_password(data.password),
            role=data.role,
        )
        self.db.add(user)
        await commit_or_conflict(self.db, "User already exists")
        logger.info(f"[AUTH] Created user {email} ({user.role.value})")
        return user

    async def update(self, user_id: UUID, data: UserUpdate) -> User:
        user = await self.get(user_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email"):
            email = _normalize_email(changes["email"])
            existing = await self.get_by_email(email)
            if existing and existing.id != user.id:
                raise ConflictError("Email already in use")
            user.email = email
        if changes.get("password"):
            user.password_hash = hash_password(changes["password"])
        for field in ("name", "role", "is_active"):
            if changes.get(field) is not None:
                setattr(user, field, changes[field])

        await commit_or_conflict(self.db, "Email already in use")
        return user

    async def deactivate(self, user_id: UUID, actor_id: UUID) -> User:
        if user_id == actor_id:
            raise ValidationError("You cannot deactivate your own account")
        user = await self.get(user_id)
        user.is_active = False
        await self.db.commit()
        logger.info(f"[AUTH] Deactivated user {user.email}")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials. Unknown, inactive and wrong-password users look the same."""
        user = await self.get_by_email(email)
        if not user or not user.is_active or not verify_password(password, user.password_hash):
            logger.warning(f"[AUTH] Failed login for {_normalize_email(email)}")
            raise AuthenticationError("Invalid credentials")

        user.last_login_at = datetime.utcnow()
        await self.db.commit()
        logger.info(f"[AUTH] Login {user.email}")
        return user

    @staticmethod
    def issue_tokens(user: User) -> tuple[str, str]:
        return create_access_token(user.id), create_refresh_token(user.id)

    async def refresh(self, refresh_token: str) -> tuple[User, str, str]:
        user_id = decode_token(refresh_token, settings.jwt_refresh_secret, REFRESH_TOKEN)
        user = await self.db.get(User, user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        access, refresh = self.issue_tokens(user)
        return user, access, refresh

    async def request_password_reset(self, email: str) -> Optional[str]:
        """Issue a reset token for an active account, or ``None``.

        Delivery of the token (email) is left to the caller.
        """
        user = await self.get_by_email(email)
        if not user or not user.is_active:
            logger.info("[AUTH] Password reset requested for unknown account")
            return None
        logger.info(f"[AUTH] Password reset token issued for {user.email}")
        return create_password_reset_token(user.id)

    async def reset_password(self, token: str, new_password: str) -> User:
        user_id = decode_token(token, settings.jwt_secret, PASSWORD_RESET_TOKEN)
        user = await self.db.get(User, user_id)
        if not user or not user.is_active:
            raise AuthenticationError("Invalid or expired reset token")
        user.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info(f"[AUTH] Password reset for {user.email}")
        return user
