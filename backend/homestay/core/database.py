"""Async SQLAlchemy engine, session factory and declarative base."""

import logging
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from homestay.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

INTEGRITY_MESSAGE = "Request conflicts with existing data"


def _engine_options(url: str) -> dict:
    options: dict = {"echo": settings.db_echo, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        options.update(pool_size=10, max_overflow=20, pool_recycle=300)
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session per request; roll back whatever the handler left uncommitted."""
    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def commit_or_conflict(db: AsyncSession, message: str, constraint: Optional[str] = None) -> None:
    """Commit, turning constraint violations into ``ConflictError``.

    With ``constraint`` set, ``message`` is used only when that named constraint
    was violated; any other violation reports ``INTEGRITY_MESSAGE``.
    """
    from sqlalchemy.exc import IntegrityError

    from homestay.core.errors import ConflictError

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"[DB] Integrity violation: {e.orig}")
        if constraint and constraint not in str(e.orig):
            raise ConflictError(INTEGRITY_MESSAGE) from e
        raise ConflictError(message) from e
