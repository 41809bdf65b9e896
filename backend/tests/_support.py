"""
Shared fixtures for the unit and API tests.

Environment defaults are applied before anything from ``homestay`` is
imported, so settings resolve against an in-memory SQLite database.
"""
import os
import tempfile
import unittest
from datetime import datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="homestay-uploads-"))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from homestay.core.database import Base
from homestay.core.security import AuthenticatedUser, create_access_token, hash_password
from homestay.models import (
    DepositStatus,
    Guest,
    Reservation,
    ReservationStatus,
    Role,
    Unit,
    User,
)

# Fixed reference day for stay windows
DAY0 = datetime(2030, 6, 1, 14, 0)
PASSWORD = "correct-horse-battery"


def day(n: int, hour: int = 14) -> datetime:
    """Midday-ish timestamp ``n`` days after ``DAY0``."""
    return (DAY0 + timedelta(days=n)).replace(hour=hour)


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh in-memory schema per test with a single session."""

    async def asyncSetUp(self):
        self.engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.db = self.session_factory()

    async def asyncTearDown(self):
        await self.db.close()
        await self.engine.dispose()

    async def make_user(self, role: Role = Role.AGENT, email: str = None, active: bool = True) -> User:
        user = User(
            name=f"{role.value.title()} User",
            email=email or f"{role.value.lower()}@homestay.com",
            password_hash=hash_password(PASSWORD),
            role=role,
            is_active=active,
        )
        self.db.add(user)
        await self.db.commit()
        return user

    async def make_unit(self, code: str = "UNIT-001", active: bool = True) -> Unit:
        unit = Unit(name=f"Unit {code}", code=code, active=active)
        self.db.add(unit)
        await self.db.commit()
        return unit

    async def make_guest(self, name: str = "Alice Johnson", email: str = None) -> Guest:
        guest = Guest(full_name=name, email=email)
        self.db.add(guest)
        await self.db.commit()
        return guest

    async def make_reservation(
        self,
        unit: Unit,
        guest: Guest,
        check_in: datetime,
        check_out: datetime,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        **fields,
    ) -> Reservation:
        """Insert a row directly, bypassing the availability check."""
        if fields.get("deposit_required"):
            fields.setdefault("deposit_status", DepositStatus.PENDING)
        reservation = Reservation(
            unit_id=unit.id,
            guest_id=guest.id,
            check_in=check_in,
            check_out=check_out,
            status=status,
            **fields,
        )
        self.db.add(reservation)
        await self.db.commit()
        return reservation


def actor_for(user: User) -> AuthenticatedUser:
    return AuthenticatedUser(id=user.id, name=user.name, email=user.email, role=user.role)


class ApiTestCase(DatabaseTestCase):
    """Runs requests against the app with ``get_db`` bound to the test schema."""

    async def asyncSetUp(self):
        await super().asyncSetUp()

        from httpx import ASGITransport, AsyncClient

        from homestay.core.database import get_db
        from homestay.main import app

        async def override_get_db():
            async with self.session_factory() as session:
                yield session

        self.app = app
        app.dependency_overrides[get_db] = override_get_db
        self.client = AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")

    async def asyncTearDown(self):
        await self.client.aclose()
        self.app.dependency_overrides.clear()
        await super().asyncTearDown()

    def auth_headers(self, user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
