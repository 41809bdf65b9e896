"""
Seed staff accounts, sample units and guests.
Usage: python -m homestay.seed

Idempotent: rows that already exist (by email or unit code) are left alone.
"""

import asyncio
import logging
import os
import sys

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import SessionLocal, engine
from homestay.core.security import hash_password
from homestay.models import Guest, Role, Unit, User

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    ("Finance Manager", "finance@homestay.com", "finance123", Role.FINANCE),
    ("John Cleaner", "cleaner@homestay.com", "cleaner123", Role.CLEANER),
    ("Jane Agent", "agent@homestay.com", "agent123", Role.AGENT),
]

SAMPLE_UNITS = [
    {"name": "Ocean View Villa", "code": "OVV001", "address": "123 Beach Road, Coastal City"},
    {"name": "Mountain Cabin", "code": "MC002", "address": "456 Forest Lane, Mountain Town"},
    {"name": "City Apartment", "code": "CA003", "address": "789 Downtown Street, Metro City"},
]

SAMPLE_GUESTS = [
    {"full_name": "Alice Johnson", "email": "alice@example.com", "phone": "+1234567890", "notes": "Prefers ground floor"},
    {"full_name": "Bob Smith", "email": "bob@example.com", "phone": "+0987654321", "notes": "Allergic to pets"},
    {"full_name": "Carol Davis", "email": "carol@example.com", "phone": "+1122334455", "notes": "Early check-in requested"},
]


async def _ensure_user(db: AsyncSession, name: str, email: str, password: str, role: Role) -> None:
    if await db.scalar(select(User.id).where(User.email == email)):
        logger.info(f"⚠️ User already exists: {email}")
        return
    db.add(User(name=name, email=email, password_hash=hash_password(password), role=role))
    logger.info(f"✅ {role.value} user created: {email}")


async def seed(db: AsyncSession) -> None:
    admin_email = os.getenv("ADMIN_EMAIL", "admin@homestay.com")
    admin_password = os.getenv("ADMIN_PASSWORD", "admin123")
    admin_name = os.getenv("ADMIN_NAME", "System Administrator")

    await _ensure_user(db, admin_name, admin_email, admin_password, Role.ADMIN)
    for name, email, password, role in SAMPLE_USERS:
        await _ensure_user(db, name, email, password, role)

    for unit in SAMPLE_UNITS:
        if await db.scalar(select(Unit.id).where(Unit.code == unit["code"])):
            continue
        db.add(Unit(**unit))
        logger.info(f"✅ Unit created: {unit['name']}")

    for guest in SAMPLE_GUESTS:
        if await db.scalar(select(Guest.id).where(Guest.email == guest["email"])):
            logger.info(f"⚠️ Guest already exists: {guest['full_name']}")
            continue
        db.add(Guest(**guest))
        logger.info(f"✅ Guest created: {guest['full_name']}")

    await db.commit()


async def main() -> None:
    try:
        async with SessionLocal() as db:
            await seed(db)
    finally:
        await engine.dispose()
    logger.info("🎉 Database seeding completed!")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except Exception as e:
        logger.error(f"❌ Seeding failed: {e}")
        sys.exit(1)
