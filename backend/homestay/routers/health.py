"""Health endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from homestay import __version__
from homestay.core.config import get_settings
from homestay.core.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

settings = get_settings()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@router.get("/health/detailed")
async def detailed_health_check(db: AsyncSession = Depends(get_db)):
    """Health check including a database round trip."""
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error(f"[DB] Health check failed: {e}")
        database = "disconnected"

    healthy = database == "connected"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": settings.app_name,
            "version": __version__,
            "environment": settings.environment,
            "database": database,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
