"""Health check endpoints."""

import logging

from fastapi import APIRouter

from dern_support import __version__
from dern_support.core.database import ping_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": "dern-support",
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check() -> dict:
    """Readiness check - verifies the database answers."""
    try:
        await ping_db()
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return {
            "status": "not_ready",
            "errors": [f"Database check failed: {e}"],
        }

    return {"status": "ready", "database": "ok"}


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check - basic process health."""
    return {"status": "alive"}
