"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings, Services
from src.services import database

router = APIRouter(tags=["system"])
logger = logging.getLogger("smartcoach.health")


@router.get("/health")
async def health_check(settings: AppSettings, services: Services) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also reports database connectivity and the scheduler state.
    """
    db_ok = False
    try:
        await database.fetchval("SELECT 1")
        db_ok = True
    except Exception as exc:
        logger.warning("Health check DB probe failed: %s", exc)

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected" if db_ok else "unreachable",
        "scheduler": "running" if services.scheduler.running else "stopped",
        "jobs": len(services.scheduler.jobs),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
