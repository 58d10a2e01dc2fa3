"""Pipeline triggers: full sweep and single-user runs."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query

from src.coaching.errors import ProviderError, ValidationError
from src.coaching.pipeline import UserRunResult
from src.dependencies import Services
from src.models.coaching import UserRunRead

router = APIRouter(prefix="/automation", tags=["automation"])
logger = logging.getLogger("smartcoach.routers.automation")


def _to_read(result: UserRunResult) -> UserRunRead:
    return UserRunRead(
        user_id=result.external_ref,
        identity=result.resolution.status.value if result.resolution else None,
        outcome=result.aggregation.outcome.value if result.aggregation else None,
        message=result.message,
        used_fallback=result.used_fallback,
        delivery=result.delivery.to_dict() if result.delivery else None,
        error=result.error,
    )


@router.post("/sweep", status_code=202)
async def trigger_sweep(services: Services, background_tasks: BackgroundTasks) -> dict:
    """Start a sweep over every provider user (yesterday → today)."""
    background_tasks.add_task(services.pipeline.run_sweep)
    return {"status": "started"}


@router.post("/users/{user_id}", response_model=UserRunRead)
async def run_for_user(
    user_id: str,
    services: Services,
    lookback_days: int | None = Query(default=None, alias="lookbackDays", ge=1, le=90),
) -> Any:
    """Run the full pipeline (including delivery) for one user."""
    try:
        result = await services.pipeline.process_user(user_id, lookback_days=lookback_days)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderError as exc:
        logger.error("Single-user run for %s failed: %s", user_id, exc)
        raise HTTPException(
            status_code=exc.status if exc.status >= 400 else 502,
            detail={"error": str(exc), "details": exc.body},
        ) from exc
    return _to_read(result)


@router.post("/users/{user_id}/manual", response_model=UserRunRead)
async def run_manual_for_user(user_id: str, services: Services) -> Any:
    """Single-user run over the configured manual lookback window."""
    try:
        result = await services.pipeline.process_user_manual(user_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderError as exc:
        raise HTTPException(
            status_code=exc.status if exc.status >= 400 else 502,
            detail={"error": str(exc), "details": exc.body},
        ) from exc
    return _to_read(result)
