"""Read-only passthrough to the Fitrockr provider."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.coaching.adapters import unwrap_content
from src.coaching.aggregator import DateWindow
from src.coaching.errors import ProviderError
from src.dependencies import Services

router = APIRouter(prefix="/fitrockr", tags=["fitrockr"])


def _raise(exc: ProviderError) -> None:
    raise HTTPException(
        status_code=exc.status if exc.status >= 400 else 502,
        detail={"message": str(exc), "details": exc.body},
    ) from exc


@router.get("/users")
async def list_users(services: Services) -> Any:
    try:
        users = await services.provider.list_users()
    except ProviderError as exc:
        _raise(exc)
    if not users:
        raise HTTPException(status_code=404, detail="No users found.")
    return users


@router.get("/users/{user_id}")
async def get_user(user_id: str, services: Services) -> Any:
    try:
        return await services.provider.get_user(user_id)
    except ProviderError as exc:
        _raise(exc)


@router.get("/users/{user_id}/summary")
async def get_daily_summary(
    user_id: str,
    services: Services,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> Any:
    """Raw daily summaries; defaults to yesterday → today."""
    window = DateWindow.yesterday_to_today(end_date)
    start = start_date or window.start
    if start > window.end:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")
    try:
        payload = await services.provider.get_entries(user_id, start, window.end)
    except ProviderError as exc:
        _raise(exc)
    return unwrap_content(payload)
