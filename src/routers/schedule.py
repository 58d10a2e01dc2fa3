"""Delivery job submission and audit-trail endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.coaching.errors import ValidationError
from src.dependencies import Services
from src.models.coaching import LogsResponse, ScheduleRequest, ScheduleResponse

router = APIRouter(prefix="/schedule", tags=["schedule"])
logger = logging.getLogger("smartcoach.routers.schedule")


@router.post("/schedule", response_model=ScheduleResponse)
async def submit_job(body: ScheduleRequest, services: Services) -> Any:
    """Send a pre-generated message now, or schedule it once / daily.

    Body: ``{"type": "now" | "schedule", "time": "HH:mm", "date": "YYYY-MM-DD",
    "userId": "...", "message": "..."}``
    """
    if not body.user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    if not body.message:
        raise HTTPException(status_code=400, detail="message is required")

    scheduler = services.scheduler
    try:
        if body.type == "now":
            job = scheduler.run_now(body.user_id, body.message)
            return ScheduleResponse(
                status="sent",
                message=f"Message sent immediately to user {body.user_id}",
                user_id=body.user_id,
                job_id=job.job_id,
            )
        if body.type == "schedule":
            if not body.time:
                raise HTTPException(status_code=400, detail="time is required for scheduled jobs")
            job = scheduler.schedule_at(body.time, body.date, body.user_id, body.message)
            when = f" on {body.date}" if body.date else " daily"
            return ScheduleResponse(
                status="scheduled",
                message=f"Message scheduled for user {body.user_id} at {job.time_str}{when}",
                user_id=body.user_id,
                job_id=job.job_id,
                scheduled_time=job.time_str,
                scheduled_date=body.date or None,
            )
    except ValidationError as exc:
        logger.info("Rejected schedule request for %s: %s", body.user_id, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    raise HTTPException(status_code=400, detail="type must be 'now' or 'schedule'")


@router.get("/logs", response_model=LogsResponse)
async def get_logs(
    services: Services,
    user_id: str | None = Query(default=None, alias="userId"),
) -> Any:
    """Recent audit entries, globally or for one user."""
    entries = services.scheduler.get_logs(user_id)
    return {
        "logs": [e.render() for e in entries],
        "entries": [e.to_dict() for e in entries],
    }


@router.get("/jobs")
async def list_jobs(services: Services) -> list[dict]:
    """Currently registered delivery jobs."""
    return [job.to_dict() for job in services.scheduler.jobs]
