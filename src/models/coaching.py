"""Pydantic request/response models for the coaching endpoints.

Required fields are declared optional so that the routers can answer a
missing ``userId`` or ``message`` with a 400 and a plain error message.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from src.models.base import CoachBase


# ---------- Schedule ----------

class ScheduleRequest(CoachBase):
    type: str | None = None  # "now" | "schedule"
    time: str | None = None  # HH:mm
    date: str | None = None  # YYYY-MM-DD, omitted = daily
    user_id: str | None = Field(default=None, alias="userId")
    message: str | None = None


class ScheduleResponse(CoachBase):
    success: bool = True
    status: str  # "sent" | "scheduled"
    message: str
    user_id: str = Field(alias="userId")
    job_id: str = Field(alias="jobId")
    scheduled_time: str | None = Field(default=None, alias="scheduledTime")
    scheduled_date: str | None = Field(default=None, alias="scheduledDate")


class AuditEntryRead(CoachBase):
    timestamp: str
    local_time: str = Field(alias="localTime")
    user_id: str | None = Field(default=None, alias="userId")
    category: str
    text: str
    message: str


class LogsResponse(CoachBase):
    logs: list[str]
    entries: list[AuditEntryRead] = Field(default_factory=list)


# ---------- Messages ----------

class GenerateMessageRequest(CoachBase):
    health_data: dict[str, Any] = Field(default_factory=dict, alias="healthData")
    display_name: str | None = Field(default=None, alias="displayName")


class GenerateMessageResponse(CoachBase):
    message: str


class UserMessageResponse(CoachBase):
    message: str | None = None
    has_fitrockr_data: bool = Field(default=False, alias="hasFitrockrData")
    fitrockr_data: dict[str, Any] | None = Field(default=None, alias="fitrockrData")
    identity: str | None = None  # "resolved" | "unresolved"
    error: str | None = None


# ---------- Notify ----------

class NotifyRequest(CoachBase):
    driver_id: str | None = None
    message: str | None = None


# ---------- Automation ----------

class UserRunRead(CoachBase):
    user_id: str = Field(alias="userId")
    identity: str | None = None
    outcome: str | None = None
    message: str | None = None
    used_fallback: bool = Field(default=False, alias="usedFallback")
    delivery: dict[str, Any] | None = None
    error: str | None = None
