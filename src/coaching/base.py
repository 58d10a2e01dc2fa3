"""Canonical data models and collaborator interfaces for the coaching engine.

Every provider payload is mapped onto ``HealthEntry`` / ``AggregatedMetrics``
before it reaches the synthesizer, and every external system is reached
through one of the abstract collaborators below.  Concrete implementations
live in ``src.coaching.adapters`` and ``src.coaching.identity``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, NamedTuple

logger = logging.getLogger("smartcoach.coaching")


# ---------------------------------------------------------------------------
# Calendar dates
# ---------------------------------------------------------------------------


class CalendarDate(NamedTuple):
    """A (year, month, day) triple with no time-zone component.

    Ordering is plain tuple ordering, so two dates compare lexicographically
    on the triple and never on a parsed timestamp.
    """

    year: int
    month: int
    day: int

    @classmethod
    def from_date(cls, value: date) -> "CalendarDate":
        return cls(value.year, value.month, value.day)

    @classmethod
    def parse(cls, raw: Any) -> "CalendarDate | None":
        """Parse a provider date value.

        Accepts ``{"year": 2025, "month": 3, "day": 1}``, an ISO
        ``"YYYY-MM-DD"`` string, or a ``datetime.date``.  Returns None for
        anything missing or not a real calendar day.
        """
        if raw is None or raw == "" or raw == {}:
            return None
        try:
            if isinstance(raw, date):
                return cls.from_date(raw)
            if isinstance(raw, dict):
                parsed = date(int(raw["year"]), int(raw["month"]), int(raw["day"]))
                return cls.from_date(parsed)
            if isinstance(raw, str):
                return cls.from_date(date.fromisoformat(raw[:10]))
        except (KeyError, TypeError, ValueError):
            return None
        return None

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def isoformat(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


# ---------------------------------------------------------------------------
# Health data
# ---------------------------------------------------------------------------


def _non_negative_int(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def _non_negative_float(value: Any) -> float:
    try:
        return max(float(value or 0), 0.0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class HealthEntry:
    """One provider daily summary, mapped to canonical field names.

    Attributes:
        date:            Calendar day the summary belongs to.
        steps:           Step count.
        calories:        Calories burned.
        distance_meters: Distance travelled in meters.
        active_minutes:  Minutes of activity.
        sleep_seconds:   Sleep duration in seconds.
        avg_heart_rate:  Average heart rate (bpm).
    """

    date: CalendarDate
    steps: int = 0
    calories: int = 0
    distance_meters: float = 0.0
    active_minutes: int = 0
    sleep_seconds: float = 0.0
    avg_heart_rate: int = 0

    @classmethod
    def from_raw(cls, raw: dict) -> "HealthEntry | None":
        """Map a Fitrockr ``dailySummaries`` item; None when it has no usable date."""
        entry_date = CalendarDate.parse(raw.get("date"))
        if entry_date is None:
            return None
        return cls(
            date=entry_date,
            steps=_non_negative_int(raw.get("steps")),
            calories=_non_negative_int(raw.get("calories")),
            distance_meters=_non_negative_float(raw.get("distance")),
            active_minutes=_non_negative_int(raw.get("activityMinutes")),
            sleep_seconds=_non_negative_float(raw.get("sleepDuration")),
            avg_heart_rate=_non_negative_int(raw.get("averageHeartRate")),
        )


@dataclass(frozen=True)
class AggregatedMetrics:
    """The metrics handed to the message synthesizer for one user.

    ``sleep_hours`` is derived as ``sleep_seconds / 3600``.
    """

    date: CalendarDate | None
    steps: int = 0
    calories: int = 0
    distance_meters: float = 0.0
    active_minutes: int = 0
    sleep_hours: float = 0.0
    avg_heart_rate: int = 0

    @classmethod
    def from_entry(cls, entry: HealthEntry) -> "AggregatedMetrics":
        return cls(
            date=entry.date,
            steps=entry.steps,
            calories=entry.calories,
            distance_meters=entry.distance_meters,
            active_minutes=entry.active_minutes,
            sleep_hours=entry.sleep_seconds / 3600,
            avg_heart_rate=entry.avg_heart_rate,
        )

    @classmethod
    def from_payload(cls, payload: dict) -> "AggregatedMetrics":
        """Build metrics from the JSON shape produced by ``to_payload``.

        Used when a caller supplies metrics directly instead of a user id.
        """
        return cls(
            date=CalendarDate.parse(payload.get("date")),
            steps=_non_negative_int(payload.get("steps")),
            calories=_non_negative_int(payload.get("calories")),
            distance_meters=_non_negative_float(payload.get("distance")),
            active_minutes=_non_negative_int(payload.get("activeMinutes")),
            sleep_hours=_non_negative_float(payload.get("sleepHours")),
            avg_heart_rate=_non_negative_int(payload.get("heartRate")),
        )

    @property
    def has_signal(self) -> bool:
        """False when every metric is zero."""
        return any(
            value > 0
            for value in (
                self.steps,
                self.calories,
                self.distance_meters,
                self.active_minutes,
                self.sleep_hours,
                self.avg_heart_rate,
            )
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "steps": self.steps,
            "calories": self.calories,
            "distance": self.distance_meters,
            "activeMinutes": self.active_minutes,
            "sleepHours": self.sleep_hours,
            "heartRate": self.avg_heart_rate,
        }


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserIdentity:
    """A user as seen by one operation.

    ``provider_id`` is resolved per call and never cached between calls.
    """

    external_ref: str
    provider_id: str | None = None
    display_name: str | None = None

    @property
    def provider_key(self) -> str:
        """The id to send to the provider; falls back to ``external_ref``."""
        return self.provider_id or self.external_ref


@dataclass(frozen=True)
class IdentityRecord:
    """A row from the local identity store."""

    local_id: str | None
    provider_id: str | None
    display_name: str | None = None


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class IdentityResolution:
    """Tagged result of resolving an external ref to a provider id.

    ``RESOLVED`` means the local store supplied the provider key.
    ``UNRESOLVED`` means the caller's ref is used as-is; ``reason`` says why.
    Either way ``provider_id`` is a non-empty string.
    """

    status: ResolutionStatus
    external_ref: str
    provider_id: str
    display_name: str | None = None
    reason: str | None = None

    @classmethod
    def resolved(
        cls, external_ref: str, provider_id: str, display_name: str | None = None
    ) -> "IdentityResolution":
        return cls(ResolutionStatus.RESOLVED, external_ref, provider_id, display_name)

    @classmethod
    def unresolved(cls, external_ref: str, reason: str) -> "IdentityResolution":
        return cls(ResolutionStatus.UNRESOLVED, external_ref, external_ref, reason=reason)

    @property
    def degraded(self) -> bool:
        return self.status is ResolutionStatus.UNRESOLVED

    def to_identity(self) -> UserIdentity:
        return UserIdentity(
            external_ref=self.external_ref,
            provider_id=None if self.degraded else self.provider_id,
            display_name=self.display_name,
        )


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class IdentityStore(ABC):
    """Local relational store holding the mapping to provider ids."""

    @abstractmethod
    async def lookup_by_external_ref(self, ref: str) -> IdentityRecord | None:
        """Return the record for a caller-facing ref, or None."""

    @abstractmethod
    async def lookup_by_provider_ref(self, provider_id: str) -> IdentityRecord | None:
        """Return the record whose provider key equals ``provider_id``, or None."""


class HealthProvider(ABC):
    """External wearable-data API (source of truth for daily summaries)."""

    @abstractmethod
    async def list_users(self) -> list[dict]:
        """Return provider users as dicts with at least an ``id`` key."""

    @abstractmethod
    async def get_user(self, provider_id: str) -> dict:
        """Return one provider user.

        Raises:
            ProviderError: 404 when the user is unknown.
        """

    @abstractmethod
    async def get_entries(
        self, provider_id: str, start_date: date, end_date: date
    ) -> list[dict] | dict:
        """Return daily summaries, either as a list or as ``{"content": [...]}``."""


class TextGenerator(ABC):
    """Prompt-in / text-out completion service."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return generated text.

        Raises:
            TextGenerationError: On any failure.
        """


class NotificationBackend(ABC):
    """Push backend that delivers a message to a user's device."""

    @abstractmethod
    async def authenticate(self, credentials: dict) -> dict:
        """Log in and return the decoded response (expected to carry a token)."""

    @abstractmethod
    async def deliver(self, token: str, payload: dict) -> Any:
        """Deliver ``payload`` using bearer ``token``; return the backend ack."""
