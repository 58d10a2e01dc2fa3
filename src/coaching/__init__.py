"""SmartCoach coaching engine.

Turns a user's wearable data into a delivered coaching message and keeps an
audit trail of every step.

Subpackages:
    adapters/ — httpx clients for Fitrockr, OpenAI and the notification backend
    sync/     — Job scheduler (APScheduler) and the bounded audit log

Core modules:
    base        — Canonical models and collaborator interfaces
    identity    — Local-store → provider id resolution
    aggregator  — Fetch → filter → latest-entry reduction
    synthesizer — Prompt building and message generation
    notify      — Authenticated notification delivery
    pipeline    — Sweep / single-user orchestration
"""

from src.coaching.base import (
    AggregatedMetrics,
    CalendarDate,
    HealthEntry,
    IdentityResolution,
    UserIdentity,
)
from src.coaching.errors import ProviderError, TextGenerationError, ValidationError

__all__ = [
    "AggregatedMetrics",
    "CalendarDate",
    "HealthEntry",
    "IdentityResolution",
    "UserIdentity",
    "ProviderError",
    "TextGenerationError",
    "ValidationError",
]
