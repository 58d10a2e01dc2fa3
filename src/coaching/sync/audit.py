"""Bounded in-memory audit log for scheduler and pipeline events.

The log is a ring buffer: ``append`` is the only mutator and always trims to
``capacity`` entries, evicting the oldest first.  Appends are serialized by a
lock so concurrent jobs and request handlers never lose or reorder entries.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

logger = logging.getLogger("smartcoach.coaching.audit")

DEFAULT_CAPACITY = 500
DEFAULT_QUERY_LIMIT = 200


class AuditCategory(str, Enum):
    INFO = "info"
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    EXECUTION_STARTED = "execution_started"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    PIPELINE = "pipeline"
    SKIPPED = "skipped"
    ERROR = "error"


def _format_local(ts: datetime) -> str:
    return ts.astimezone().strftime("%d-%m-%Y %H:%M:%S")


@dataclass(frozen=True)
class AuditEntry:
    """One immutable audit record.

    Attributes:
        text:                Human-readable event description.
        user_id:             Attributed user, None for process-wide events.
        category:            Event type.
        timestamp_utc:       Capture time (UTC), taken at append time.
        formatted_local_time: ``timestamp_utc`` rendered in host local time.
    """

    text: str
    user_id: str | None = None
    category: str = AuditCategory.INFO.value
    timestamp_utc: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    formatted_local_time: str = ""

    def __post_init__(self) -> None:
        if not self.formatted_local_time:
            object.__setattr__(self, "formatted_local_time", _format_local(self.timestamp_utc))

    def render(self) -> str:
        prefix = f"[User:{self.user_id}] " if self.user_id else "[All] "
        return f"{self.formatted_local_time}  |  {prefix}{self.text}"

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp_utc.isoformat(),
            "localTime": self.formatted_local_time,
            "userId": self.user_id,
            "category": self.category,
            "text": self.text,
            "message": self.render(),
        }


class AuditLog:
    """Thread-safe, capacity-bounded ring buffer of ``AuditEntry``."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._entries: deque[AuditEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def append(
        self,
        text: str,
        user_id: str | None = None,
        category: AuditCategory | str = AuditCategory.INFO,
    ) -> AuditEntry:
        """Record an event. Never raises."""
        entry = AuditEntry(
            text=str(text),
            user_id=str(user_id) if user_id is not None else None,
            category=category.value if isinstance(category, AuditCategory) else str(category),
        )
        with self._lock:
            self._entries.append(entry)
        logger.info("%s", entry.render())
        return entry

    def query(
        self, user_id: str | None = None, limit: int = DEFAULT_QUERY_LIMIT
    ) -> list[AuditEntry]:
        """Return up to ``limit`` most recent entries, oldest first.

        When ``user_id`` is given only entries attributed to that user are
        considered.
        """
        with self._lock:
            snapshot = list(self._entries)
        if user_id is not None:
            snapshot = [e for e in snapshot if e.user_id == str(user_id)]
        if limit <= 0:
            return []
        return snapshot[-limit:]
