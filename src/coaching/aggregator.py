"""Fetch → filter → reduce pipeline for provider daily summaries.

For one user and one inclusive date window the aggregator calls the
provider once, keeps the entries dated inside the window and returns the
most recent one.  "No entries" and "only zeros" are distinct, non-error
outcomes that callers treat as "nothing to send".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from src.coaching.adapters.fitrockr import unwrap_content
from src.coaching.base import AggregatedMetrics, CalendarDate, HealthEntry, HealthProvider
from src.coaching.errors import ValidationError

logger = logging.getLogger("smartcoach.coaching.aggregator")


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar-date range."""

    start: date
    end: date

    @classmethod
    def yesterday_to_today(cls, today: date | None = None) -> "DateWindow":
        end = today or date.today()
        return cls(end - timedelta(days=1), end)

    @classmethod
    def lookback(cls, days: int, today: date | None = None) -> "DateWindow":
        """Window covering ``days`` days before ``today`` plus today itself."""
        end = today or date.today()
        return cls(end - timedelta(days=max(days, 1)), end)

    def contains(self, value: CalendarDate) -> bool:
        return CalendarDate.from_date(self.start) <= value <= CalendarDate.from_date(self.end)


class AggregationOutcome(str, Enum):
    LATEST = "latest"
    EMPTY = "empty"          # no entries dated inside the window
    NO_SIGNAL = "no_signal"  # latest entry has every metric at zero


@dataclass(frozen=True)
class AggregationResult:
    """Result of one ``fetch_latest`` call.

    Attributes:
        outcome:      Which of the three outcomes occurred.
        window:       The window that was requested.
        metrics:      Latest metrics (also set for NO_SIGNAL, None for EMPTY).
        entries_seen: Number of raw items the provider returned.
        entries_kept: Number of items dated inside the window.
    """

    outcome: AggregationOutcome
    window: DateWindow
    metrics: AggregatedMetrics | None = None
    entries_seen: int = 0
    entries_kept: int = 0

    @property
    def has_data(self) -> bool:
        return self.outcome is AggregationOutcome.LATEST


def select_latest(raw_entries: list, window: DateWindow) -> tuple[HealthEntry | None, int]:
    """Return the in-window entry with the greatest date and the in-window count.

    Items that are not dicts or carry no valid date are ignored.
    """
    entries = []
    for raw in raw_entries:
        if not isinstance(raw, dict):
            continue
        entry = HealthEntry.from_raw(raw)
        if entry is None or not window.contains(entry.date):
            continue
        entries.append(entry)

    if not entries:
        return None, 0
    entries.sort(key=lambda e: e.date, reverse=True)
    return entries[0], len(entries)


class HealthAggregator:
    """Reduce a provider time series to the user's latest daily metrics."""

    def __init__(self, provider: HealthProvider) -> None:
        self._provider = provider

    async def fetch_latest(
        self, provider_id: str, start_date: date, end_date: date
    ) -> AggregationResult:
        """Fetch ``[start_date, end_date]`` once and pick the latest entry.

        Raises:
            ValidationError: If ``start_date`` is after ``end_date``.
            ProviderError:   If the provider call fails.
        """
        if start_date > end_date:
            raise ValidationError(
                f"startDate {start_date.isoformat()} is after endDate {end_date.isoformat()}"
            )
        window = DateWindow(start_date, end_date)

        logger.info(
            "Fetching summaries for %s from %s to %s",
            provider_id, start_date.isoformat(), end_date.isoformat(),
        )
        payload = await self._provider.get_entries(provider_id, start_date, end_date)
        raw_entries = unwrap_content(payload)

        latest, kept = select_latest(raw_entries, window)
        if latest is None:
            logger.info(
                "No entries within %s..%s for %s (%d returned)",
                start_date.isoformat(), end_date.isoformat(), provider_id, len(raw_entries),
            )
            return AggregationResult(
                AggregationOutcome.EMPTY, window, entries_seen=len(raw_entries)
            )

        metrics = AggregatedMetrics.from_entry(latest)
        if not metrics.has_signal:
            logger.info(
                "All metrics zero for %s on %s; skipping", provider_id, latest.date.isoformat()
            )
            return AggregationResult(
                AggregationOutcome.NO_SIGNAL, window, metrics, len(raw_entries), kept
            )

        logger.debug("Latest entry for %s: %s", provider_id, latest)
        return AggregationResult(
            AggregationOutcome.LATEST, window, metrics, len(raw_entries), kept
        )
