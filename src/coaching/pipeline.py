"""Coaching pipeline: resolve → aggregate → synthesize → deliver.

Drives either a sweep over every provider user or a single on-demand run.
A sweep isolates failures per user: one user's error is logged and recorded
and the sweep moves on to the next user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone

from src.coaching.aggregator import (
    AggregationOutcome,
    AggregationResult,
    DateWindow,
    HealthAggregator,
)
from src.coaching.base import (
    AggregatedMetrics,
    HealthProvider,
    IdentityResolution,
    UserIdentity,
)
from src.coaching.errors import ProviderError
from src.coaching.identity import IdentityResolver, normalize_ref
from src.coaching.notify import DeliveryResult, NotificationDispatcher
from src.coaching.sync.audit import AuditCategory, AuditLog
from src.coaching.synthesizer import MessageSynthesizer

logger = logging.getLogger("smartcoach.coaching.pipeline")


@dataclass
class UserRunResult:
    """What happened for one user in one pipeline run.

    Attributes:
        external_ref:  The caller-facing user ref.
        resolution:    Identity resolution outcome (None if it never ran).
        identity:      The user as seen by this run: resolved provider id
                       (None when degraded) and the display name used.
        aggregation:   Aggregation outcome (None if it never ran).
        message:       Generated message, if any.
        used_fallback: True when the default message replaced generation.
        delivery:      Delivery result when delivery was requested.
        error:         Error text when the run failed unexpectedly.
    """

    external_ref: str
    resolution: IdentityResolution | None = None
    identity: UserIdentity | None = None
    aggregation: AggregationResult | None = None
    message: str | None = None
    used_fallback: bool = False
    delivery: DeliveryResult | None = None
    error: str | None = None

    @property
    def metrics(self) -> AggregatedMetrics | None:
        return self.aggregation.metrics if self.aggregation else None

    @property
    def skipped(self) -> bool:
        return self.aggregation is not None and not self.aggregation.has_data

    @property
    def delivered(self) -> bool:
        return self.delivery is not None and self.delivery.ok


@dataclass
class SweepReport:
    """Summary of one sweep over all provider users."""

    window: DateWindow
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    results: list[UserRunResult] = field(default_factory=list)
    error: str | None = None

    @property
    def delivered(self) -> int:
        return sum(1 for r in self.results if r.delivered)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.error or (r.delivery and not r.delivery.ok))


def _display_name(user: dict) -> str | None:
    first = user.get("firstName")
    if first:
        last = user.get("lastName")
        return f"{first} {last}" if last else str(first)
    name = user.get("name") or user.get("displayName")
    return str(name) if name else None


class CoachingPipeline:
    """Orchestrates one user's path from provider data to delivered message."""

    def __init__(
        self,
        provider: HealthProvider,
        resolver: IdentityResolver,
        aggregator: HealthAggregator,
        synthesizer: MessageSynthesizer,
        dispatcher: NotificationDispatcher,
        audit_log: AuditLog,
        lookback_days: int = 7,
    ) -> None:
        self._provider = provider
        self._resolver = resolver
        self._aggregator = aggregator
        self._synthesizer = synthesizer
        self._dispatcher = dispatcher
        self._audit = audit_log
        self._lookback_days = lookback_days

    async def run_sweep(self, today: date | None = None) -> SweepReport:
        """Process every provider user over the yesterday → today window."""
        window = DateWindow.yesterday_to_today(today)
        report = SweepReport(window=window)

        try:
            users = await self._provider.list_users()
        except ProviderError as exc:
            logger.error("Sweep aborted, could not list users: %s", exc)
            self._audit.append(f"Sweep aborted: {exc}", None, AuditCategory.ERROR)
            report.error = str(exc)
            return report

        self._audit.append(
            f"Sweep started for {len(users)} users "
            f"({window.start.isoformat()} to {window.end.isoformat()})",
            None,
            AuditCategory.PIPELINE,
        )
        for user in users:
            ref = user.get("id")
            if ref is None or str(ref).strip() == "":
                logger.warning("Skipping provider user without id: %s", user)
                continue
            result = await self._run_isolated(
                str(ref), window, deliver=True, display_name=_display_name(user)
            )
            report.results.append(result)

        logger.info(
            "Sweep complete: %d users, %d delivered, %d skipped, %d failed",
            len(report.results), report.delivered, report.skipped, report.failed,
        )
        self._audit.append(
            f"Sweep complete: {report.delivered} delivered, {report.skipped} skipped, "
            f"{report.failed} failed",
            None,
            AuditCategory.PIPELINE,
        )
        return report

    async def process_user(
        self,
        external_ref: str | int,
        lookback_days: int | None = None,
        deliver: bool = True,
        today: date | None = None,
    ) -> UserRunResult:
        """Run the pipeline for one user.

        With ``lookback_days`` the window spans that many days before today
        instead of yesterday → today.
        The provider user is looked up first; its name personalises the
        message when the local store has none.

        Raises:
            ValidationError: If ``external_ref`` is blank.
            ProviderError:   If the provider call fails (404 when the
                             provider does not know the user).
        """
        ref = normalize_ref(external_ref)
        if lookback_days:
            window = DateWindow.lookback(lookback_days, today)
        else:
            window = DateWindow.yesterday_to_today(today)
        return await self._run(ref, window, deliver=deliver, lookup_user=True)

    async def process_user_manual(self, external_ref: str | int) -> UserRunResult:
        """On-demand run using the wider manual lookback window."""
        return await self.process_user(external_ref, lookback_days=self._lookback_days)

    async def generate_for_user(
        self, external_ref: str | int, today: date | None = None
    ) -> UserRunResult:
        """Fetch and generate without delivering."""
        return await self.process_user(external_ref, deliver=False, today=today)

    async def generate_for_metrics(
        self, metrics: AggregatedMetrics, display_name: str | None = None
    ) -> str:
        return await self._synthesizer.generate(metrics, display_name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_isolated(
        self, ref: str, window: DateWindow, deliver: bool, display_name: str | None
    ) -> UserRunResult:
        try:
            return await self._run(ref, window, deliver=deliver, display_name=display_name)
        except Exception as exc:
            logger.exception("Error processing user %s", ref)
            self._audit.append(f"Error processing user: {exc}", ref, AuditCategory.ERROR)
            return UserRunResult(external_ref=ref, error=str(exc))

    async def _run(
        self,
        ref: str,
        window: DateWindow,
        deliver: bool,
        display_name: str | None = None,
        lookup_user: bool = False,
    ) -> UserRunResult:
        logger.info("Processing user %s (%s to %s)", ref, window.start, window.end)
        result = UserRunResult(external_ref=ref)

        result.resolution = await self._resolver.resolve(ref)
        if result.resolution.degraded:
            self._audit.append(
                f"Identity not resolved ({result.resolution.reason}); using {ref} as provider id",
                ref,
                AuditCategory.PIPELINE,
            )
        identity = result.resolution.to_identity()

        if lookup_user:
            # ProviderError (404 for an unknown user) propagates to the caller
            user = await self._provider.get_user(identity.provider_key)
            display_name = display_name or _display_name(user)
        if not identity.display_name and display_name:
            identity = replace(identity, display_name=display_name)
        result.identity = identity

        result.aggregation = await self._aggregator.fetch_latest(
            identity.provider_key, window.start, window.end
        )
        if result.aggregation.outcome is AggregationOutcome.EMPTY:
            self._audit.append(
                f"No health data between {window.start.isoformat()} and {window.end.isoformat()}",
                ref,
                AuditCategory.SKIPPED,
            )
            return result
        if result.aggregation.outcome is AggregationOutcome.NO_SIGNAL:
            self._audit.append("All metrics zero; skipping", ref, AuditCategory.SKIPPED)
            return result

        synthesized = await self._synthesizer.synthesize(
            result.aggregation.metrics, identity.display_name
        )
        result.message = synthesized.text
        result.used_fallback = synthesized.used_fallback
        if synthesized.used_fallback:
            self._audit.append("Message generation failed; using default message", ref,
                               AuditCategory.PIPELINE)

        if not deliver:
            return result

        result.delivery = await self._dispatcher.send(identity.external_ref, result.message)
        if result.delivery.ok:
            self._audit.append(f"Message sent successfully to user {ref}", ref,
                               AuditCategory.DELIVERED)
        else:
            self._audit.append(
                f"Failed to send message to user {ref} "
                f"({result.delivery.status}): {result.delivery.error_message}",
                ref,
                AuditCategory.DELIVERY_FAILED,
            )
        return result
