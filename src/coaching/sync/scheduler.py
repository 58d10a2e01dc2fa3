"""Per-user delivery scheduler.

Each request binds one user to one pre-generated message and is executed
either immediately (``run_now``) or by an APScheduler trigger
(``schedule_at``): a ``DateTrigger`` for a one-off date, a ``CronTrigger``
for a daily recurrence.  Fired jobs run as independent coroutines on the
event loop, so one job waiting on the network never delays another.

Every lifecycle event is appended to the shared ``AuditLog``.  Jobs are
kept in a registry keyed by job id; nothing is persisted, so pending jobs
do not survive a restart.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from src.coaching.errors import ValidationError
from src.coaching.notify import DeliveryResult, NotificationDispatcher
from src.coaching.sync.audit import DEFAULT_QUERY_LIMIT, AuditCategory, AuditEntry, AuditLog

logger = logging.getLogger("smartcoach.coaching.sync.scheduler")

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{1,2})\s*$")

SWEEP_JOB_ID = "daily-sweep"


class JobKind(str, Enum):
    IMMEDIATE = "immediate"
    ONCE = "once"
    DAILY = "daily"


@dataclass
class ScheduledJob:
    """A registered delivery job.

    The message is frozen at registration; it is never regenerated when the
    job fires.

    Attributes:
        job_id:       Registry key (also the APScheduler job id).
        user_id:      Target user.
        message:      Message to deliver.
        kind:         IMMEDIATE, ONCE or DAILY.
        hour:         Trigger hour (local scheduler time).
        minute:       Trigger minute.
        run_date:     Calendar date for ONCE jobs.
        trigger_expr: Human-readable trigger description.
        created_at:   UTC registration time.
        handle:       APScheduler ``Job`` or ``asyncio.Task``; each can be
                      stopped on its own.
    """

    job_id: str
    user_id: str
    message: str
    kind: JobKind
    hour: int
    minute: int
    run_date: date | None = None
    trigger_expr: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    handle: Any = field(default=None, repr=False, compare=False)

    @property
    def time_str(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    @property
    def label(self) -> str:
        if self.kind is JobKind.DAILY:
            return "daily"
        if self.kind is JobKind.ONCE and self.run_date:
            return self.run_date.isoformat()
        return "now"

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "userId": self.user_id,
            "kind": self.kind.value,
            "time": self.time_str,
            "date": self.run_date.isoformat() if self.run_date else None,
            "trigger": self.trigger_expr,
            "createdAt": self.created_at.isoformat(),
        }


def parse_time(value: str | None) -> tuple[int, int]:
    """Parse ``HH:mm`` (24-hour).

    Raises:
        ValidationError: If either part is missing or out of range.
    """
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValidationError("Invalid time format, expected HH:mm")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError("Invalid time format, expected HH:mm")
    return hour, minute


def parse_date(value: str | date | None) -> date | None:
    """Parse an optional ``YYYY-MM-DD`` date.

    Raises:
        ValidationError: If the value is present but not an ISO date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError("Invalid date format, expected YYYY-MM-DD") from exc


def _require(user_id: str | None, message: str | None) -> tuple[str, str]:
    uid = str(user_id).strip() if user_id is not None else ""
    msg = message.strip() if isinstance(message, str) else ""
    if not uid or not msg:
        raise ValidationError("Both userId and message are required")
    return uid, msg


class JobScheduler:
    """Run and schedule message deliveries, recording every step."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        audit_log: AuditLog,
        timezone: str | None = None,
        query_limit: int = DEFAULT_QUERY_LIMIT,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            dispatcher:  Delivers messages when a job runs.
            audit_log:   Shared audit log.
            timezone:    Zone for trigger times; host local time when None.
            query_limit: Maximum entries returned by ``get_logs``.
            scheduler:   Pre-built APScheduler instance (for testing).
        """
        self._dispatcher = dispatcher
        self._audit = audit_log
        self._query_limit = query_limit
        if scheduler is None:
            scheduler = AsyncIOScheduler(timezone=timezone) if timezone else AsyncIOScheduler()
        self._scheduler = scheduler
        self._jobs: dict[str, ScheduledJob] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Start firing triggers. Must be called from within the event loop."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("JobScheduler started (%d jobs registered)", len(self._jobs))

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("JobScheduler stopped")

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    def get_job(self, job_id: str) -> ScheduledJob | None:
        return self._jobs.get(job_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def run_now(self, user_id: str, message: str) -> ScheduledJob:
        """Deliver ``message`` to ``user_id`` right away.

        Validation happens synchronously; the delivery itself runs as a
        background task whose outcome lands in the audit log.

        Raises:
            ValidationError: If ``user_id`` or ``message`` is missing.
        """
        uid, msg = _require(user_id, message)
        loop = asyncio.get_running_loop()

        now = datetime.now()
        job = ScheduledJob(
            job_id=uuid.uuid4().hex,
            user_id=uid,
            message=msg,
            kind=JobKind.IMMEDIATE,
            hour=now.hour,
            minute=now.minute,
            trigger_expr="now",
        )
        self._audit.append(f"Manual execution triggered for user {uid}", uid, AuditCategory.MANUAL)
        self._audit.append(
            f"Using pre-generated message: {msg[:50]}...", uid, AuditCategory.MANUAL
        )

        task = loop.create_task(self._run_immediate(job))
        job.handle = task
        self._jobs[job.job_id] = job
        self._tasks.add(task)
        task.add_done_callback(lambda t, job_id=job.job_id: self._forget_task(t, job_id))
        return job

    def schedule_at(
        self,
        time: str,
        date: str | date | None,
        user_id: str,
        message: str,
    ) -> ScheduledJob:
        """Register a delivery at ``time`` once on ``date``, or daily when no date.

        Raises:
            ValidationError: On a malformed time or date, a one-off time in
                the past, or a missing user id / message.
        """
        hour, minute = parse_time(time)
        run_date = parse_date(date)
        uid, msg = _require(user_id, message)
        tz = self._scheduler.timezone

        if run_date is not None:
            trigger = DateTrigger(
                run_date=datetime(run_date.year, run_date.month, run_date.day, hour, minute),
                timezone=tz,
            )
            if trigger.run_date <= datetime.now(timezone.utc):
                raise ValidationError(
                    f"Scheduled time {run_date.isoformat()} {hour:02d}:{minute:02d} is in the past"
                )
            kind = JobKind.ONCE
            trigger_expr = f"date:{run_date.isoformat()} {hour:02d}:{minute:02d}"
        else:
            trigger = CronTrigger(hour=hour, minute=minute, timezone=tz)
            kind = JobKind.DAILY
            trigger_expr = f"cron:{minute} {hour} * * *"

        job = ScheduledJob(
            job_id=uuid.uuid4().hex,
            user_id=uid,
            message=msg,
            kind=kind,
            hour=hour,
            minute=minute,
            run_date=run_date,
            trigger_expr=trigger_expr,
        )
        job.handle = self._scheduler.add_job(
            self._run_scheduled,
            trigger=trigger,
            args=[job.job_id],
            id=job.job_id,
            name=f"deliver:{uid}:{job.label}",
            misfire_grace_time=300,
            coalesce=True,
        )
        self._jobs[job.job_id] = job

        if kind is JobKind.ONCE:
            text = f"Message scheduled for user {uid} on {run_date.isoformat()} at {job.time_str}"
        else:
            text = f"Daily message scheduled for user {uid} at {job.time_str}"
        self._audit.append(text, uid, AuditCategory.SCHEDULED)
        logger.info("Registered job %s (%s)", job.job_id, trigger_expr)
        return job

    def schedule_daily_sweep(
        self, callback: Callable[[], Awaitable[Any]], hour: int = 0, minute: int = 0
    ) -> None:
        """Register the nightly all-user sweep, replacing any previous one."""
        self._scheduler.add_job(
            callback,
            trigger=CronTrigger(hour=hour, minute=minute, timezone=self._scheduler.timezone),
            id=SWEEP_JOB_ID,
            name="daily health sweep",
            replace_existing=True,
            coalesce=True,
        )
        self._audit.append(
            f"Daily health sweep scheduled at {hour:02d}:{minute:02d}", None, AuditCategory.INFO
        )

    def get_logs(self, user_id: str | None = None) -> list[AuditEntry]:
        """Most recent audit entries (oldest first), optionally for one user."""
        return self._audit.query(user_id or None, limit=self._query_limit)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run_immediate(self, job: ScheduledJob) -> DeliveryResult | None:
        self._audit.append(
            f"Manual execution started for user {job.user_id}",
            job.user_id,
            AuditCategory.EXECUTION_STARTED,
        )
        return await self._deliver(job, "Message")

    async def _run_scheduled(self, job_id: str) -> DeliveryResult | None:
        job = self._jobs.get(job_id)
        if job is None:
            logger.warning("Fired job %s is no longer registered", job_id)
            return None

        self._audit.append(
            f"Scheduled message starting for user {job.user_id} ({job.label}) {job.time_str}",
            job.user_id,
            AuditCategory.EXECUTION_STARTED,
        )
        try:
            return await self._deliver(job, "Scheduled message")
        finally:
            if job.kind is JobKind.ONCE:
                self._jobs.pop(job_id, None)

    async def _deliver(self, job: ScheduledJob, what: str) -> DeliveryResult | None:
        try:
            result = await self._dispatcher.send(job.user_id, job.message)
        except Exception as exc:
            logger.exception("Delivery for job %s raised", job.job_id)
            self._audit.append(
                f"Failed to send {what.lower()} to user {job.user_id}: {exc}",
                job.user_id,
                AuditCategory.DELIVERY_FAILED,
            )
            return None

        if result.ok:
            self._audit.append(
                f"{what} sent successfully to user {job.user_id}",
                job.user_id,
                AuditCategory.DELIVERED,
            )
        else:
            self._audit.append(
                f"Failed to send {what.lower()} to user {job.user_id} "
                f"({result.status}): {result.error_message}",
                job.user_id,
                AuditCategory.DELIVERY_FAILED,
            )
        return result

    def _forget_task(self, task: asyncio.Task, job_id: str) -> None:
        self._tasks.discard(task)
        self._jobs.pop(job_id, None)
