"""Tests for the per-user delivery scheduler."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from src.coaching.errors import ValidationError
from src.coaching.notify import NotificationDispatcher
from src.coaching.sync.audit import AuditCategory, AuditLog
from src.coaching.sync.scheduler import (
    SWEEP_JOB_ID,
    JobKind,
    JobScheduler,
    parse_date,
    parse_time,
)
from src.coaching.tests.conftest import FakeBackend

CREDENTIALS = {"email": "bot@example.com", "password": "secret"}


@pytest.fixture
def scheduler(dispatcher: NotificationDispatcher, audit_log: AuditLog) -> JobScheduler:
    return JobScheduler(dispatcher, audit_log, timezone="UTC")


def _categories(audit_log: AuditLog, user_id: str | None = None) -> list[str]:
    return [e.category for e in audit_log.query(user_id)]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsing:
    @pytest.mark.parametrize("value,expected", [("09:30", (9, 30)), ("7:05", (7, 5)), (" 23:59 ", (23, 59))])
    def test_parse_time(self, value: str, expected: tuple[int, int]) -> None:
        assert parse_time(value) == expected

    @pytest.mark.parametrize("value", [None, "", "9", "24:00", "12:60", "ab:cd", "9:30pm"])
    def test_parse_time_invalid(self, value) -> None:
        with pytest.raises(ValidationError, match="HH:mm"):
            parse_time(value)

    def test_parse_date(self) -> None:
        assert parse_date("2099-03-01").isoformat() == "2099-03-01"
        assert parse_date(None) is None
        assert parse_date("") is None

    def test_parse_date_invalid(self) -> None:
        with pytest.raises(ValidationError):
            parse_date("01-03-2099")


# ---------------------------------------------------------------------------
# schedule_at
# ---------------------------------------------------------------------------


class TestScheduleAt:
    def test_daily_trigger(self, scheduler: JobScheduler, audit_log: AuditLog) -> None:
        job = scheduler.schedule_at("09:30", None, "42", "Keep moving")

        assert job.kind is JobKind.DAILY
        assert job.trigger_expr == "cron:30 9 * * *"
        assert job.time_str == "09:30"

        now = datetime.now(timezone.utc)
        fire = job.handle.trigger.get_next_fire_time(None, now)
        assert (fire.hour, fire.minute) == (9, 30)
        assert fire > now

        entries = audit_log.query("42")
        assert [e.category for e in entries] == [AuditCategory.SCHEDULED.value]
        assert entries[0].text == "Daily message scheduled for user 42 at 09:30"

    def test_one_off_trigger(self, scheduler: JobScheduler, audit_log: AuditLog) -> None:
        job = scheduler.schedule_at("09:30", "2099-03-01", "42", "Keep moving")

        assert job.kind is JobKind.ONCE
        assert job.label == "2099-03-01"
        run_date = job.handle.trigger.run_date
        assert (run_date.year, run_date.month, run_date.day) == (2099, 3, 1)
        assert (run_date.hour, run_date.minute) == (9, 30)
        assert audit_log.query("42")[0].text == (
            "Message scheduled for user 42 on 2099-03-01 at 09:30"
        )

    def test_job_registered(self, scheduler: JobScheduler) -> None:
        job = scheduler.schedule_at("06:00", None, "42", "Morning!")
        assert scheduler.get_job(job.job_id) is job
        assert [j.job_id for j in scheduler.jobs] == [job.job_id]

    def test_past_date_rejected(self, scheduler: JobScheduler, audit_log: AuditLog) -> None:
        with pytest.raises(ValidationError, match="in the past"):
            scheduler.schedule_at("09:30", "2000-01-01", "42", "Too late")
        assert scheduler.jobs == []
        assert len(audit_log) == 0

    @pytest.mark.parametrize(
        "time,user_id,message",
        [("25:00", "42", "hi"), ("09:30", "", "hi"), ("09:30", "42", "  ")],
    )
    def test_invalid_input_rejected(
        self, scheduler: JobScheduler, audit_log: AuditLog, time: str, user_id: str, message: str
    ) -> None:
        with pytest.raises(ValidationError):
            scheduler.schedule_at(time, None, user_id, message)
        assert len(audit_log) == 0

    @pytest.mark.asyncio
    async def test_fired_one_off_delivers_and_unregisters(
        self, scheduler: JobScheduler, audit_log: AuditLog, fake_backend: FakeBackend
    ) -> None:
        job = scheduler.schedule_at("09:30", "2099-03-01", "42", "Keep moving")

        result = await scheduler._run_scheduled(job.job_id)

        assert result.ok
        assert fake_backend.deliveries[0][1] == {"target_user": "42", "message": "Keep moving"}
        assert scheduler.get_job(job.job_id) is None
        entries = audit_log.query("42")
        assert entries[1].text == "Scheduled message starting for user 42 (2099-03-01) 09:30"
        assert entries[2].text == "Scheduled message sent successfully to user 42"

    @pytest.mark.asyncio
    async def test_fired_daily_stays_registered(
        self, scheduler: JobScheduler, audit_log: AuditLog
    ) -> None:
        job = scheduler.schedule_at("09:30", None, "42", "Keep moving")

        await scheduler._run_scheduled(job.job_id)
        await scheduler._run_scheduled(job.job_id)

        assert scheduler.get_job(job.job_id) is job
        assert _categories(audit_log, "42").count(AuditCategory.DELIVERED.value) == 2

    @pytest.mark.asyncio
    async def test_fired_daily_message_is_frozen(
        self, scheduler: JobScheduler, fake_backend: FakeBackend
    ) -> None:
        job = scheduler.schedule_at("09:30", None, "42", "Original text")
        await scheduler._run_scheduled(job.job_id)
        await scheduler._run_scheduled(job.job_id)
        assert [p["message"] for _, p in fake_backend.deliveries] == ["Original text"] * 2


# ---------------------------------------------------------------------------
# run_now
# ---------------------------------------------------------------------------


class TestRunNow:
    @pytest.mark.asyncio
    async def test_delivers_and_audits(
        self, scheduler: JobScheduler, audit_log: AuditLog, fake_backend: FakeBackend
    ) -> None:
        job = scheduler.run_now("42", "You walked 8000 steps yesterday, great work")
        await job.handle
        await asyncio.sleep(0)

        assert _categories(audit_log, "42") == [
            AuditCategory.MANUAL.value,
            AuditCategory.MANUAL.value,
            AuditCategory.EXECUTION_STARTED.value,
            AuditCategory.DELIVERED.value,
        ]
        texts = [e.text for e in audit_log.query("42")]
        assert texts[0] == "Manual execution triggered for user 42"
        assert texts[1] == "Using pre-generated message: You walked 8000 steps yesterday, great work..."
        assert len(fake_backend.deliveries) == 1
        assert scheduler.get_job(job.job_id) is None

    @pytest.mark.asyncio
    async def test_missing_message_raises_without_audit(
        self, scheduler: JobScheduler, audit_log: AuditLog
    ) -> None:
        with pytest.raises(ValidationError, match="Both userId and message are required"):
            scheduler.run_now("42", "")
        assert len(audit_log) == 0
        assert scheduler.jobs == []

    @pytest.mark.asyncio
    async def test_concurrent_runs_attributed_per_user(
        self, scheduler: JobScheduler, audit_log: AuditLog
    ) -> None:
        first = scheduler.run_now("1", "Message for one")
        second = scheduler.run_now("2", "Message for two")
        await asyncio.gather(first.handle, second.handle)

        for user_id in ("1", "2"):
            categories = _categories(audit_log, user_id)
            assert categories.count(AuditCategory.EXECUTION_STARTED.value) == 1
            assert categories.count(AuditCategory.DELIVERED.value) == 1

    @pytest.mark.asyncio
    async def test_delivery_failure_audited(self, audit_log: AuditLog) -> None:
        request = httpx.Request("POST", "https://notify.example.com/api/notify")
        response = httpx.Response(404, json={"error": "driver not found"}, request=request)
        backend = FakeBackend(
            deliver_error=httpx.HTTPStatusError("not found", request=request, response=response)
        )
        scheduler = JobScheduler(
            NotificationDispatcher(backend, CREDENTIALS), audit_log, timezone="UTC"
        )

        job = scheduler.run_now("42", "hi")
        await job.handle

        last = audit_log.query("42")[-1]
        assert last.category == AuditCategory.DELIVERY_FAILED.value
        assert last.text.startswith("Failed to send message to user 42 (404)")


# ---------------------------------------------------------------------------
# Logs, sweep registration, lifecycle
# ---------------------------------------------------------------------------


class TestSchedulerMisc:
    def test_get_logs_honours_query_limit(
        self, dispatcher: NotificationDispatcher, audit_log: AuditLog
    ) -> None:
        scheduler = JobScheduler(dispatcher, audit_log, timezone="UTC", query_limit=3)
        for i in range(5):
            audit_log.append(f"event {i}", "42")

        assert [e.text for e in scheduler.get_logs()] == ["event 2", "event 3", "event 4"]
        assert len(scheduler.get_logs("42")) == 3
        assert scheduler.get_logs("7") == []

    def test_daily_sweep_registered(self, scheduler: JobScheduler, audit_log: AuditLog) -> None:
        async def sweep() -> None:
            return None

        scheduler.schedule_daily_sweep(sweep, hour=0, minute=0)

        apscheduler_job = scheduler._scheduler.get_job(SWEEP_JOB_ID)
        assert apscheduler_job is not None
        assert audit_log.query()[-1].text == "Daily health sweep scheduled at 00:00"

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, scheduler: JobScheduler) -> None:
        assert not scheduler.running
        scheduler.start()
        assert scheduler.running
        scheduler.shutdown()
        await asyncio.sleep(0)
        assert not scheduler.running
