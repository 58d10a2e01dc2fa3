"""Tests for the bounded audit log."""

from __future__ import annotations

import threading

import pytest

from src.coaching.sync.audit import AuditCategory, AuditEntry, AuditLog


class TestAuditLog:
    def test_append_returns_entry(self, audit_log: AuditLog) -> None:
        entry = audit_log.append("Message scheduled", "42", AuditCategory.SCHEDULED)
        assert entry.user_id == "42"
        assert entry.category == "scheduled"
        assert len(audit_log) == 1

    def test_capacity_evicts_oldest(self) -> None:
        log = AuditLog(capacity=500)
        for i in range(501):
            log.append(f"event {i}")

        assert len(log) == 500
        entries = log.query(limit=500)
        assert entries[0].text == "event 1"
        assert entries[-1].text == "event 500"

    def test_query_limit_keeps_most_recent(self, audit_log: AuditLog) -> None:
        for i in range(250):
            audit_log.append(f"event {i}")

        entries = audit_log.query(limit=200)
        assert len(entries) == 200
        assert entries[0].text == "event 50"
        assert entries[-1].text == "event 249"

    def test_query_filters_by_user(self, audit_log: AuditLog) -> None:
        audit_log.append("a", "1")
        audit_log.append("b", "2")
        audit_log.append("c", None)
        audit_log.append("d", "1")

        assert [e.text for e in audit_log.query("1")] == ["a", "d"]
        assert [e.text for e in audit_log.query()] == ["a", "b", "c", "d"]

    def test_query_returns_snapshot(self, audit_log: AuditLog) -> None:
        audit_log.append("a")
        snapshot = audit_log.query()
        audit_log.append("b")
        assert len(snapshot) == 1

    def test_zero_capacity_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLog(capacity=0)

    def test_concurrent_appends_lose_nothing(self) -> None:
        log = AuditLog(capacity=1000)

        def worker(n: int) -> None:
            for i in range(100):
                log.append(f"{n}-{i}", str(n))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log) == 500
        for n in range(5):
            texts = [e.text for e in log.query(str(n), limit=1000)]
            assert texts == [f"{n}-{i}" for i in range(100)]


class TestAuditEntry:
    def test_render_with_user(self) -> None:
        entry = AuditEntry("Message sent", "42", formatted_local_time="01-03-2025 09:30:00")
        assert entry.render() == "01-03-2025 09:30:00  |  [User:42] Message sent"

    def test_render_global(self) -> None:
        entry = AuditEntry("Sweep started", formatted_local_time="01-03-2025 00:00:00")
        assert entry.render() == "01-03-2025 00:00:00  |  [All] Sweep started"

    def test_local_time_filled_in(self) -> None:
        entry = AuditEntry("x")
        assert len(entry.formatted_local_time) == len("01-03-2025 09:30:00")

    def test_to_dict_keys(self) -> None:
        data = AuditEntry("x", "7").to_dict()
        assert set(data) == {"timestamp", "localTime", "userId", "category", "text", "message"}
