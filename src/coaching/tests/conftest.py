"""Shared fixtures and fake collaborators for coaching engine tests."""

from __future__ import annotations

from datetime import date
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.coaching.base import (
    HealthProvider,
    IdentityRecord,
    IdentityStore,
    NotificationBackend,
    TextGenerator,
)
from src.coaching.errors import ProviderError, TextGenerationError
from src.coaching.notify import NotificationDispatcher
from src.coaching.sync.audit import AuditLog


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeProvider(HealthProvider):
    """In-memory health provider; records every ``get_entries`` call.

    Without explicit ``users`` every key of ``entries`` is a known user.
    """

    def __init__(
        self,
        users: list[dict] | None = None,
        entries: dict[str, Any] | None = None,
        list_error: Exception | None = None,
        entries_error: Exception | None = None,
    ) -> None:
        self.entries = entries or {}
        self.users = users if users is not None else [{"id": pid} for pid in self.entries]
        self.list_error = list_error
        self.entries_error = entries_error
        self.calls: list[tuple[str, date, date]] = []

    async def list_users(self) -> list[dict]:
        if self.list_error:
            raise self.list_error
        return list(self.users)

    async def get_user(self, provider_id: str) -> dict:
        for user in self.users:
            if str(user.get("id")) == str(provider_id):
                return user
        raise ProviderError(404, f"No user found with ID {provider_id}.")

    async def get_entries(self, provider_id: str, start_date: date, end_date: date) -> Any:
        self.calls.append((provider_id, start_date, end_date))
        if self.entries_error:
            raise self.entries_error
        return self.entries.get(provider_id, [])


class FakeStore(IdentityStore):
    def __init__(
        self, records: dict[str, IdentityRecord] | None = None, error: Exception | None = None
    ) -> None:
        self.records = records or {}
        self.error = error
        self.lookups: list[str] = []

    async def lookup_by_external_ref(self, ref: str) -> IdentityRecord | None:
        self.lookups.append(ref)
        if self.error:
            raise self.error
        return self.records.get(ref)

    async def lookup_by_provider_ref(self, provider_id: str) -> IdentityRecord | None:
        for record in self.records.values():
            if record.provider_id == provider_id:
                return record
        return None


class FakeGenerator(TextGenerator):
    def __init__(self, reply: str = "Great job today, keep moving!", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


class FakeBackend(NotificationBackend):
    def __init__(
        self,
        auth_response: Any = None,
        auth_error: Exception | None = None,
        deliver_error: Exception | None = None,
        ack: Any = None,
    ) -> None:
        self.auth_response = auth_response if auth_response is not None else {"data": {"token": "jwt-token-123"}}
        self.auth_error = auth_error
        self.deliver_error = deliver_error
        self.ack = ack if ack is not None else {"success": True}
        self.deliveries: list[tuple[str, dict]] = []

    async def authenticate(self, credentials: dict) -> dict:
        if self.auth_error:
            raise self.auth_error
        return self.auth_response

    async def deliver(self, token: str, payload: dict) -> Any:
        if self.deliver_error:
            raise self.deliver_error
        self.deliveries.append((token, payload))
        return self.ack


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


def summary(day: str, **metrics: Any) -> dict:
    """Build a Fitrockr ``dailySummaries`` item for ``day`` (YYYY-MM-DD)."""
    year, month, dd = (int(p) for p in day.split("-"))
    item: dict[str, Any] = {"date": {"year": year, "month": month, "day": dd}}
    item.update(metrics)
    return item


@pytest.fixture
def daily_summaries() -> list[dict]:
    """Two in-window days for 2025-03-01 → 2025-03-02."""
    return [
        summary("2025-03-01", steps=4000, calories=1800, distance=3000,
                activityMinutes=25, sleepDuration=25200, averageHeartRate=70),
        summary("2025-03-02", steps=8000, calories=2200, distance=6500,
                activityMinutes=40, sleepDuration=7200, averageHeartRate=65),
    ]


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def audit_log() -> AuditLog:
    return AuditLog(capacity=500)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def dispatcher(fake_backend: FakeBackend) -> NotificationDispatcher:
    return NotificationDispatcher(fake_backend, {"email": "bot@example.com", "password": "secret"})


@pytest.fixture
def failing_generator() -> FakeGenerator:
    return FakeGenerator(error=TextGenerationError("quota exceeded"))


# ---------------------------------------------------------------------------
# Mock HTTP clients
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient for testing adapters without real API calls."""
    client = MagicMock()
    response = MagicMock()
    response.status_code = 200
    response.raise_for_status = MagicMock()
    response.json = MagicMock(return_value={})
    client.get = AsyncMock(return_value=response)
    client.post = AsyncMock(return_value=response)
    return client
