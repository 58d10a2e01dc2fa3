"""Tests for identity resolution and the Postgres identity store."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from src.coaching.base import IdentityRecord, IdentityResolution, ResolutionStatus
from src.coaching.errors import ValidationError
from src.coaching.identity import IdentityResolver, PostgresIdentityStore, normalize_ref
from src.coaching.tests.conftest import FakeStore


class TestNormalizeRef:
    def test_strips_whitespace(self) -> None:
        assert normalize_ref("  42 ") == "42"

    def test_accepts_int(self) -> None:
        assert normalize_ref(42) == "42"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_raises(self, value) -> None:
        with pytest.raises(ValidationError):
            normalize_ref(value)


class TestIdentityResolver:
    @pytest.mark.asyncio
    async def test_resolved_uses_store_provider_id(self) -> None:
        store = FakeStore({"42": IdentityRecord("42", "fr-abc", "Anna de Vries")})
        result = await IdentityResolver(store).resolve("42")

        assert result.status is ResolutionStatus.RESOLVED
        assert result.provider_id == "fr-abc"
        assert result.display_name == "Anna de Vries"
        assert not result.degraded

    @pytest.mark.asyncio
    async def test_not_found_falls_back_to_ref(self) -> None:
        result = await IdentityResolver(FakeStore()).resolve("fr-xyz")

        assert result.status is ResolutionStatus.UNRESOLVED
        assert result.provider_id == "fr-xyz"
        assert result.reason == "not found"

    @pytest.mark.asyncio
    async def test_store_failure_still_returns_provider_id(self) -> None:
        store = FakeStore(error=ConnectionError("connection refused"))
        result = await IdentityResolver(store).resolve("99")

        assert result.degraded
        assert result.provider_id == "99"
        assert "connection refused" in result.reason

    @pytest.mark.asyncio
    async def test_record_without_provider_id_degrades(self) -> None:
        store = FakeStore({"7": IdentityRecord("7", "  ", "Piet")})
        result = await IdentityResolver(store).resolve("7")

        assert result.degraded
        assert result.provider_id == "7"
        assert result.reason == "record without provider id"

    @pytest.mark.asyncio
    async def test_single_lookup_per_resolve(self) -> None:
        store = FakeStore()
        await IdentityResolver(store).resolve(" 5 ")
        assert store.lookups == ["5"]

    @pytest.mark.asyncio
    async def test_blank_ref_raises_before_lookup(self) -> None:
        store = FakeStore()
        with pytest.raises(ValidationError):
            await IdentityResolver(store).resolve("")
        assert store.lookups == []

    def test_to_identity_hides_provider_id_when_degraded(self) -> None:
        identity = IdentityResolution.unresolved("abc", "not found").to_identity()
        assert identity.provider_id is None
        assert identity.provider_key == "abc"


class TestPostgresIdentityStore:
    @pytest.mark.asyncio
    async def test_numeric_ref_hits_local_id_first(self) -> None:
        row = {"id": 42, "user_id": "fr-abc", "name": "Anna"}
        with patch("src.coaching.identity.database.fetchrow", AsyncMock(return_value=row)) as fetch:
            record = await PostgresIdentityStore().lookup_by_external_ref("42")

        assert record == IdentityRecord("42", "fr-abc", "Anna")
        query, arg = fetch.call_args.args
        assert "WHERE id = $1" in query
        assert arg == 42

    @pytest.mark.asyncio
    async def test_numeric_miss_falls_through_to_provider_column(self) -> None:
        row = {"id": 3, "user_id": "12345", "name": None}
        fetch = AsyncMock(side_effect=[None, row])
        with patch("src.coaching.identity.database.fetchrow", fetch):
            record = await PostgresIdentityStore().lookup_by_external_ref("12345")

        assert record.provider_id == "12345"
        assert fetch.await_count == 2
        assert "WHERE user_id = $1" in fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_non_numeric_ref_queries_provider_column_only(self) -> None:
        fetch = AsyncMock(return_value=None)
        with patch("src.coaching.identity.database.fetchrow", fetch):
            record = await PostgresIdentityStore().lookup_by_external_ref("fr-abc")

        assert record is None
        fetch.assert_awaited_once()
        assert fetch.call_args.args[1] == "fr-abc"
