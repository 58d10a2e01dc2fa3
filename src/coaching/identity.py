"""Identity resolution across the local user store and the health provider.

Users are addressed by an *external ref* which may be the local numeric id
or already be the provider's own id.  The resolver asks the local store once
and otherwise degrades to using the ref unchanged, so resolution never
blocks the pipeline.
"""

from __future__ import annotations

import logging

from src.coaching.base import IdentityRecord, IdentityResolution, IdentityStore
from src.coaching.errors import ValidationError
from src.services import database

logger = logging.getLogger("smartcoach.coaching.identity")


def normalize_ref(external_ref: str | int | None) -> str:
    """Return ``external_ref`` as a stripped string.

    Raises:
        ValidationError: If the ref is missing or blank.
    """
    if external_ref is None:
        raise ValidationError("userId is required")
    ref = str(external_ref).strip()
    if not ref:
        raise ValidationError("userId is required")
    return ref


class IdentityResolver:
    """Map an external ref to the id the health provider expects."""

    def __init__(self, store: IdentityStore) -> None:
        self._store = store

    async def resolve(self, external_ref: str | int) -> IdentityResolution:
        """Resolve ``external_ref`` with a single local-store lookup.

        Store failures (timeouts, lost connections, uninitialised pool) are
        logged and treated as "not found".

        Raises:
            ValidationError: If ``external_ref`` is blank.
        """
        ref = normalize_ref(external_ref)

        try:
            record = await self._store.lookup_by_external_ref(ref)
        except Exception as exc:
            logger.warning("Identity lookup failed for %s, using ref as provider id: %s", ref, exc)
            return IdentityResolution.unresolved(ref, reason=f"lookup failed: {exc}")

        if record is None:
            logger.info("No local record for %s; using ref as provider id", ref)
            return IdentityResolution.unresolved(ref, reason="not found")

        provider_id = (record.provider_id or "").strip()
        if not provider_id:
            logger.info("Local record for %s has no provider id; using ref", ref)
            return IdentityResolution.unresolved(ref, reason="record without provider id")

        logger.debug("Resolved %s -> %s", ref, provider_id)
        return IdentityResolution.resolved(ref, provider_id, record.display_name)


class PostgresIdentityStore(IdentityStore):
    """``users`` table lookups through the shared asyncpg pool.

    Numeric refs are tried against the local ``id`` column first; anything
    else, or a numeric miss, is looked up as a provider ``user_id``.
    """

    _SELECT = "SELECT id, user_id, name FROM users"

    async def lookup_by_external_ref(self, ref: str) -> IdentityRecord | None:
        if ref.isdigit():
            row = await database.fetchrow(f"{self._SELECT} WHERE id = $1", int(ref))
            if row is not None:
                return self._to_record(row)
        return await self.lookup_by_provider_ref(ref)

    async def lookup_by_provider_ref(self, provider_id: str) -> IdentityRecord | None:
        row = await database.fetchrow(f"{self._SELECT} WHERE user_id = $1", provider_id)
        return self._to_record(row) if row is not None else None

    @staticmethod
    def _to_record(row) -> IdentityRecord:
        local_id = row["id"]
        provider_id = row["user_id"]
        return IdentityRecord(
            local_id=str(local_id) if local_id is not None else None,
            provider_id=str(provider_id) if provider_id is not None else None,
            display_name=row["name"],
        )
