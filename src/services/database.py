"""asyncpg connection pool for the local user store.

The coaching engine only reads from the relational store (identity
lookups), so this module exposes a pool plus the handful of read helpers
the identity store needs.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import asyncpg

from src.config import Settings, get_settings

logger = logging.getLogger("smartcoach.db")

# Module-level connection pool, initialized once at app startup
_pool: asyncpg.Pool | None = None


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool. Call once at app startup."""
    global _pool
    s = settings or get_settings()
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=1,
        max_size=10,
        command_timeout=s.http_timeout_seconds,
    )
    logger.info("Database pool initialized (min=1, max=10)")
    return _pool


async def close_pool() -> None:
    """Drain the pool. Call at app shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized; call init_pool() first")
    return _pool


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a pooled connection.

    Usage::

        async with get_connection() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", 42)
    """
    pool = get_pool()
    async with pool.acquire() as conn:
        yield conn


async def fetchrow(query: str, *args: Any) -> asyncpg.Record | None:
    """Fetch a single row."""
    async with get_connection() as conn:
        return await conn.fetchrow(query, *args)


async def fetchval(query: str, *args: Any) -> Any:
    """Fetch a single value."""
    async with get_connection() as conn:
        return await conn.fetchval(query, *args)
