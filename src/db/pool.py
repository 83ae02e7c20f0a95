"""Async Postgres connection pool.

Smart rule lookups and quota reservations share one async pool (psycopg3). Each `get_conn`
block is one transaction: the pool commits on normal exit and rolls back on error.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import psycopg
from dotenv import load_dotenv
from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from src.db.connection import configure_session, require_database_url
from src.db.query import StoreError


def create_pool(
        database_url: str | None = None,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 10.0,
) -> AsyncConnectionPool:
    """Create an async DB pool.

    Notes:
        - The returned pool is created with `open=False`. Call `await pool.open()` at startup.
        - If `database_url` is omitted, the function loads `.env` and reads `DATABASE_URL`.
    """

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    return AsyncConnectionPool(
        conninfo=database_url,
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        open=False,
        configure=configure_session,
    )


@asynccontextmanager
async def get_conn(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """Acquire a pooled connection; a saturated pool surfaces as `StoreError`."""

    try:
        async with pool.connection() as conn:
            yield conn
    except PoolTimeout as exc:
        raise StoreError("connection pool exhausted") from exc
    except psycopg.Error as exc:
        raise StoreError(f"database error: {exc.__class__.__name__}") from exc
