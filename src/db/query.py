"""Safe DB query helpers.

These helpers are used by the storage collaborators. They never interpolate user values into SQL,
and they translate driver errors into `StoreError` so that callers only handle one failure type.
"""

from __future__ import annotations

from typing import Any, LiteralString, cast

import psycopg
from psycopg import AsyncConnection


class StoreError(RuntimeError):
    """Raised when a storage collaborator cannot complete an operation."""


async def fetch_one(conn: AsyncConnection, sql: str, params: tuple[Any, ...] = ()) -> tuple[Any, ...] | None:
    """Execute a query and return its first row (or `None`).

    The query must be parameterized; all values are passed via `params`.
    """

    try:
        async with conn.cursor() as cur:
            await cur.execute(cast(LiteralString, sql), params)
            return await cur.fetchone()
    except psycopg.Error as exc:
        raise StoreError(f"query failed: {exc.__class__.__name__}") from exc


async def fetch_all(conn: AsyncConnection, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
    """Execute a query and return all rows."""

    try:
        async with conn.cursor() as cur:
            await cur.execute(cast(LiteralString, sql), params)
            return await cur.fetchall()
    except psycopg.Error as exc:
        raise StoreError(f"query failed: {exc.__class__.__name__}") from exc
