"""Shared Postgres connection helpers.

Every DB session is locked to UTC so stored timestamps (`created_at`, `updated_at`) are
comparable across hosts. Usage counter days are plain strings computed by the application in its
own timezone and do not depend on the session timezone.
"""

from __future__ import annotations

import os

import psycopg
from psycopg import AsyncConnection


def require_database_url() -> str:
    """Read `DATABASE_URL` from the environment or raise a clear error."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required (set it in .env or environment)")
    return database_url


def connect_utc(database_url: str) -> psycopg.Connection:
    """Connect to Postgres (sync, for CLI tools) and lock the session timezone to UTC."""

    conn = psycopg.connect(database_url)
    conn.execute("SET TIME ZONE 'UTC'", prepare=False)
    return conn


async def configure_session(conn: AsyncConnection) -> None:
    """Pool `configure` hook: set UTC and leave the connection idle (not INTRANS)."""

    async with conn.cursor() as cur:
        await cur.execute("SET TIME ZONE 'UTC'", prepare=False)
    await conn.commit()
