"""Database utilities for PostgreSQL interactions."""

from __future__ import annotations

import os
from typing import Iterable, Set

import psycopg
from psycopg import AsyncConnection
from psycopg.rows import dict_row

from citetree.exceptions import ConfigError, DatabaseError


def resolve_dsn(dsn: str | None = None) -> str:
    """Return ``dsn`` or the ``CITETREE_DB_DSN`` environment value."""

    resolved_dsn = dsn or os.getenv("CITETREE_DB_DSN")
    if not resolved_dsn:
        raise ConfigError(
            "Database DSN is not configured. Set CITETREE_DB_DSN or pass dsn explicitly."
        )
    return resolved_dsn


async def get_connection(dsn: str | None = None) -> AsyncConnection:
    """Open an async PostgreSQL connection using the provided or environment DSN."""

    resolved_dsn = resolve_dsn(dsn)
    try:
        return await psycopg.AsyncConnection.connect(resolved_dsn)
    except psycopg.Error as exc:  # pragma: no cover - passthrough for better context
        raise DatabaseError(f"Failed to connect to database: {exc}") from exc


async def fetch_existing_tables(conn: AsyncConnection, table_names: Iterable[str]) -> Set[str]:
    """Return the subset of ``table_names`` that exist in the current database."""

    names = tuple(table_names)
    if not names:
        return set()

    query = """
        SELECT tablename
        FROM pg_catalog.pg_tables
        WHERE schemaname = current_schema()
          AND tablename = ANY(%s)
    """
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(query, (list(names),))
        return {row["tablename"] for row in await cur.fetchall()}
