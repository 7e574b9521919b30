import os

import pytest

from citetree.storage.db import fetch_existing_tables, get_connection
from citetree.storage.migrations import run_migrations

REQUIRED_TABLES = {"alembic_version", "papers"}


@pytest.mark.skipif(
    os.getenv("CITETREE_DB_DSN") is None,
    reason="CITETREE_DB_DSN not set",
)
@pytest.mark.asyncio
async def test_migrations_apply_and_tables_exist() -> None:
    dsn = os.getenv("CITETREE_DB_DSN")

    run_migrations(dsn=dsn)
    # Running again should be safe
    run_migrations(dsn=dsn)

    async with await get_connection(dsn) as conn:
        existing_tables = await fetch_existing_tables(conn, REQUIRED_TABLES)

    assert REQUIRED_TABLES.issubset(existing_tables)
