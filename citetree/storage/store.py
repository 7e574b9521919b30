"""Paper store abstraction consumed by the service layer."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, runtime_checkable

import psycopg

from citetree.exceptions import DatabaseError
from citetree.storage import dao
from citetree.storage.db import get_connection, resolve_dsn
from citetree.storage.models import PaperRecord, SearchFilters, StoreStats

logger = logging.getLogger(__name__)


@runtime_checkable
class PaperStore(Protocol):
    """Keyed paper storage with last-write-wins upserts."""

    async def get_by_id(self, paper_id: str) -> PaperRecord | None: ...

    async def upsert(self, paper: PaperRecord) -> PaperRecord: ...

    async def upsert_many(self, papers: Sequence[PaperRecord]) -> list[PaperRecord]: ...

    async def search(self, filters: SearchFilters) -> tuple[list[PaperRecord], int]: ...

    async def get_by_author(self, author_name: str, limit: int = 10) -> list[PaperRecord]: ...

    async def get_recent(self, limit: int = 10) -> list[PaperRecord]: ...

    async def exists(self, paper_id: str) -> bool: ...

    async def stats(self) -> StoreStats: ...


class PostgresPaperStore:
    """:class:`PaperStore` backed by PostgreSQL.

    Each operation opens its own connection so concurrent tree branches never
    share a cursor. The connection context commits on success and rolls back
    on error.
    """

    def __init__(self, dsn: str | None = None) -> None:
        self.dsn = resolve_dsn(dsn)

    async def get_by_id(self, paper_id: str) -> PaperRecord | None:
        async with await self._connect() as conn:
            return await self._run(dao.get_paper_by_id(conn, paper_id))

    async def upsert(self, paper: PaperRecord) -> PaperRecord:
        async with await self._connect() as conn:
            saved = await self._run(dao.upsert_paper(conn, paper))
        logger.info("Saved paper %s (%s)", saved.id, saved.title)
        return saved

    async def upsert_many(self, papers: Sequence[PaperRecord]) -> list[PaperRecord]:
        if not papers:
            return []
        async with await self._connect() as conn:
            saved = await self._run(dao.upsert_papers(conn, papers))
        logger.info("Saved %d papers", len(saved))
        return saved

    async def search(self, filters: SearchFilters) -> tuple[list[PaperRecord], int]:
        async with await self._connect() as conn:
            return await self._run(dao.search_papers(conn, filters))

    async def get_by_author(self, author_name: str, limit: int = 10) -> list[PaperRecord]:
        async with await self._connect() as conn:
            return await self._run(dao.get_papers_by_author(conn, author_name, limit))

    async def get_recent(self, limit: int = 10) -> list[PaperRecord]:
        async with await self._connect() as conn:
            return await self._run(dao.get_recent_papers(conn, limit))

    async def exists(self, paper_id: str) -> bool:
        async with await self._connect() as conn:
            return await self._run(dao.paper_exists(conn, paper_id))

    async def stats(self) -> StoreStats:
        async with await self._connect() as conn:
            return await self._run(dao.get_paper_stats(conn))

    async def _connect(self) -> psycopg.AsyncConnection:
        return await get_connection(self.dsn)

    @staticmethod
    async def _run(operation):
        try:
            return await operation
        except psycopg.Error as exc:
            raise DatabaseError(f"Paper store operation failed: {exc}") from exc
