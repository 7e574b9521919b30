from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from citetree.exceptions import CitetreeError
from citetree.providers.clients.base import ClientError
from citetree.providers.clients.semanticscholar import SemanticScholarClient
from citetree.providers.ratelimit import RateLimitStatus
from citetree.storage.models import PaperRecord, SearchFilters, StoreStats
from citetree.storage.store import PaperStore

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_DELAY = 1.0


@dataclass
class PaperSearchResult:
    papers: List[PaperRecord]
    total: int
    offset: int
    source: str
    cached: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "papers": [paper.to_api() for paper in self.papers],
            "total": self.total,
            "offset": self.offset,
            "source": self.source,
            "cached": self.cached,
        }


@dataclass
class BulkImportResult:
    total_imported: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"totalImported": self.total_imported, "results": list(self.results)}


def parse_year_range(year: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """Parse provider-style year filters (``2019``, ``2016-2020``, ``2010-``, ``-2015``)."""

    if not year:
        return None, None
    text = year.strip()
    start_text, sep, end_text = text.partition("-")
    if not sep:
        end_text = start_text
    try:
        start = int(start_text) if start_text.strip() else None
        end = int(end_text) if end_text.strip() else None
    except ValueError:
        logger.warning("Ignoring unparseable year filter %r", year)
        return None, None
    return start, end


class PaperService:
    """Paper lookups that prefer the store and fall back to the provider.

    Search answers from the store when it already holds a full page (or the
    caller is paging past the first page); otherwise it queries the provider
    and persists what came back.
    """

    def __init__(
        self,
        *,
        store: PaperStore,
        client: SemanticScholarClient,
        import_delay: float = DEFAULT_IMPORT_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.client = client
        self.import_delay = import_delay
        self._sleep = sleep

    async def search(
        self,
        query: str,
        *,
        limit: int = 10,
        offset: int = 0,
        year: Optional[str] = None,
        venue: Optional[str] = None,
        fields_of_study: Optional[Sequence[str]] = None,
        save_to_db: bool = True,
    ) -> PaperSearchResult:
        if not query or not query.strip():
            raise ValueError("search query is required")
        query = query.strip()

        year_start, year_end = parse_year_range(year)
        papers, total = await self.store.search(
            SearchFilters(
                query=query,
                year_start=year_start,
                year_end=year_end,
                limit=limit,
                offset=offset,
            )
        )
        if len(papers) >= limit or offset > 0:
            logger.info("Returning %d papers for %r from the store", len(papers), query)
            return PaperSearchResult(
                papers=papers, total=total, offset=offset, source="database", cached=True
            )

        page = await self.client.search_papers(
            query,
            limit=limit,
            offset=offset,
            year=year,
            venue=venue,
            fields_of_study=fields_of_study,
        )
        if save_to_db and page.papers:
            try:
                await self.store.upsert_many(page.papers)
            except CitetreeError:
                logger.exception("Failed to save %d searched papers", len(page.papers))

        return PaperSearchResult(
            papers=page.papers, total=page.total, offset=page.offset, source="api", cached=False
        )

    async def get_paper(self, paper_id: str) -> Optional[Tuple[PaperRecord, str]]:
        """Return ``(record, source)`` where source is ``database`` or ``api``."""

        paper = await self.store.get_by_id(paper_id)
        if paper is not None:
            return paper, "database"

        try:
            fetched = await self.client.get_paper(paper_id)
        except ClientError as exc:
            logger.warning("Paper %s not available from the provider: %s", paper_id, exc)
            return None
        return await self.store.upsert(fetched), "api"

    async def search_by_author(self, author_name: str, limit: int = 10) -> List[PaperRecord]:
        if not author_name or not author_name.strip():
            raise ValueError("author name is required")
        return await self.store.get_by_author(author_name.strip(), limit)

    async def recent_papers(self, limit: int = 20) -> List[PaperRecord]:
        return await self.store.get_recent(limit)

    async def stats(self) -> StoreStats:
        return await self.store.stats()

    def rate_limit_status(self) -> RateLimitStatus:
        return self.client.rate_limit_status()

    async def bulk_import(
        self, queries: Sequence[str], max_papers_per_query: int = 20
    ) -> BulkImportResult:
        """Search and store papers for each query in turn.

        A failing query is recorded with its error and does not stop the
        import. Queries are spaced by ``import_delay`` seconds.
        """

        if not queries:
            raise ValueError("queries are required")

        result = BulkImportResult()
        for index, query in enumerate(queries):
            if index and self.import_delay:
                await self._sleep(self.import_delay)
            logger.info("Importing papers for %r", query)
            try:
                page = await self.client.search_papers(query, limit=max_papers_per_query)
                saved = await self.store.upsert_many(page.papers)
            except (ClientError, CitetreeError) as exc:
                logger.warning("Import for %r failed: %s", query, exc)
                result.results.append({"query": query, "imported": 0, "error": str(exc)})
                continue
            result.total_imported += len(saved)
            result.results.append({"query": query, "imported": len(saved), "total": page.total})
        return result
