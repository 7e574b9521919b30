import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

# Ensure repository root is on the import path for local package imports during tests.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from citetree.providers.clients.base import NotFoundError  # noqa: E402
from citetree.providers.clients.semanticscholar import SearchPage  # noqa: E402
from citetree.providers.ratelimit import FixedWindowRateLimiter, RateLimitStatus  # noqa: E402
from citetree.storage.models import (  # noqa: E402
    PaperMetadata,
    PaperRecord,
    SearchFilters,
    StoreStats,
)


def make_paper(
    paper_id: str,
    *,
    references: Optional[List[str]] = None,
    citations: Optional[List[str]] = None,
    citation_count: int = 0,
    title: Optional[str] = None,
) -> PaperRecord:
    return PaperRecord(
        id=paper_id,
        title=title or f"Paper {paper_id}",
        citation_count=citation_count,
        meta_data=PaperMetadata(references=references, citations=citations),
    )


class InMemoryPaperStore:
    """Dict-backed paper store recording every call."""

    def __init__(self, papers: Iterable[PaperRecord] = ()) -> None:
        self.papers: Dict[str, PaperRecord] = {paper.id: paper for paper in papers}
        self.upserts: List[str] = []
        self.search_calls: List[SearchFilters] = []
        self.search_results: List[PaperRecord] = []
        self.fail_upsert_many: Optional[Exception] = None

    async def get_by_id(self, paper_id: str) -> Optional[PaperRecord]:
        return self.papers.get(paper_id)

    async def upsert(self, paper: PaperRecord) -> PaperRecord:
        self.upserts.append(paper.id)
        self.papers[paper.id] = paper
        return paper

    async def upsert_many(self, papers: Sequence[PaperRecord]) -> List[PaperRecord]:
        if self.fail_upsert_many is not None:
            raise self.fail_upsert_many
        return [await self.upsert(paper) for paper in papers]

    async def search(self, filters: SearchFilters):
        self.search_calls.append(filters)
        page = self.search_results[filters.offset : filters.offset + filters.limit]
        return page, len(self.search_results)

    async def get_by_author(self, author_name: str, limit: int = 10) -> List[PaperRecord]:
        needle = author_name.lower()
        matches = [
            paper
            for paper in self.papers.values()
            if any(needle in author.name.lower() for author in paper.authors)
        ]
        return matches[:limit]

    async def get_recent(self, limit: int = 10) -> List[PaperRecord]:
        return list(self.papers.values())[-limit:][::-1]

    async def exists(self, paper_id: str) -> bool:
        return paper_id in self.papers

    async def stats(self) -> StoreStats:
        total = len(self.papers)
        citations = sum(paper.citation_count for paper in self.papers.values())
        return StoreStats(
            total_papers=total,
            avg_citations=citations // total if total else 0,
            recent_count=total,
        )


class StubSemanticScholarClient:
    """Graph-backed provider stand-in; ids outside ``graph`` are not found."""

    def __init__(
        self,
        graph: Optional[Dict[str, PaperRecord]] = None,
        *,
        failures: Optional[Dict[str, Exception]] = None,
        search_pages: Optional[Dict[str, SearchPage]] = None,
    ) -> None:
        self.graph = dict(graph or {})
        self.failures = dict(failures or {})
        self.search_pages = dict(search_pages or {})
        self.fetches: List[str] = []
        self.searches: List[dict] = []
        self.rate_limiter = FixedWindowRateLimiter(max_requests=100, window=300.0)
        self.closed = False

    async def get_paper(self, paper_id: str) -> PaperRecord:
        self.fetches.append(paper_id)
        if paper_id in self.failures:
            raise self.failures[paper_id]
        if paper_id not in self.graph:
            raise NotFoundError("Resource not found")
        return self.graph[paper_id].model_copy(deep=True)

    async def search_papers(self, query: str, **kwargs) -> SearchPage:
        self.searches.append({"query": query, **kwargs})
        if query in self.failures:
            raise self.failures[query]
        return self.search_pages.get(query, SearchPage())

    def rate_limit_status(self) -> RateLimitStatus:
        return self.rate_limiter.status()

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def store() -> InMemoryPaperStore:
    return InMemoryPaperStore()


@pytest.fixture
def client() -> StubSemanticScholarClient:
    return StubSemanticScholarClient()
