"""Semantic Scholar client for paper search and citation-graph lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from citetree.providers.adapters import semanticscholar_payload_to_record
from citetree.providers.clients.base import BaseHttpClient, ClientError, UpstreamError
from citetree.providers.ratelimit import FixedWindowRateLimiter, RateLimitStatus
from citetree.settings import ClientSettings
from citetree.storage.models import PaperRecord

logger = logging.getLogger(__name__)

SEARCH_FIELDS = "paperId,externalIds,title,abstract,authors,publicationDate,year,citationCount,venue,url"
PAPER_FIELDS = f"{SEARCH_FIELDS},references.paperId,citations.paperId"


@dataclass
class SearchPage:
    """One page of provider search results."""

    papers: List[PaperRecord] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    next: Optional[str] = None


class SemanticScholarClient(BaseHttpClient):
    """Async wrapper around the Semantic Scholar Graph API v1."""

    BASE_URL = "https://api.semanticscholar.org/graph/v1"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        retry_attempts: int = 3,
        retry_max_wait: float = 4.0,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        debug_logging: bool = False,
    ) -> None:
        super().__init__(
            http_client=http_client,
            base_url=base_url,
            timeout=timeout,
            retry_attempts=retry_attempts,
            retry_max_wait=retry_max_wait,
            rate_limiter=rate_limiter,
            debug_logging=debug_logging,
        )
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "SemanticScholarClient":
        return cls(
            api_key=settings.semanticscholar_api_key,
            http_client=settings.build_http_client(),
            base_url=settings.semanticscholar_base_url,
            timeout=settings.timeout,
            retry_attempts=settings.retry_attempts,
            retry_max_wait=settings.retry_max_wait,
            rate_limiter=FixedWindowRateLimiter(
                settings.rate_limit_max_requests, settings.rate_limit_window
            ),
        )

    def _auth_headers(self) -> Optional[Dict[str, str]]:
        if not self.api_key:
            return None
        return {"x-api-key": self.api_key}

    async def search_papers(
        self,
        query: str,
        *,
        limit: int = 10,
        offset: int = 0,
        year: Optional[str] = None,
        venue: Optional[str] = None,
        fields_of_study: Optional[Sequence[str]] = None,
    ) -> SearchPage:
        """Search papers, retrying once against the bulk endpoint on failure.

        Any :class:`ClientError` from the relevance search (including an
        exhausted rate-limit retry budget) triggers a single bulk-search
        attempt with the same filters. Bulk search pages by token rather than
        offset, so its results are cut to ``limit`` locally.
        """

        filters: Dict[str, Any] = {"query": query, "fields": SEARCH_FIELDS}
        if year:
            filters["year"] = year
        if venue:
            filters["venue"] = venue
        if fields_of_study:
            filters["fieldsOfStudy"] = ",".join(fields_of_study)

        try:
            response = await self._request(
                "GET",
                "/paper/search",
                params={**filters, "limit": limit, "offset": offset},
                headers=self._auth_headers(),
            )
        except ClientError as exc:
            logger.warning("Relevance search failed (%s), trying bulk search", exc)
            response = await self._request(
                "GET", "/paper/search/bulk", params=filters, headers=self._auth_headers()
            )
            payload = self._object(response, "bulk search")
            papers = self._records(payload.get("data"))[:limit]
            return SearchPage(
                papers=papers,
                total=payload.get("total") or len(papers),
                offset=offset,
                next=payload.get("token"),
            )

        payload = self._object(response, "search")
        papers = self._records(payload.get("data"))
        next_offset = payload.get("next")
        logger.info("Found %d papers for %r", len(papers), query)
        return SearchPage(
            papers=papers,
            total=payload.get("total") or len(papers),
            offset=payload.get("offset") or 0,
            next=str(next_offset) if next_offset is not None else None,
        )

    async def get_paper(self, paper_id: str) -> PaperRecord:
        """Fetch a single paper with its reference and citation link lists."""

        response = await self._request(
            "GET",
            f"/paper/{paper_id}",
            params={"fields": PAPER_FIELDS},
            headers=self._auth_headers(),
        )
        payload = self._object(response, f"paper {paper_id}")
        try:
            record = semanticscholar_payload_to_record(payload, default_id=paper_id)
        except ValueError as exc:
            raise UpstreamError(f"Malformed payload for paper {paper_id}: {exc}") from exc
        if record.meta_data.references is None:
            record.meta_data.references = []
        if record.meta_data.citations is None:
            record.meta_data.citations = []
        return record

    async def get_papers_by_author(self, author_id: str, *, limit: int = 10) -> List[PaperRecord]:
        response = await self._request(
            "GET",
            f"/author/{author_id}/papers",
            params={"limit": limit, "fields": PAPER_FIELDS},
            headers=self._auth_headers(),
        )
        papers = self._records(self._object(response, f"author {author_id}").get("data"))
        logger.info("Found %d papers for author %s", len(papers), author_id)
        return papers

    def rate_limit_status(self) -> RateLimitStatus:
        return self.rate_limiter.status()

    def _records(self, items: Any) -> List[PaperRecord]:
        records: List[PaperRecord] = []
        for item in items or []:
            if not isinstance(item, dict) or not item.get("paperId"):
                continue
            records.append(semanticscholar_payload_to_record(item))
        return records

    def _object(self, response: httpx.Response, context: str) -> Dict[str, Any]:
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise UpstreamError(f"Unexpected payload for {context}")
        return payload
