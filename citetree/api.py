"""High-level facade wiring the paper store, the provider client and the services.

Example
-------
```python
import asyncio

from citetree.api import CitationExplorer


async def main() -> None:
    async with CitationExplorer() as explorer:
        response = await explorer.build_tree_response("649def34f8be52c8b66281af98ae884c09aef38b")
        print(response["data"]["statistics"])


asyncio.run(main())
```
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .config import CitetreeConfig
from .core.models import TreeOptions
from .providers.clients.semanticscholar import SemanticScholarClient
from .services.citation_tree_service import CitationTreeService
from .services.paper_service import BulkImportResult, PaperSearchResult, PaperService
from .services.progress import LoggingProgressObserver
from .services.tree_analytics import tree_to_dict
from .settings import ClientSettings
from .storage.models import PaperRecord, StoreStats
from .storage.store import PaperStore, PostgresPaperStore

logger = logging.getLogger(__name__)

TREE_NOT_FOUND_MESSAGE = "unable to build citation tree for this paper"


class CitationExplorer:
    """Facade around tree building and paper lookups.

    Collaborators are built from :class:`CitetreeConfig` unless passed in.
    One :class:`SemanticScholarClient` is shared by every service so its rate
    limiter covers all outbound traffic.
    """

    def __init__(
        self,
        config: Optional[CitetreeConfig] = None,
        *,
        store: Optional[PaperStore] = None,
        client: Optional[SemanticScholarClient] = None,
        tree_service: Optional[CitationTreeService] = None,
        paper_service: Optional[PaperService] = None,
    ) -> None:
        self.config = config or CitetreeConfig()
        self.store = store or PostgresPaperStore(self.config.require_dsn())
        self.client = client or SemanticScholarClient.from_settings(
            ClientSettings.from_config(self.config)
        )
        self.tree_service = tree_service or CitationTreeService(
            store=self.store,
            client=self.client,
            request_delay=self.config.tree_request_delay_s,
            default_options=TreeOptions(
                max_depth=self.config.tree_default_max_depth,
                max_branches_per_level=self.config.tree_default_max_branches,
            ),
        )
        self.paper_service = paper_service or PaperService(
            store=self.store,
            client=self.client,
            import_delay=self.config.tree_request_delay_s,
        )

    async def __aenter__(self) -> "CitationExplorer":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def tree_options(
        self,
        max_depth: Optional[int] = None,
        max_references_per_level: Optional[int] = None,
        include_metrics: bool = False,
    ) -> TreeOptions:
        defaults = self.tree_service.default_options
        return TreeOptions(
            max_depth=defaults.max_depth if max_depth is None else max_depth,
            max_branches_per_level=(
                defaults.max_branches_per_level
                if max_references_per_level is None
                else max_references_per_level
            ),
            include_metrics=include_metrics,
        )

    async def build_tree_response(
        self,
        paper_id: str,
        max_depth: Optional[int] = None,
        max_references_per_level: Optional[int] = None,
        include_metrics: bool = False,
        progress: bool = False,
    ) -> Dict[str, Any]:
        """Build a tree and wrap it in the response envelope.

        Invalid input raises :class:`ValueError`. A root that cannot be
        resolved yields ``success: False`` with the not-found message; callers
        map that to a 404.
        """

        options = self.tree_options(max_depth, max_references_per_level, include_metrics)
        if progress:
            tree = await self.tree_service.build_tree_with_progress(
                paper_id, options, LoggingProgressObserver()
            )
        else:
            tree = await self.tree_service.build_tree(paper_id, options)

        if tree is None:
            return {"success": False, "message": TREE_NOT_FOUND_MESSAGE}
        return {"success": True, "data": tree_to_dict(tree)}

    async def search_papers(self, query: str, **kwargs: Any) -> PaperSearchResult:
        return await self.paper_service.search(query, **kwargs)

    async def get_paper(self, paper_id: str) -> Optional[tuple[PaperRecord, str]]:
        return await self.paper_service.get_paper(paper_id)

    async def search_by_author(self, author_name: str, limit: int = 10) -> List[PaperRecord]:
        return await self.paper_service.search_by_author(author_name, limit)

    async def recent_papers(self, limit: int = 20) -> List[PaperRecord]:
        return await self.paper_service.recent_papers(limit)

    async def stats(self) -> StoreStats:
        return await self.paper_service.stats()

    async def bulk_import(
        self, queries: Sequence[str], max_papers_per_query: int = 20
    ) -> BulkImportResult:
        return await self.paper_service.bulk_import(queries, max_papers_per_query)

    def rate_limit_status(self) -> Dict[str, Any]:
        return self.paper_service.rate_limit_status().to_dict()


__all__ = ["CitationExplorer", "TREE_NOT_FOUND_MESSAGE"]
