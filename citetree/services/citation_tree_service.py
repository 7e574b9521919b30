from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, FrozenSet, List, Optional

from citetree.core.models import (
    CitationTreeNode,
    PaperResolution,
    TreeOptions,
    TreeProgress,
)
from citetree.providers.clients.base import ClientError
from citetree.providers.clients.semanticscholar import SemanticScholarClient
from citetree.services.progress import (
    LoggingProgressObserver,
    ProgressObserver,
    estimate_total_nodes,
)
from citetree.services.tree_analytics import count_nodes
from citetree.storage.store import PaperStore

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_DELAY = 1.0


class _ProgressTracker:
    def __init__(self, observer: ProgressObserver, total: int) -> None:
        self.observer = observer
        self.total = total
        self.processed = 0

    def visit(self, paper_id: str, depth: int) -> None:
        self.processed += 1
        self.observer.on_progress(
            TreeProgress(
                processed=self.processed,
                total=self.total,
                current_paper_id=paper_id,
                depth=depth,
            )
        )


class CitationTreeService:
    """Build bounded citation trees from the paper store and the remote provider.

    The root expands the papers that cite it; every node below expands the
    papers it references. Each recursive call carries the frozen set of ids on
    its own root-to-node path, so a paper may show up in several sibling
    branches but never twice along one path.

    Nodes are resolved store first. A stored record that lacks its link lists
    is refreshed from the provider, and the refreshed record is written back.
    Provider failures never abort a build: a stored record is used as-is when
    its refresh fails, otherwise the branch is dropped.
    """

    def __init__(
        self,
        *,
        store: PaperStore,
        client: SemanticScholarClient,
        request_delay: float = DEFAULT_REQUEST_DELAY,
        default_options: Optional[TreeOptions] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if request_delay < 0:
            raise ValueError("request_delay must not be negative")
        self.store = store
        self.client = client
        self.request_delay = request_delay
        self.default_options = default_options or TreeOptions()
        self._sleep = sleep

    async def build_tree(
        self,
        root_paper_id: str,
        options: Optional[TreeOptions] = None,
        *,
        observer: Optional[ProgressObserver] = None,
    ) -> Optional[CitationTreeNode]:
        """Return the tree rooted at ``root_paper_id`` or ``None`` when the root cannot be resolved."""

        if not isinstance(root_paper_id, str) or not root_paper_id.strip():
            raise ValueError("root_paper_id must be a non-empty string")

        options = options or self.default_options
        tracker = None
        if observer is not None:
            tracker = _ProgressTracker(
                observer,
                estimate_total_nodes(options.max_branches_per_level, options.max_depth),
            )

        root_id = root_paper_id.strip()
        logger.info(
            "Building citation tree for %s (max_depth=%d, max_branches=%d)",
            root_id,
            options.max_depth,
            options.max_branches_per_level,
        )
        tree = await self._build_node(root_id, 0, frozenset(), options, tracker)
        if tree is None:
            logger.warning("Unable to resolve root paper %s", root_id)
        return tree

    async def build_tree_with_progress(
        self,
        root_paper_id: str,
        options: Optional[TreeOptions] = None,
        observer: Optional[ProgressObserver] = None,
    ) -> Optional[CitationTreeNode]:
        return await self.build_tree(
            root_paper_id, options, observer=observer or LoggingProgressObserver()
        )

    async def resolve_paper(self, paper_id: str, depth: int) -> PaperResolution:
        stored = await self.store.get_by_id(paper_id)
        if stored is not None and stored.has_links:
            return PaperResolution.fresh(stored, "store")

        if depth > 0 and self.request_delay:
            await self._sleep(self.request_delay)

        try:
            fetched = await self.client.get_paper(paper_id)
        except ClientError as exc:
            if stored is not None:
                logger.warning("Refresh of %s failed (%s), using stored record", paper_id, exc)
                return PaperResolution.stale(stored)
            logger.warning("Fetch of %s failed (%s), dropping branch", paper_id, exc)
            return PaperResolution.missing()

        saved = await self.store.upsert(fetched)
        return PaperResolution.fresh(saved, "remote")

    async def _build_node(
        self,
        paper_id: str,
        depth: int,
        visited: FrozenSet[str],
        options: TreeOptions,
        tracker: Optional[_ProgressTracker],
    ) -> Optional[CitationTreeNode]:
        if depth >= options.max_depth or paper_id in visited:
            return None

        if tracker is not None:
            tracker.visit(paper_id, depth)

        resolution = await self.resolve_paper(paper_id, depth)
        paper = resolution.paper
        if paper is None:
            return None
        logger.debug("Resolved %s at depth %d (%s)", paper_id, depth, resolution.status.value)

        candidates = paper.citations if depth == 0 else paper.references
        # Prefix truncation, no ranking.
        child_ids: List[str] = [
            candidate
            for candidate in candidates[: options.max_branches_per_level]
            if isinstance(candidate, str) and candidate.strip()
        ]

        path = visited | {paper_id, paper.id}
        children = await asyncio.gather(
            *(
                self._build_node(child_id, depth + 1, path, options, tracker)
                for child_id in child_ids
            )
        )

        node = CitationTreeNode(
            paper=paper,
            references=[child for child in children if child is not None],
            depth=depth,
        )
        if options.include_metrics:
            node.total_nodes = count_nodes(node)
        return node
