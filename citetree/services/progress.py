"""Progress reporting for citation tree builds."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable

from citetree.core.models import TreeProgress

logger = logging.getLogger(__name__)


def estimate_total_nodes(max_branches: int, max_depth: int) -> int:
    """Upper bound on visited nodes: the sum of ``max_branches ** d`` for d in 0..max_depth."""

    return sum(max_branches**depth for depth in range(max_depth + 1))


@runtime_checkable
class ProgressObserver(Protocol):
    def on_progress(self, progress: TreeProgress) -> None: ...


class LoggingProgressObserver:
    """Write each progress update to the application log."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logger

    def on_progress(self, progress: TreeProgress) -> None:
        self.log.info(
            "Progress: %d/%d - processing %s (depth %d)",
            progress.processed,
            progress.total,
            progress.current_paper_id,
            progress.depth,
        )


class QueueProgressObserver:
    """Publish progress updates on an :class:`asyncio.Queue`.

    Consumers read ``queue`` until they receive ``None``, which :meth:`close`
    enqueues once the build finishes.
    """

    def __init__(self, queue: Optional[asyncio.Queue] = None) -> None:
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    def on_progress(self, progress: TreeProgress) -> None:
        self.queue.put_nowait(progress)

    def close(self) -> None:
        self.queue.put_nowait(None)
