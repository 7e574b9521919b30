"""Service layer for the citation tree explorer."""

from .citation_tree_service import CitationTreeService
from .paper_service import BulkImportResult, PaperSearchResult, PaperService
from .progress import (
    LoggingProgressObserver,
    ProgressObserver,
    QueueProgressObserver,
    estimate_total_nodes,
)
from .tree_analytics import compute_statistics, count_nodes, flatten, tree_to_dict

__all__ = [
    "BulkImportResult",
    "CitationTreeService",
    "LoggingProgressObserver",
    "PaperSearchResult",
    "PaperService",
    "ProgressObserver",
    "QueueProgressObserver",
    "compute_statistics",
    "count_nodes",
    "estimate_total_nodes",
    "flatten",
    "tree_to_dict",
]
