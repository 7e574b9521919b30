from .models import (
    CitationTreeNode,
    FlattenedEntry,
    PaperResolution,
    ResolutionStatus,
    TreeOptions,
    TreeProgress,
    TreeStatistics,
)

__all__ = [
    "CitationTreeNode",
    "FlattenedEntry",
    "PaperResolution",
    "ResolutionStatus",
    "TreeOptions",
    "TreeProgress",
    "TreeStatistics",
]
