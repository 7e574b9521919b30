"""Explore academic papers as bounded citation trees."""

from .api import CitationExplorer
from .config import CitetreeConfig
from .core.models import CitationTreeNode, FlattenedEntry, TreeOptions, TreeStatistics
from .services.citation_tree_service import CitationTreeService
from .services.tree_analytics import compute_statistics, flatten

__all__ = [
    "CitationExplorer",
    "CitationTreeNode",
    "CitationTreeService",
    "CitetreeConfig",
    "FlattenedEntry",
    "TreeOptions",
    "TreeStatistics",
    "compute_statistics",
    "flatten",
]
