from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from citetree.storage.models import PaperRecord

DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_BRANCHES = 5


@dataclass(frozen=True)
class TreeOptions:
    """Bounds for a single citation tree build.

    ``max_depth`` is exclusive: nodes at depth ``max_depth`` are never built.
    ``max_branches_per_level`` caps how many related ids are expanded per node.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    max_branches_per_level: int = DEFAULT_MAX_BRANCHES
    include_metrics: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise ValueError("max_depth must be an integer")
        if isinstance(self.max_branches_per_level, bool) or not isinstance(
            self.max_branches_per_level, int
        ):
            raise ValueError("max_branches_per_level must be an integer")
        if self.max_depth < 1:
            raise ValueError("max_depth must be a positive integer")
        if self.max_branches_per_level < 1:
            raise ValueError("max_branches_per_level must be a positive integer")


@dataclass
class CitationTreeNode:
    """One position in a citation tree.

    A paper id never repeats along a single root-to-node path, but may appear
    in several sibling subtrees.
    """

    paper: PaperRecord
    references: List["CitationTreeNode"] = field(default_factory=list)
    depth: int = 0
    total_nodes: Optional[int] = None

    @property
    def paper_id(self) -> str:
        return self.paper.id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "paper": self.paper.to_api(),
            "references": [child.to_dict() for child in self.references],
            "depth": self.depth,
        }
        if self.total_nodes is not None:
            data["totalNodes"] = self.total_nodes
        return data


@dataclass(frozen=True)
class TreeStatistics:
    total_nodes: int
    max_depth: int
    average_references: float
    total_citations: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "maxDepth": self.max_depth,
            "averageReferences": self.average_references,
            "totalCitations": self.total_citations,
        }


@dataclass(frozen=True)
class FlattenedEntry:
    """Row of the flat, pre-ordered view of a tree."""

    paper_id: str
    title: str
    depth: int
    parent_id: Optional[str]
    citation_count: int

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "paperId": self.paper_id,
            "title": self.title,
            "depth": self.depth,
            "citationCount": self.citation_count,
        }
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        return data


class ResolutionStatus(str, Enum):
    """Outcome of resolving a paper id to a record."""

    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


@dataclass(frozen=True)
class PaperResolution:
    """Tagged result of node resolution.

    ``FRESH`` carries a record that has its link lists, either from the store
    or just fetched. ``STALE`` carries a stored record whose refresh failed.
    ``MISSING`` carries nothing.
    """

    status: ResolutionStatus
    paper: Optional[PaperRecord] = None
    source: Optional[str] = None

    @classmethod
    def fresh(cls, paper: PaperRecord, source: str) -> "PaperResolution":
        return cls(ResolutionStatus.FRESH, paper, source)

    @classmethod
    def stale(cls, paper: PaperRecord) -> "PaperResolution":
        return cls(ResolutionStatus.STALE, paper, "store")

    @classmethod
    def missing(cls) -> "PaperResolution":
        return cls(ResolutionStatus.MISSING)

    @property
    def found(self) -> bool:
        return self.paper is not None


@dataclass(frozen=True)
class TreeProgress:
    processed: int
    total: int
    current_paper_id: str
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "total": self.total,
            "currentPaper": self.current_paper_id,
            "depth": self.depth,
        }


__all__ = [
    "CitationTreeNode",
    "DEFAULT_MAX_BRANCHES",
    "DEFAULT_MAX_DEPTH",
    "FlattenedEntry",
    "PaperResolution",
    "ResolutionStatus",
    "TreeOptions",
    "TreeProgress",
    "TreeStatistics",
]
