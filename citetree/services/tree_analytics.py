"""Read-only analytics over a built citation tree."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from citetree.core.models import CitationTreeNode, FlattenedEntry, TreeStatistics


def compute_statistics(tree: Optional[CitationTreeNode]) -> TreeStatistics:
    """Summarize a tree in a single pre-order pass.

    ``average_references`` is the number of child edges divided by the number
    of nodes, and is ``0`` for an empty tree.
    """

    total_nodes = 0
    max_depth = 0
    total_references = 0
    total_citations = 0

    stack = [tree] if tree is not None else []
    while stack:
        node = stack.pop()
        total_nodes += 1
        max_depth = max(max_depth, node.depth)
        total_references += len(node.references)
        total_citations += node.paper.citation_count
        stack.extend(reversed(node.references))

    average = total_references / total_nodes if total_nodes else 0
    return TreeStatistics(
        total_nodes=total_nodes,
        max_depth=max_depth,
        average_references=average,
        total_citations=total_citations,
    )


def flatten(tree: Optional[CitationTreeNode]) -> List[FlattenedEntry]:
    """Return one entry per node in pre-order, siblings kept in tree order."""

    entries: List[FlattenedEntry] = []
    if tree is None:
        return entries

    stack: List[tuple[CitationTreeNode, Optional[str]]] = [(tree, None)]
    while stack:
        node, parent_id = stack.pop()
        entries.append(
            FlattenedEntry(
                paper_id=node.paper.id,
                title=node.paper.title,
                depth=node.depth,
                parent_id=parent_id,
                citation_count=node.paper.citation_count,
            )
        )
        for child in reversed(node.references):
            stack.append((child, node.paper.id))
    return entries


def count_nodes(node: CitationTreeNode) -> int:
    """Post-order subtree size, reusing ``total_nodes`` already set on children."""

    total = 1
    for child in node.references:
        total += child.total_nodes if child.total_nodes is not None else count_nodes(child)
    return total


def tree_to_dict(tree: CitationTreeNode) -> Dict[str, Any]:
    """Serialize a tree with its statistics and flattened view."""

    return {
        "tree": tree.to_dict(),
        "statistics": compute_statistics(tree).to_dict(),
        "flattened": [entry.to_dict() for entry in flatten(tree)],
    }
