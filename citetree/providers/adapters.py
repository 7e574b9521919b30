from __future__ import annotations

from typing import Any, Dict, List, Optional

from citetree.storage.models import ApiSource, Author, PaperMetadata, PaperRecord


def _link_ids(entries: Any) -> Optional[List[str]]:
    """Reduce a provider link list to paper ids.

    ``None`` is kept as ``None`` so "not requested" stays distinguishable from
    "no links". Entries may be bare ids or objects carrying ``paperId``; the
    provider reports unresolved references with a null id, which are dropped.
    """

    if entries is None:
        return None
    ids: List[str] = []
    for entry in entries:
        if isinstance(entry, dict):
            entry = entry.get("paperId")
        if isinstance(entry, str) and entry.strip():
            ids.append(entry)
    return ids


def _authors(entries: Any) -> List[Author]:
    authors: List[Author] = []
    for author in entries or []:
        if not isinstance(author, dict) or not author.get("name"):
            continue
        affiliations = author.get("affiliations") or []
        authors.append(
            Author(
                id=author.get("authorId"),
                name=author["name"],
                affiliation=affiliations[0] if affiliations else author.get("affiliation"),
            )
        )
    return authors


def semanticscholar_payload_to_record(
    data: Dict[str, Any], *, default_id: Optional[str] = None
) -> PaperRecord:
    paper_id = data.get("paperId") or data.get("id") or default_id
    if not paper_id:
        raise ValueError("Semantic Scholar payload has no paper id")

    year = data.get("year")
    publication_date = data.get("publicationDate") or (str(year) if year else None)

    return PaperRecord(
        id=str(paper_id),
        title=data.get("title") or "",
        abstract=data.get("abstract") or None,
        authors=_authors(data.get("authors")),
        publication_date=publication_date,
        citation_count=data.get("citationCount") or 0,
        api_source=ApiSource.SEMANTIC_SCHOLAR,
        external_ids=data.get("externalIds") or {},
        meta_data=PaperMetadata(
            venue=data.get("venue") or None,
            url=data.get("url") or None,
            references=_link_ids(data.get("references")),
            citations=_link_ids(data.get("citations")),
        ),
    )
