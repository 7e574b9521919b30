"""Pydantic models representing paper store entities."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiSource(str, Enum):
    """Metadata providers a paper record can originate from."""

    SEMANTIC_SCHOLAR = "semantic_scholar"
    OPENALEX = "openalex"


class Author(BaseModel):
    """Author entry as reported by the metadata provider."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    name: str
    affiliation: str | None = None


class PaperMetadata(BaseModel):
    """Open metadata bag stored alongside a paper.

    ``references`` and ``citations`` hold external paper ids. ``None`` means
    the links were never fetched (for example a record saved from a search
    result), while an empty list means the provider reported no links.
    """

    model_config = ConfigDict(extra="allow")

    venue: str | None = None
    url: str | None = None
    references: list[str] | None = None
    citations: list[str] | None = None


class PaperRecord(BaseModel):
    """Canonical paper representation; ``id`` is the store's primary key."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    id: str = Field(min_length=1)
    title: str = ""
    abstract: str | None = None
    authors: list[Author] = Field(default_factory=list)
    publication_date: str | None = None
    citation_count: int = Field(default=0, ge=0)
    api_source: ApiSource = ApiSource.SEMANTIC_SCHOLAR
    external_ids: dict[str, Any] = Field(default_factory=dict)
    meta_data: PaperMetadata = Field(default_factory=PaperMetadata)
    created_at: datetime | None = None

    @property
    def has_links(self) -> bool:
        """Return ``True`` when both reference and citation lists were fetched."""

        return self.meta_data.references is not None and self.meta_data.citations is not None

    @property
    def references(self) -> list[str]:
        return list(self.meta_data.references or [])

    @property
    def citations(self) -> list[str]:
        return list(self.meta_data.citations or [])

    def to_api(self) -> dict[str, Any]:
        """Serialize with camelCase keys for API consumers."""

        return self.model_dump(mode="json", by_alias=True)


class SearchFilters(BaseModel):
    """Filters accepted by the paper store search."""

    query: str | None = None
    author: str | None = None
    year_start: int | None = None
    year_end: int | None = None
    min_citations: int | None = Field(default=None, ge=0)
    venue: str | None = None
    limit: int = Field(default=10, gt=0)
    offset: int = Field(default=0, ge=0)


class VenueCount(BaseModel):
    venue: str
    count: int


class StoreStats(BaseModel):
    """Aggregate figures about the stored paper collection."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_papers: int = 0
    avg_citations: int = 0
    top_venues: list[VenueCount] = Field(default_factory=list)
    recent_count: int = 0
