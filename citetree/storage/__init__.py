"""Paper persistence: models, PostgreSQL DAO and the store facade."""

from .models import ApiSource, Author, PaperMetadata, PaperRecord, SearchFilters, StoreStats, VenueCount
from .store import PaperStore, PostgresPaperStore

__all__ = [
    "ApiSource",
    "Author",
    "PaperMetadata",
    "PaperRecord",
    "PaperStore",
    "PostgresPaperStore",
    "SearchFilters",
    "StoreStats",
    "VenueCount",
]
