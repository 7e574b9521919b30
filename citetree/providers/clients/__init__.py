"""HTTP clients used by the citation tree service layer."""

from .base import (
    BaseHttpClient,
    ClientError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    UnauthorizedError,
    UpstreamError,
)
from .semanticscholar import PAPER_FIELDS, SEARCH_FIELDS, SearchPage, SemanticScholarClient

__all__ = [
    "BaseHttpClient",
    "ClientError",
    "ForbiddenError",
    "NotFoundError",
    "PAPER_FIELDS",
    "RateLimitedError",
    "RequestRejectedError",
    "SEARCH_FIELDS",
    "SearchPage",
    "SemanticScholarClient",
    "UnauthorizedError",
    "UpstreamError",
]
