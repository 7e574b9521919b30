from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from citetree.config import CitetreeConfig


@dataclass(slots=True)
class ClientSettings:
    """Configuration for the HTTP client talking to the metadata provider."""

    timeout: float = 60.0
    user_agent: str = "citation-tree-explorer/1.0"
    semanticscholar_base_url: Optional[str] = None
    semanticscholar_api_key: Optional[str] = None
    retry_attempts: int = 3
    retry_max_wait: float = 4.0
    # Unauthenticated Semantic Scholar quota: 100 requests per 5 minutes.
    rate_limit_max_requests: int = 100
    rate_limit_window: float = 300.0
    http_client: Optional[httpx.AsyncClient] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        if self.rate_limit_max_requests < 1:
            raise ValueError("rate_limit_max_requests must be at least 1")

    @classmethod
    def from_config(cls, config: CitetreeConfig) -> "ClientSettings":
        return cls(
            timeout=config.request_timeout_s,
            semanticscholar_base_url=str(config.semanticscholar_base_url).rstrip("/"),
            semanticscholar_api_key=config.semanticscholar_api_key,
            retry_attempts=config.retry_attempts,
            retry_max_wait=config.retry_max_wait_s,
            rate_limit_max_requests=config.rate_limit_max_requests,
            rate_limit_window=config.rate_limit_window_s,
        )

    def build_http_client(self) -> httpx.AsyncClient:
        """Return a configured :class:`httpx.AsyncClient` using the settings."""

        if self.http_client is not None:
            client = self.http_client
        else:
            client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))

        if self.user_agent:
            client.headers["User-Agent"] = self.user_agent
        return client
