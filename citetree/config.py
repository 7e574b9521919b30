"""Application configuration for the citation tree explorer."""

import logging
from typing import Optional

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from citetree.exceptions import ConfigError


class CitetreeConfig(BaseSettings):  # type: ignore[misc]
    """Settings controlling the paper store, the metadata provider and tree defaults."""

    db_dsn: Optional[str] = Field(None, description="PostgreSQL DSN for the paper store")
    semanticscholar_base_url: AnyHttpUrl = Field(
        "https://api.semanticscholar.org/graph/v1",
        description="Root of the Semantic Scholar Graph API",
    )
    semanticscholar_api_key: Optional[str] = Field(
        None, description="Optional API key sent as x-api-key"
    )
    request_timeout_s: float = Field(
        60.0, gt=0, description="Timeout (in seconds) for each outbound HTTP request"
    )
    retry_attempts: int = Field(3, ge=1, description="Attempts per request, first try included")
    retry_max_wait_s: float = Field(
        4.0, gt=0, description="Ceiling for the exponential backoff between attempts"
    )
    rate_limit_max_requests: int = Field(
        100, ge=1, description="Requests allowed per rate-limit window"
    )
    rate_limit_window_s: float = Field(300.0, gt=0, description="Rate-limit window length")
    tree_request_delay_s: float = Field(
        1.0, ge=0, description="Pause before each remote fetch below the tree root"
    )
    tree_default_max_depth: int = Field(5, ge=1)
    tree_default_max_branches: int = Field(5, ge=1)
    log_level: str = Field("INFO", description="Root logging level for the CLI and web app")

    model_config = SettingsConfigDict(env_prefix="CITETREE_", env_file=".env", extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return level

    def require_dsn(self) -> str:
        """Return the configured DSN or raise :class:`ConfigError`."""

        if not self.db_dsn:
            raise ConfigError(
                "Database DSN is not configured. Set CITETREE_DB_DSN or pass db_dsn explicitly."
            )
        return self.db_dsn
