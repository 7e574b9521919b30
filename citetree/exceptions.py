"""Custom exception hierarchy for the citation tree explorer."""


class CitetreeError(Exception):
    """Base exception for citation tree explorer errors."""


class ConfigError(CitetreeError):
    """Raised when configuration is invalid or incomplete."""


class DatabaseError(CitetreeError):
    """Raised when paper store operations fail."""
