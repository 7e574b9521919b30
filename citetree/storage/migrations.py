"""Migration utilities for running Alembic migrations programmatically."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from citetree.storage.db import resolve_dsn


def get_alembic_config(dsn: str | None = None) -> Config:
    """Create Alembic configuration object."""
    project_root = Path(__file__).resolve().parent.parent.parent
    config = Config(str(project_root / "alembic.ini"))
    config.set_main_option("script_location", str(project_root / "alembic"))

    resolved_dsn = resolve_dsn(dsn)
    # SQLAlchemy needs the explicit psycopg (v3) driver name.
    if resolved_dsn.startswith("postgresql://"):
        resolved_dsn = resolved_dsn.replace("postgresql://", "postgresql+psycopg://", 1)
    config.set_main_option("sqlalchemy.url", resolved_dsn)
    return config


def run_migrations(dsn: str | None = None) -> None:
    """Run all pending migrations to head."""
    config = get_alembic_config(dsn)
    command.upgrade(config, "head")


def downgrade_migrations(dsn: str | None = None, revision: str = "-1") -> None:
    """Downgrade migrations."""
    config = get_alembic_config(dsn)
    command.downgrade(config, revision)
