"""papers_table

Revision ID: 20260301_papers
Revises:
Create Date: 2026-03-01 10:12:44.203118

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "20260301_papers"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("""
        CREATE TABLE IF NOT EXISTS papers (
            id VARCHAR(255) PRIMARY KEY,
            title TEXT NOT NULL DEFAULT '',
            abstract TEXT,
            authors JSONB NOT NULL DEFAULT '[]'::jsonb,
            publication_date TEXT,
            citation_count INTEGER NOT NULL DEFAULT 0,
            api_source VARCHAR(50),
            external_ids JSONB NOT NULL DEFAULT '{}'::jsonb,
            meta_data JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_papers_title "
        "ON papers USING gin(to_tsvector('english', title))"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_papers_abstract "
        "ON papers USING gin(to_tsvector('english', coalesce(abstract, '')))"
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_papers_citation_count ON papers (citation_count DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_papers_updated_at ON papers (updated_at DESC)")


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP TABLE IF EXISTS papers CASCADE")
