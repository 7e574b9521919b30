"""Data-access layer for CRUD operations on stored papers."""

from __future__ import annotations

from typing import Any, Sequence

from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg.types.json import Json

from citetree.storage.models import PaperRecord, SearchFilters, StoreStats, VenueCount

PAPER_COLUMNS = """
    id, title, abstract, authors, publication_date, citation_count,
    api_source, external_ids, meta_data, created_at, updated_at
"""

UPSERT_SQL = f"""
    INSERT INTO papers (
        id, title, abstract, authors, publication_date, citation_count,
        api_source, external_ids, meta_data
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (id) DO UPDATE
        SET title = EXCLUDED.title,
            abstract = EXCLUDED.abstract,
            authors = EXCLUDED.authors,
            publication_date = EXCLUDED.publication_date,
            citation_count = EXCLUDED.citation_count,
            api_source = EXCLUDED.api_source,
            external_ids = EXCLUDED.external_ids,
            meta_data = EXCLUDED.meta_data,
            updated_at = now()
    RETURNING {PAPER_COLUMNS}
"""


def _paper_params(paper: PaperRecord) -> tuple[Any, ...]:
    return (
        paper.id,
        paper.title,
        paper.abstract,
        Json([author.model_dump(mode="json") for author in paper.authors]),
        paper.publication_date,
        paper.citation_count,
        str(getattr(paper.api_source, "value", paper.api_source)),
        Json(paper.external_ids),
        Json(paper.meta_data.model_dump(mode="json")),
    )


async def upsert_paper(conn: AsyncConnection, paper: PaperRecord) -> PaperRecord:
    """Insert or overwrite a paper record and return the persisted model."""

    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(UPSERT_SQL, _paper_params(paper))
        row = await cur.fetchone()
    return PaperRecord.model_validate(row)


async def upsert_papers(conn: AsyncConnection, papers: Sequence[PaperRecord]) -> list[PaperRecord]:
    """Upsert ``papers`` inside a single transaction (all-or-nothing)."""

    saved: list[PaperRecord] = []
    async with conn.transaction():
        async with conn.cursor(row_factory=dict_row) as cur:
            for paper in papers:
                await cur.execute(UPSERT_SQL, _paper_params(paper))
                saved.append(PaperRecord.model_validate(await cur.fetchone()))
    return saved


async def get_paper_by_id(conn: AsyncConnection, paper_id: str) -> PaperRecord | None:
    """Fetch a single paper by its external identifier."""

    sql = f"SELECT {PAPER_COLUMNS} FROM papers WHERE id = %s"
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(sql, (paper_id,))
        row = await cur.fetchone()
    if row is None:
        return None
    return PaperRecord.model_validate(row)


async def paper_exists(conn: AsyncConnection, paper_id: str) -> bool:
    async with conn.cursor() as cur:
        await cur.execute("SELECT 1 FROM papers WHERE id = %s LIMIT 1", (paper_id,))
        return await cur.fetchone() is not None


async def get_papers_by_author(
    conn: AsyncConnection, author_name: str, limit: int = 10
) -> list[PaperRecord]:
    """Return papers whose author list mentions ``author_name``, most cited first."""

    sql = f"""
        SELECT {PAPER_COLUMNS}
        FROM papers
        WHERE authors::text ILIKE %s
        ORDER BY citation_count DESC
        LIMIT %s
    """
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(sql, (f"%{author_name}%", limit))
        rows = await cur.fetchall()
    return [PaperRecord.model_validate(row) for row in rows]


async def get_recent_papers(conn: AsyncConnection, limit: int = 10) -> list[PaperRecord]:
    """Return the most recently saved papers."""

    sql = f"""
        SELECT {PAPER_COLUMNS}
        FROM papers
        ORDER BY updated_at DESC
        LIMIT %s
    """
    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(sql, (limit,))
        rows = await cur.fetchall()
    return [PaperRecord.model_validate(row) for row in rows]


def _build_search_where(filters: SearchFilters) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    params: list[Any] = []

    if filters.query:
        conditions.append(
            """(
                to_tsvector('english', title) @@ plainto_tsquery('english', %s)
                OR to_tsvector('english', coalesce(abstract, '')) @@ plainto_tsquery('english', %s)
            )"""
        )
        params.extend([filters.query, filters.query])

    if filters.author:
        conditions.append("authors::text ILIKE %s")
        params.append(f"%{filters.author}%")

    year_expr = "substring(publication_date from '^[0-9]{4}')::int"
    if filters.year_start is not None:
        conditions.append(f"{year_expr} >= %s")
        params.append(filters.year_start)

    if filters.year_end is not None:
        conditions.append(f"{year_expr} <= %s")
        params.append(filters.year_end)

    if filters.min_citations:
        conditions.append("citation_count >= %s")
        params.append(filters.min_citations)

    if filters.venue:
        conditions.append("meta_data->>'venue' ILIKE %s")
        params.append(f"%{filters.venue}%")

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return where, params


async def search_papers(
    conn: AsyncConnection, filters: SearchFilters
) -> tuple[list[PaperRecord], int]:
    """Search stored papers and return one page plus the total match count."""

    where, params = _build_search_where(filters)
    count_sql = f"SELECT count(*) AS total FROM papers {where}"
    page_sql = f"""
        SELECT {PAPER_COLUMNS}
        FROM papers
        {where}
        ORDER BY citation_count DESC, created_at DESC
        LIMIT %s OFFSET %s
    """

    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(count_sql, params)
        count_row = await cur.fetchone()
        await cur.execute(page_sql, [*params, filters.limit, filters.offset])
        rows = await cur.fetchall()

    total = int(count_row["total"]) if count_row else 0
    return [PaperRecord.model_validate(row) for row in rows], total


async def get_paper_stats(conn: AsyncConnection) -> StoreStats:
    """Collect aggregate figures over the stored papers."""

    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute("SELECT count(*) AS total FROM papers")
        total_row = await cur.fetchone()
        await cur.execute("SELECT avg(citation_count) AS avg_citations FROM papers")
        avg_row = await cur.fetchone()
        await cur.execute(
            """
            SELECT meta_data->>'venue' AS venue, count(*) AS count
            FROM papers
            WHERE coalesce(meta_data->>'venue', '') <> ''
            GROUP BY meta_data->>'venue'
            ORDER BY count DESC
            LIMIT 5
            """
        )
        venue_rows = await cur.fetchall()
        await cur.execute(
            """
            SELECT count(*) AS recent_count
            FROM papers
            WHERE created_at >= now() - interval '7 days'
            """
        )
        recent_row = await cur.fetchone()

    avg_citations = avg_row["avg_citations"] if avg_row else None
    return StoreStats(
        total_papers=int(total_row["total"]) if total_row else 0,
        avg_citations=int(avg_citations or 0),
        top_venues=[VenueCount(venue=row["venue"], count=int(row["count"])) for row in venue_rows],
        recent_count=int(recent_row["recent_count"]) if recent_row else 0,
    )
