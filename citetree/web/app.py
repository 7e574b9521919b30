"""FastAPI application exposing citation trees and paper lookups."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from citetree.api import CitationExplorer
from citetree.config import CitetreeConfig

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TreeRequest(CamelModel):
    """Body of the tree endpoints; omitted fields use the configured defaults."""

    max_depth: Optional[int] = Field(None, ge=1)
    max_references_per_level: Optional[int] = Field(None, ge=1)
    include_metrics: bool = False


class SearchRequest(CamelModel):
    query: str = ""
    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)
    year: Optional[str] = None
    venue: Optional[str] = None
    fields_of_study: Optional[list[str]] = None
    save_to_db: bool = True


class AuthorSearchRequest(CamelModel):
    author_name: str = ""
    limit: int = Field(10, ge=1, le=100)


class BulkImportRequest(CamelModel):
    queries: list[str] = Field(default_factory=list)
    max_papers_per_query: int = Field(20, ge=1, le=100)


def get_explorer(request: Request) -> CitationExplorer:
    return request.app.state.explorer


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": message})


def _failure(message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500, content={"success": False, "message": message, "error": str(exc)}
    )


citations_router = APIRouter(prefix="/api/citations", tags=["citations"])
papers_router = APIRouter(prefix="/api/papers", tags=["papers"])


async def _tree_response(
    explorer: CitationExplorer,
    paper_id: str,
    body: Optional[TreeRequest],
    *,
    progress: bool,
) -> JSONResponse:
    body = body or TreeRequest()
    try:
        if not paper_id.strip():
            raise ValueError("paper id is required")
        explorer.tree_options(body.max_depth, body.max_references_per_level, body.include_metrics)
    except ValueError as exc:
        return _bad_request(str(exc))

    logger.info("Building citation tree for paper %s (progress=%s)", paper_id, progress)
    try:
        envelope = await explorer.build_tree_response(
            paper_id,
            max_depth=body.max_depth,
            max_references_per_level=body.max_references_per_level,
            include_metrics=body.include_metrics,
            progress=progress,
        )
    except Exception as exc:
        logger.exception("Error building citation tree for %s", paper_id)
        return _failure("failed to build citation tree", exc)

    return JSONResponse(status_code=200 if envelope["success"] else 404, content=envelope)


@citations_router.api_route("/tree/{paper_id}", methods=["GET", "POST"])
async def build_tree(
    paper_id: str,
    body: Optional[TreeRequest] = None,
    explorer: CitationExplorer = Depends(get_explorer),
) -> JSONResponse:
    return await _tree_response(explorer, paper_id, body, progress=False)


@citations_router.post("/tree/{paper_id}/progress")
async def build_tree_with_progress(
    paper_id: str,
    body: Optional[TreeRequest] = None,
    explorer: CitationExplorer = Depends(get_explorer),
) -> JSONResponse:
    return await _tree_response(explorer, paper_id, body, progress=True)


@papers_router.post("/search")
async def search_papers(
    body: SearchRequest, explorer: CitationExplorer = Depends(get_explorer)
) -> JSONResponse:
    if not body.query.strip():
        return _bad_request("search query is required")
    try:
        result = await explorer.search_papers(
            body.query,
            limit=body.limit,
            offset=body.offset,
            year=body.year,
            venue=body.venue,
            fields_of_study=body.fields_of_study,
            save_to_db=body.save_to_db,
        )
    except Exception as exc:
        logger.exception("Error searching papers for %r", body.query)
        return _failure("failed to search papers", exc)
    return JSONResponse(content={"success": True, "data": result.to_dict()})


@papers_router.post("/search/author")
async def search_by_author(
    body: AuthorSearchRequest, explorer: CitationExplorer = Depends(get_explorer)
) -> JSONResponse:
    if not body.author_name.strip():
        return _bad_request("author name is required")
    try:
        papers = await explorer.search_by_author(body.author_name, body.limit)
    except Exception as exc:
        logger.exception("Error searching papers by author %r", body.author_name)
        return _failure("failed to search papers by author", exc)
    return JSONResponse(
        content={
            "success": True,
            "data": {
                "papers": [paper.to_api() for paper in papers],
                "total": len(papers),
                "author": body.author_name,
                "source": "database",
            },
        }
    )


@papers_router.get("/recent")
async def recent_papers(
    limit: int = Query(20, ge=1, le=100),
    explorer: CitationExplorer = Depends(get_explorer),
) -> JSONResponse:
    try:
        papers = await explorer.recent_papers(limit)
    except Exception as exc:
        logger.exception("Error fetching recent papers")
        return _failure("failed to fetch recent papers", exc)
    return JSONResponse(
        content={
            "success": True,
            "data": {"papers": [paper.to_api() for paper in papers], "total": len(papers)},
        }
    )


@papers_router.get("/stats")
async def paper_stats(explorer: CitationExplorer = Depends(get_explorer)) -> JSONResponse:
    try:
        stats = await explorer.stats()
    except Exception as exc:
        logger.exception("Error computing paper stats")
        return _failure("failed to get stats", exc)
    return JSONResponse(content={"success": True, "data": stats.model_dump(by_alias=True)})


@papers_router.get("/rate-limit")
async def rate_limit_status(explorer: CitationExplorer = Depends(get_explorer)) -> JSONResponse:
    return JSONResponse(
        content={
            "success": True,
            "data": {
                "rateLimit": explorer.rate_limit_status(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }
    )


@papers_router.post("/bulk-import")
async def bulk_import(
    body: BulkImportRequest, explorer: CitationExplorer = Depends(get_explorer)
) -> JSONResponse:
    queries = [query.strip() for query in body.queries if query.strip()]
    if not queries:
        return _bad_request("queries are required")
    try:
        result = await explorer.bulk_import(queries, body.max_papers_per_query)
    except Exception as exc:
        logger.exception("Bulk import failed")
        return _failure("bulk import failed", exc)
    return JSONResponse(content={"success": True, "data": result.to_dict()})


@papers_router.get("/{paper_id}")
async def get_paper(paper_id: str, explorer: CitationExplorer = Depends(get_explorer)) -> JSONResponse:
    if not paper_id.strip():
        return _bad_request("paper id is required")
    try:
        found = await explorer.get_paper(paper_id.strip())
    except Exception as exc:
        logger.exception("Error fetching paper %s", paper_id)
        return _failure("failed to fetch paper", exc)
    if found is None:
        return JSONResponse(status_code=404, content={"success": False, "message": "paper not found"})
    paper, source = found
    return JSONResponse(
        content={"success": True, "data": {"paper": paper.to_api(), "source": source}}
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: list[Any] = exc.errors()
    message = "invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{location}: {errors[0].get('msg', message)}" if location else message
    return _bad_request(message)


def create_app(
    explorer: Optional[CitationExplorer] = None, config: Optional[CitetreeConfig] = None
) -> FastAPI:
    """Build the application.

    When ``explorer`` is omitted one is created from ``config`` on startup and
    closed on shutdown; a passed-in explorer stays owned by the caller.
    """

    if config is None:
        config = explorer.config if explorer is not None else CitetreeConfig()
    logging.basicConfig(level=config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if explorer is not None:
            yield
            return
        owned = CitationExplorer(config)
        app.state.explorer = owned
        try:
            yield
        finally:
            await owned.aclose()

    app = FastAPI(title="Citation Tree Explorer", lifespan=lifespan)
    if explorer is not None:
        app.state.explorer = explorer
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(citations_router)
    app.include_router(papers_router)
    return app
