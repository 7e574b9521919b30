from __future__ import annotations

from typing import Callable, List

import httpx
import pytest

from citetree.providers.adapters import semanticscholar_payload_to_record
from citetree.providers.clients.base import NotFoundError, RequestRejectedError, UpstreamError
from citetree.providers.clients.semanticscholar import PAPER_FIELDS, SemanticScholarClient
from citetree.settings import ClientSettings


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> SemanticScholarClient:
    return SemanticScholarClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        base_url="https://api.test/graph/v1",
        **kwargs,
    )


PAPER_PAYLOAD = {
    "paperId": "abc",
    "title": "Attention Is All You Need",
    "abstract": "Transformers.",
    "year": 2017,
    "publicationDate": "2017-06-12",
    "citationCount": 90000,
    "venue": "NeurIPS",
    "externalIds": {"DOI": "10.5555/3295222"},
    "authors": [{"authorId": "1", "name": "Ashish Vaswani", "affiliations": ["Google Brain"]}],
    "references": [{"paperId": "r1"}, {"paperId": None}, {"paperId": "r2"}],
    "citations": [{"paperId": "c1"}],
}


@pytest.mark.asyncio
async def test_get_paper_requests_link_fields_and_maps_payload():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=PAPER_PAYLOAD)

    client = _client(handler, api_key="secret")
    paper = await client.get_paper("abc")
    await client.aclose()

    assert seen[0].url.path == "/graph/v1/paper/abc"
    assert seen[0].url.params["fields"] == PAPER_FIELDS
    assert seen[0].headers["x-api-key"] == "secret"
    assert paper.id == "abc"
    assert paper.references == ["r1", "r2"]
    assert paper.citations == ["c1"]
    assert paper.authors[0].affiliation == "Google Brain"
    assert paper.meta_data.venue == "NeurIPS"
    assert paper.has_links


@pytest.mark.asyncio
async def test_get_paper_marks_missing_link_lists_as_fetched_but_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"paperId": "abc", "title": "No links"})

    client = _client(handler)
    paper = await client.get_paper("abc")

    assert paper.meta_data.references == []
    assert paper.meta_data.citations == []
    assert paper.has_links


@pytest.mark.asyncio
async def test_get_paper_not_found_raises():
    client = _client(lambda request: httpx.Response(404, json={"error": "not found"}))

    with pytest.raises(NotFoundError):
        await client.get_paper("missing")


@pytest.mark.asyncio
async def test_get_paper_with_non_object_payload_raises_upstream_error():
    client = _client(lambda request: httpx.Response(200, json=["unexpected"]))

    with pytest.raises(UpstreamError):
        await client.get_paper("abc")


@pytest.mark.asyncio
async def test_search_uses_relevance_endpoint_with_filters():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "total": 42,
                "offset": 10,
                "next": 20,
                "data": [PAPER_PAYLOAD, {"paperId": None, "title": "dropped"}],
            },
        )

    client = _client(handler)
    page = await client.search_papers(
        "transformers", limit=10, offset=10, year="2017", fields_of_study=["Computer Science"]
    )

    params = seen[0].url.params
    assert seen[0].url.path.endswith("/paper/search")
    assert params["query"] == "transformers"
    assert params["limit"] == "10"
    assert params["offset"] == "10"
    assert params["year"] == "2017"
    assert params["fieldsOfStudy"] == "Computer Science"
    assert [paper.id for paper in page.papers] == ["abc"]
    assert (page.total, page.offset, page.next) == (42, 10, "20")


@pytest.mark.asyncio
async def test_search_falls_back_to_bulk_endpoint_once():
    seen: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path.endswith("/paper/search"):
            return httpx.Response(400, text="query too long")
        assert "limit" not in request.url.params
        return httpx.Response(
            200,
            json={
                "total": 3,
                "token": "next-token",
                "data": [
                    {"paperId": "b1", "title": "One"},
                    {"paperId": "b2", "title": "Two"},
                    {"paperId": "b3", "title": "Three"},
                ],
            },
        )

    client = _client(handler)
    page = await client.search_papers("graph neural networks", limit=2)

    assert seen == ["/graph/v1/paper/search", "/graph/v1/paper/search/bulk"]
    assert [paper.id for paper in page.papers] == ["b1", "b2"]
    assert page.total == 3
    assert page.next == "next-token"


@pytest.mark.asyncio
async def test_search_failure_on_both_endpoints_raises():
    client = _client(lambda request: httpx.Response(403, text="forbidden"))

    with pytest.raises(RequestRejectedError):
        await client.search_papers("anything")


@pytest.mark.asyncio
async def test_papers_by_author():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/graph/v1/author/42/papers"
        return httpx.Response(200, json={"data": [{"paperId": "p1", "title": "First"}]})

    client = _client(handler)
    papers = await client.get_papers_by_author("42", limit=5)

    assert [paper.id for paper in papers] == ["p1"]


def test_from_settings_shares_configured_rate_limit():
    settings = ClientSettings(
        semanticscholar_base_url="https://api.test/graph/v1",
        rate_limit_max_requests=7,
        rate_limit_window=60.0,
        retry_attempts=2,
    )

    client = SemanticScholarClient.from_settings(settings)

    assert client.base_url == "https://api.test/graph/v1"
    assert client.retry_attempts == 2
    assert client.rate_limit_status().remaining == 7
    assert client.http_client.headers["User-Agent"] == "citation-tree-explorer/1.0"


def test_adapter_keeps_unfetched_links_as_none():
    record = semanticscholar_payload_to_record({"paperId": "x", "year": 2020})

    assert record.meta_data.references is None
    assert record.meta_data.citations is None
    assert record.publication_date == "2020"
    assert not record.has_links


def test_adapter_requires_an_id():
    with pytest.raises(ValueError):
        semanticscholar_payload_to_record({"title": "anonymous"})


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [["unexpected"], None, "text"])
async def test_search_with_non_object_payload_raises_upstream_error(body):
    client = _client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(UpstreamError):
        await client.search_papers("transformers")


@pytest.mark.asyncio
async def test_bulk_fallback_with_non_object_payload_raises_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/paper/search"):
            return httpx.Response(400, text="query too long")
        return httpx.Response(200, json=[{"paperId": "b1"}])

    client = _client(handler)

    with pytest.raises(UpstreamError):
        await client.search_papers("graph neural networks")


@pytest.mark.asyncio
async def test_papers_by_author_with_non_object_payload_raises_upstream_error():
    client = _client(lambda request: httpx.Response(200, json=None))

    with pytest.raises(UpstreamError):
        await client.get_papers_by_author("42")
