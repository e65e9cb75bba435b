from __future__ import annotations

import json

import httpx
import pytest

from sourcefinder.config import Settings
from sourcefinder.research_core.models.interfaces import SearchProvider
from sourcefinder.tools.exa_search import ExaSearchClient, infer_author
from sourcefinder.tools.perplexity_search import PerplexitySearchClient
from sourcefinder.tools.search_provider import build_search_clients


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_exa_maps_results_and_synthesizes_placeholder_titles():
    payload = {
        "results": [
            {
                "id": "doc-1",
                "title": "Carbon pricing outcomes",
                "url": "https://journal.org/carbon",
                "score": 0.42,
                "publishedDate": "2023-05-01",
                "author": "A. Researcher",
                "highlights": ["Key highlight."],
            },
            {"title": "", "url": "https://files.org/report.pdf", "text": "Body text of the PDF"},
            {"title": "No url here"},
            {"title": None, "url": "https://files.org/other.pdf"},
        ]
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-api-key"] == "exa-key"
        return httpx.Response(200, json=payload)

    async with _mock_client(handler) as http_client:
        client = ExaSearchClient("exa-key", http_client=http_client)
        results = await client.search("carbon pricing", max_results=4)

    assert [r.title for r in results] == ["Carbon pricing outcomes", "PDF Reference #1", "PDF Reference #2"]
    assert results[0].score == 0.42
    assert results[0].snippet == "Key highlight."
    assert results[0].author == "A. Researcher"
    assert results[1].snippet == "Body text of the PDF"
    assert results[1].score is None
    assert all(r.provider == SearchProvider.EXA for r in results)


@pytest.mark.asyncio
async def test_exa_tops_up_category_search_with_unfiltered_call():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        if "category" in body:
            return httpx.Response(200, json={"results": [{"title": "Paper", "url": "https://a.org/p", "score": 0.9}]})
        return httpx.Response(
            200,
            json={"results": [{"title": f"General {i}", "url": f"https://b.org/{i}", "score": 0.5} for i in range(3)]},
        )

    async with _mock_client(handler) as http_client:
        client = ExaSearchClient("exa-key", http_client=http_client)
        results = await client.search("crispr", max_results=4, category="research paper")

    assert len(bodies) == 2
    assert bodies[0]["category"] == "research paper"
    assert bodies[0]["numResults"] == 4
    assert "category" not in bodies[1]
    assert bodies[1]["numResults"] == 3
    assert len(results) == 4


@pytest.mark.asyncio
async def test_exa_returns_empty_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    async with _mock_client(handler) as http_client:
        client = ExaSearchClient("exa-key", http_client=http_client)
        assert await client.search("anything") == []


@pytest.mark.asyncio
async def test_exa_without_api_key_returns_empty():
    client = ExaSearchClient("")
    assert client.is_available() is False
    assert await client.search("anything") == []


@pytest.mark.asyncio
async def test_perplexity_truncates_to_five_queries_and_flattens_groups():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(json.loads(request.content))
        assert request.headers["authorization"] == "Bearer pplx-key"
        return httpx.Response(
            200,
            json={
                "results": [
                    [{"title": "One", "url": "https://one.com", "snippet": "s1", "date": "2024-02-02"}],
                    [{"title": "", "url": "https://two.com"}, {"title": "Missing url"}],
                ]
            },
        )

    async with _mock_client(handler) as http_client:
        client = PerplexitySearchClient("pplx-key", http_client=http_client)
        results = await client.search([f"q{i}" for i in range(7)], max_results=3, domain_filter=["one.com"])

    assert captured["query"] == ["q0", "q1", "q2", "q3", "q4"]
    assert captured["max_results"] == 3
    assert captured["search_domain_filter"] == ["one.com"]
    assert [r.title for r in results] == ["One", "Untitled #1"]
    assert results[0].date == "2024-02-02"
    assert all(r.score is None for r in results)
    assert all(r.provider == SearchProvider.PERPLEXITY for r in results)


@pytest.mark.asyncio
async def test_perplexity_returns_empty_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with _mock_client(handler) as http_client:
        client = PerplexitySearchClient("pplx-key", http_client=http_client)
        assert await client.search("anything") == []


@pytest.mark.parametrize(
    ("author", "url", "title", "expected"),
    [
        ("  Jane Roe ", "https://x.com/a", None, "Jane Roe"),
        (None, "https://medium.com/@john-smith/post-1", None, "john smith"),
        (None, "https://data-notes.substack.com/p/x", None, "data notes"),
        (None, "https://github.com/octocat/repo", None, "octocat"),
        (None, "https://www.linkedin.com/in/mary-major/", None, "mary major"),
        (None, "https://blog.example.com/post", "Scaling laws by Ada Lovelace", "Ada Lovelace"),
        (None, "https://www.nature-news.com/article", "Untitled", "Nature News"),
        (None, "not a url", None, "Unknown Author"),
    ],
)
def test_infer_author_fallback_order(author, url, title, expected):
    assert infer_author(author, url, title) == expected


def test_build_search_clients_uses_settings():
    config = Settings(exa_api_key="e", perplexity_api_key="", log_to_file=False)
    clients = build_search_clients(config)

    assert clients.scored.is_available() is True
    assert clients.unscored.is_available() is False


@pytest.mark.asyncio
async def test_exa_treats_null_results_as_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": None})

    async with _mock_client(handler) as http_client:
        client = ExaSearchClient("exa-key", http_client=http_client)
        assert await client.search("anything") == []
