from __future__ import annotations

import re
import time
from typing import Any
from urllib.parse import urlparse

import httpx

from sourcefinder.research_core.models.interfaces import RawResult, SearchProvider
from sourcefinder.services.logger import log_search_call, logger
from sourcefinder.tools.web_utils import is_valid_url

CATEGORY_MAX_RESULTS = 10
TEXT_MAX_CHARACTERS = 1000
HIGHLIGHT_SENTENCES = 3
SNIPPET_CHARS = 500

_BY_AUTHOR_RE = re.compile(r"\b[Bb]y\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)")


def _clean_handle(handle: str) -> str:
    return handle.replace("-", " ").strip()


def infer_author(author: str | None, url: str, title: str | None = None) -> str:
    """Best-effort author for a scored result.

    Order: explicit author, platform URL patterns, "by Name" in the title,
    then the cleaned hostname.
    """
    if author and author.strip():
        return author.strip()

    try:
        parsed = urlparse(url)
    except ValueError:
        return "Unknown Author"
    hostname = (parsed.hostname or "").lower()
    path = parsed.path or ""
    if not hostname:
        return "Unknown Author"

    if "medium.com" in hostname and "@" in path:
        match = re.search(r"@([^/]+)", path)
        if match:
            return _clean_handle(match.group(1))

    if hostname.endswith(".substack.com"):
        subdomain = hostname.split(".")[0]
        if subdomain and subdomain != "www":
            return _clean_handle(subdomain)

    if "github.com" in hostname:
        parts = [part for part in path.split("/") if part]
        if parts:
            return parts[0]

    if "linkedin.com" in hostname and "/in/" in path:
        match = re.search(r"/in/([^/]+)", path)
        if match:
            return _clean_handle(match.group(1))

    if title:
        match = _BY_AUTHOR_RE.search(title)
        if match:
            return match.group(1)

    label = hostname.removeprefix("www.").split(".")[0]
    return " ".join(word.capitalize() for word in label.replace("-", " ").split())


class ExaSearchClient:
    """Scored neural search backed by the Exa REST API."""

    provider = SearchProvider.EXA

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.exa.ai",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def search(
        self,
        query: str | list[str],
        max_results: int = 10,
        domain_filter: list[str] | None = None,
        *,
        category: str | None = None,
    ) -> list[RawResult]:
        """Search one query; a category-filtered call is topped up with an unfiltered one."""
        if not self.is_available():
            logger.warning("Exa API key not configured")
            return []
        if isinstance(query, list):
            if not query:
                return []
            query = query[0]

        started = time.monotonic()
        try:
            raw_items: list[dict[str, Any]] = []
            if category:
                raw_items.extend(
                    await self._search_raw(
                        query,
                        num_results=min(max_results, CATEGORY_MAX_RESULTS),
                        category=category,
                        domain_filter=domain_filter,
                    )
                )
            needed = max_results - len(raw_items)
            if needed > 0:
                raw_items.extend(
                    await self._search_raw(
                        query,
                        num_results=needed,
                        category=None,
                        domain_filter=domain_filter,
                    )
                )
        except (httpx.HTTPError, ValueError) as exc:
            log_search_call(
                "exa",
                query,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="failed",
                error=str(exc),
            )
            return []

        results = self._map_results(raw_items)
        log_search_call(
            "exa",
            query,
            results_count=len(results),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return results

    async def _search_raw(
        self,
        query: str,
        *,
        num_results: int,
        category: str | None,
        domain_filter: list[str] | None,
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {
            "query": query,
            "type": "auto",
            "numResults": num_results,
            "contents": {
                "text": {"maxCharacters": TEXT_MAX_CHARACTERS},
                "highlights": {"numSentences": HIGHLIGHT_SENTENCES},
            },
        }
        if category:
            payload["category"] = category
        if domain_filter:
            payload["includeDomains"] = domain_filter

        headers = {
            "Accept": "application/json",
            "x-api-key": self.api_key,
        }
        endpoint = f"{self.base_url}/search"
        if self._http_client is not None:
            response = await self._http_client.post(endpoint, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(endpoint, json=payload, headers=headers)
        response.raise_for_status()
        data = response.json()
        results = (data.get("results") or []) if isinstance(data, dict) else []
        return [item for item in results if isinstance(item, dict)]

    def _map_results(self, raw_items: list[dict[str, Any]]) -> list[RawResult]:
        stamp = int(time.time() * 1000)
        placeholder_counter = 1
        mapped: list[RawResult] = []
        for index, item in enumerate(raw_items):
            url = item.get("url")
            if not url or not is_valid_url(url):
                logger.warning(f"Exa result missing or invalid URL, skipping: {url!r}")
                continue

            title = (item.get("title") or "").strip()
            if not title:
                title = f"PDF Reference #{placeholder_counter}"
                placeholder_counter += 1

            highlights = item.get("highlights") or []
            text = item.get("text") or ""
            snippet = (highlights[0] if highlights else "") or text[:SNIPPET_CHARS] or title

            score = item.get("score")
            mapped.append(
                RawResult(
                    id=item.get("id") or f"exa-{stamp}-{index}",
                    title=title,
                    url=url,
                    snippet=snippet,
                    date=item.get("publishedDate"),
                    author=infer_author(item.get("author"), url, title),
                    score=float(score) if isinstance(score, (int, float)) else None,
                    provider=SearchProvider.EXA,
                )
            )
        return mapped
