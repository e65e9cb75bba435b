from __future__ import annotations

import time
from typing import Any

import httpx

from sourcefinder.research_core.models.interfaces import RawResult, SearchProvider
from sourcefinder.services.logger import log_search_call, logger
from sourcefinder.tools.web_utils import is_valid_url

MAX_QUERIES_PER_CALL = 5


def _flatten_results(results: Any) -> list[dict[str, Any]]:
    """Multi-query responses group results per query; single-query responses are flat."""
    flat: list[dict[str, Any]] = []
    if not isinstance(results, list):
        return flat
    for item in results:
        if isinstance(item, list):
            flat.extend(entry for entry in item if isinstance(entry, dict))
        elif isinstance(item, dict):
            flat.append(item)
    return flat


class PerplexitySearchClient:
    """Unscored web search backed by the Perplexity Search API."""

    provider = SearchProvider.PERPLEXITY

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.perplexity.ai",
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
    ) -> list[RawResult]:
        """Search one query or up to five queries in a single call (extra queries are dropped)."""
        if not self.is_available():
            logger.warning("Perplexity API key not configured")
            return []

        if isinstance(query, list):
            queries = [q for q in query if q and q.strip()][:MAX_QUERIES_PER_CALL]
            if not queries:
                return []
            query_param: str | list[str] = queries if len(queries) > 1 else queries[0]
        else:
            query_param = query

        payload: dict[str, Any] = {
            "query": query_param,
            "max_results": max_results,
        }
        if domain_filter:
            payload["search_domain_filter"] = domain_filter

        started = time.monotonic()
        try:
            data = await self._post(payload)
        except (httpx.HTTPError, ValueError) as exc:
            log_search_call(
                "perplexity",
                query_param,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="failed",
                error=str(exc),
            )
            return []

        raw_items = _flatten_results(data.get("results") if isinstance(data, dict) else None)
        results = self._map_results(raw_items)
        log_search_call(
            "perplexity",
            query_param,
            results_count=len(results),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return results

    async def _post(self, payload: dict[str, Any]) -> Any:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        endpoint = f"{self.base_url}/search"
        if self._http_client is not None:
            response = await self._http_client.post(endpoint, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(endpoint, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()

    def _map_results(self, raw_items: list[dict[str, Any]]) -> list[RawResult]:
        stamp = int(time.time() * 1000)
        placeholder_counter = 1
        mapped: list[RawResult] = []
        for index, item in enumerate(raw_items):
            url = item.get("url")
            if not url or not is_valid_url(url):
                logger.warning(f"Perplexity result missing or invalid URL, skipping: {url!r}")
                continue

            title = (item.get("title") or "").strip()
            if not title:
                title = f"Untitled #{placeholder_counter}"
                placeholder_counter += 1

            mapped.append(
                RawResult(
                    id=f"perplexity-{stamp}-{index}",
                    title=title,
                    url=url,
                    snippet=item.get("snippet") or "",
                    date=item.get("date") or item.get("last_updated"),
                    provider=SearchProvider.PERPLEXITY,
                )
            )
        return mapped
