from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx

from sourcefinder.config import Settings, settings
from sourcefinder.research_core.models.interfaces import RawResult, SearchProvider
from sourcefinder.tools.exa_search import ExaSearchClient
from sourcefinder.tools.perplexity_search import PerplexitySearchClient


class SearchClient(Protocol):
    provider: SearchProvider

    def is_available(self) -> bool: ...

    async def search(
        self,
        query: str | list[str],
        max_results: int = 10,
        domain_filter: list[str] | None = None,
    ) -> list[RawResult]: ...


@dataclass
class SearchClients:
    scored: ExaSearchClient
    unscored: PerplexitySearchClient


def build_search_clients(
    config: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> SearchClients:
    """Construct both provider clients from settings, optionally sharing one HTTP client."""
    config = config or settings
    return SearchClients(
        scored=ExaSearchClient(
            config.exa_api_key,
            base_url=config.exa_base_url,
            timeout=config.search_timeout_seconds,
            http_client=http_client,
        ),
        unscored=PerplexitySearchClient(
            config.perplexity_api_key,
            base_url=config.perplexity_base_url,
            timeout=config.search_timeout_seconds,
            http_client=http_client,
        ),
    )
