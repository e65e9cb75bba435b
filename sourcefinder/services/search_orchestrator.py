from __future__ import annotations

import math
import random
from typing import Awaitable

import httpx

from sourcefinder.config import Settings, settings
from sourcefinder.research_core import query_expansion
from sourcefinder.research_core.models.interfaces import (
    DocumentType,
    RawResult,
    ResearchSource,
    SearchProvider,
)
from sourcefinder.research_core.result_processor import (
    filter_existing_urls,
    filter_similar_titles,
    merge_results,
    to_research_sources,
)
from sourcefinder.services.concurrency import Settled, gather_settled
from sourcefinder.services.logger import log_event, logger
from sourcefinder.tools.exa_search import ExaSearchClient
from sourcefinder.tools.search_provider import SearchClient, build_search_clients
from sourcefinder.tools.web_utils import extract_domain

TARGETED_RESULTS_PER_PROVIDER = 10


async def _no_results() -> list[RawResult]:
    return []


def _provider_results(provider: str, outcome: Settled[list[RawResult]]) -> list[RawResult]:
    if not outcome.ok:
        logger.warning(f"{provider} search failed: {outcome.error}")
        return []
    results = outcome.value_or([])
    logger.info(f"{provider} returned {len(results)} results")
    return results


class SearchOrchestrator:
    """Fans a query set out to the scored and unscored providers and merges the results."""

    def __init__(
        self,
        scored: ExaSearchClient | None,
        unscored: SearchClient | None,
        *,
        over_fetch_multiplier: float = 2.0,
        title_similarity_threshold: float = 0.85,
    ):
        if over_fetch_multiplier < 1.0:
            raise ValueError("over_fetch_multiplier must be >= 1.0")
        self.scored = scored
        self.unscored = unscored
        self.over_fetch_multiplier = over_fetch_multiplier
        self.title_similarity_threshold = title_similarity_threshold

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "SearchOrchestrator":
        config = config or settings
        clients = build_search_clients(config, http_client=http_client)
        return cls(
            clients.scored,
            clients.unscored,
            over_fetch_multiplier=config.search_over_fetch_multiplier,
            title_similarity_threshold=config.search_title_similarity_threshold,
        )

    def available_providers(self) -> list[SearchProvider]:
        providers: list[SearchProvider] = []
        if self.scored is not None and self.scored.is_available():
            providers.append(SearchProvider.EXA)
        if self.unscored is not None and self.unscored.is_available():
            providers.append(SearchProvider.PERPLEXITY)
        return providers

    async def _search_providers(
        self,
        *,
        scored_query: str,
        unscored_query: str | list[str],
        scored_count: int,
        unscored_count: int,
        category: str | None,
    ) -> tuple[list[RawResult], list[RawResult]]:
        scored_call: Awaitable[list[RawResult]] = (
            self.scored.search(scored_query, scored_count, category=category)
            if self.scored is not None
            else _no_results()
        )
        unscored_call: Awaitable[list[RawResult]] = (
            self.unscored.search(unscored_query, unscored_count)
            if self.unscored is not None
            else _no_results()
        )
        scored_outcome, unscored_outcome = await gather_settled(scored_call, unscored_call)
        return (
            _provider_results("exa", scored_outcome),
            _provider_results("perplexity", unscored_outcome),
        )

    def _apply_exclusions(
        self,
        merged: list,
        exclude_urls: list[str] | None,
        exclude_titles: list[str] | None,
    ) -> list:
        if exclude_urls:
            before = len(merged)
            merged = filter_existing_urls(merged, exclude_urls)
            log_event(
                "exclude_urls",
                f"Filtered {len(exclude_urls)} existing URLs",
                removed=before - len(merged),
                remaining=len(merged),
            )
        if exclude_titles:
            before = len(merged)
            merged = filter_similar_titles(merged, exclude_titles, self.title_similarity_threshold)
            log_event(
                "exclude_titles",
                f"Filtered {len(exclude_titles)} existing titles",
                removed=before - len(merged),
                remaining=len(merged),
            )
        return merged

    async def search_parallel(
        self,
        topic: str,
        document_type: DocumentType,
        instructions: str | None = None,
        num_results: int = 15,
        exclude_urls: list[str] | None = None,
        exclude_titles: list[str] | None = None,
        max_sources_per_domain: int = 2,
        enable_expansion: bool = True,
        *,
        rng: random.Random | None = None,
    ) -> list[ResearchSource]:
        """Search both providers for a topic and return merged, ranked sources.

        Both providers failing yields an empty list rather than an error. The
        merged batch is capped at ``num_results * 2``; trimming further is left
        to the caller.
        """
        if num_results <= 0:
            raise ValueError("num_results must be >= 1")
        if max_sources_per_domain <= 0:
            raise ValueError("max_sources_per_domain must be >= 1")

        if enable_expansion:
            queries = query_expansion.expand(topic, document_type, instructions, rng=rng)
        else:
            queries = [query_expansion.enhance_query_for_document_type(topic, document_type)]

        request_count = math.ceil(num_results * self.over_fetch_multiplier)
        log_event(
            "search_parallel_started",
            f"Searching for {num_results} sources",
            queries=queries,
            request_count=request_count,
            max_sources_per_domain=max_sources_per_domain,
        )

        scored_results, unscored_results = await self._search_providers(
            scored_query=queries[0],
            unscored_query=queries,
            scored_count=request_count,
            unscored_count=request_count,
            category=query_expansion.category_for_document_type(document_type),
        )

        merged = merge_results(
            scored_results,
            unscored_results,
            max_sources_per_domain=max_sources_per_domain,
            total_max_results=num_results * 2,
        )
        log_event(
            "results_merged",
            "Deduplicated and diversified provider results",
            raw_count=len(scored_results) + len(unscored_results),
            merged_count=len(merged),
        )

        merged = self._apply_exclusions(merged, exclude_urls, exclude_titles)
        sources = to_research_sources(merged)
        log_event(
            "search_parallel_completed",
            f"Final result: {len(sources)} sources",
            domains=list(dict.fromkeys(extract_domain(s.url) for s in sources))[:5],
        )
        return sources

    async def search_targeted(
        self,
        query: str,
        document_type: DocumentType,
        exclude_urls: list[str] | None = None,
        exclude_titles: list[str] | None = None,
        max_results: int = 4,
    ) -> list[ResearchSource]:
        """Search a single feedback-driven query and return at most ``max_results`` new sources."""
        if max_results <= 0:
            raise ValueError("max_results must be >= 1")

        enhanced_query = query_expansion.enhance_query_for_document_type(query, document_type)
        scored_results, unscored_results = await self._search_providers(
            scored_query=enhanced_query,
            unscored_query=enhanced_query,
            scored_count=TARGETED_RESULTS_PER_PROVIDER,
            unscored_count=TARGETED_RESULTS_PER_PROVIDER,
            category=query_expansion.category_for_document_type(document_type),
        )

        merged = merge_results(
            scored_results,
            unscored_results,
            max_sources_per_domain=2,
            total_max_results=max_results * 2,
        )
        merged = self._apply_exclusions(merged, exclude_urls, exclude_titles)
        return to_research_sources(merged[:max_results])
