from __future__ import annotations

from typing import Iterable

from sourcefinder.research_core.models.interfaces import (
    DocumentType,
    FeedbackAnalysis,
    ResearchSource,
    TargetedSearchResult,
)
from sourcefinder.services.logger import log_event, logger
from sourcefinder.services.search_orchestrator import SearchOrchestrator


def search_rationale(query: str, found: int) -> str:
    if found == 0:
        return f'Searched for "{query}" but found no additional unique sources.'
    if found == 1:
        return f'Found 1 relevant source addressing: "{query}"'
    return f'Found {found} sources to address: "{query}"'


class TargetedResearcher:
    """Runs feedback-driven searches one query at a time without resurfacing sources."""

    def __init__(self, orchestrator: SearchOrchestrator, *, max_results_per_query: int = 4):
        if max_results_per_query <= 0:
            raise ValueError("max_results_per_query must be >= 1")
        self.orchestrator = orchestrator
        self.max_results_per_query = max_results_per_query

    async def conduct_targeted_research(
        self,
        queries: list[str],
        document_type: DocumentType,
        existing_urls: Iterable[str],
        existing_titles: Iterable[str] = (),
    ) -> list[TargetedSearchResult]:
        """Search each query in order, excluding everything found so far.

        Queries run sequentially to stay within provider rate limits. URLs and
        titles found for one query are excluded from every later query, and a
        failing query is recorded in its rationale without stopping the rest.
        """
        excluded_urls = list(existing_urls)
        excluded_titles = list(existing_titles)
        results: list[TargetedSearchResult] = []

        for query in queries:
            try:
                sources = await self.orchestrator.search_targeted(
                    query,
                    document_type,
                    exclude_urls=excluded_urls,
                    exclude_titles=excluded_titles,
                    max_results=self.max_results_per_query,
                )
            except Exception as exc:
                logger.error(f'Targeted search failed for query "{query}": {exc}')
                results.append(
                    TargetedSearchResult(query=query, sources=[], rationale=f"Search failed: {exc}")
                )
                continue

            excluded_urls.extend(source.url for source in sources)
            excluded_titles.extend(source.title for source in sources)
            results.append(
                TargetedSearchResult(
                    query=query,
                    sources=sources,
                    rationale=search_rationale(query, len(sources)),
                )
            )
            log_event(
                "targeted_search",
                f'Targeted search for "{query}"',
                found=len(sources),
                excluded_urls=len(excluded_urls),
            )

        return results

    async def research_for_feedback(
        self,
        analysis: FeedbackAnalysis,
        document_type: DocumentType,
        existing_sources: list[ResearchSource],
    ) -> tuple[list[TargetedSearchResult], list[ResearchSource]]:
        """Run targeted research when the analysis asks for new sources.

        Returns the per-query results and the new sources flattened in query order.
        """
        if not analysis.requires_new_sources or not analysis.search_queries:
            logger.info("No new sources needed")
            return [], []

        results = await self.conduct_targeted_research(
            analysis.search_queries,
            document_type,
            [source.url for source in existing_sources],
            [source.title for source in existing_sources],
        )
        new_sources = [source for result in results for source in result.sources]
        logger.info(f"Found {len(new_sources)} new sources")
        return results, new_sources
