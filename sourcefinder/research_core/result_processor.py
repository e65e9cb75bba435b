"""Deduplication, score normalization, domain diversity and merging of search results."""

from __future__ import annotations

from dataclasses import fields
from typing import Iterable, Sequence, TypeVar

from sourcefinder.research_core.models.interfaces import (
    NormalizedResult,
    RawResult,
    ResearchSource,
    SearchProvider,
)
from sourcefinder.tools.web_utils import extract_domain, normalize_url

ResultT = TypeVar("ResultT", bound=RawResult)

POSITION_DECAY = 0.05
MISSING_SCORE = 0.5


def deduplicate_by_url(results: Iterable[ResultT]) -> list[ResultT]:
    """Keep the first result seen for each normalized URL."""
    seen: set[str] = set()
    deduped: list[ResultT] = []
    for result in results:
        key = normalize_url(result.url)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(result)
    return deduped


def _normalized(result: RawResult, score: float) -> NormalizedResult:
    values = {f.name: getattr(result, f.name) for f in fields(RawResult)}
    values["score"] = max(0.0, min(score, 1.0))
    return NormalizedResult(**values)


def normalize_scores(results: Sequence[RawResult]) -> list[NormalizedResult]:
    """Rescale scores to 0..1 independently for each provider.

    Raw score scales differ between providers, so min-max scaling is applied
    per provider group. A group without any scores gets position-decay scores
    from its original ranking; within a scored group, unscored results get 0.5.
    Output is grouped by provider in order of first appearance.
    """
    by_provider: dict[SearchProvider, list[RawResult]] = {}
    for result in results:
        by_provider.setdefault(result.provider, []).append(result)

    normalized: list[NormalizedResult] = []
    for provider_results in by_provider.values():
        scores = [r.score for r in provider_results if r.score is not None]
        if not scores:
            for index, result in enumerate(provider_results):
                normalized.append(_normalized(result, 1.0 - index * POSITION_DECAY))
            continue

        max_score = max(scores)
        min_score = min(scores)
        score_range = (max_score - min_score) or 1.0
        for result in provider_results:
            if result.score is None:
                normalized.append(_normalized(result, MISSING_SCORE))
            else:
                normalized.append(_normalized(result, (result.score - min_score) / score_range))
    return normalized


def _score_key(result: RawResult) -> float:
    return result.score if result.score is not None else 0.0


def enforce_domain_diversity(results: Iterable[ResultT], max_per_domain: int = 2) -> list[ResultT]:
    """Cap results per domain, keeping the highest-scored ones.

    The pass runs over results sorted by score (stable), so the cap favors
    higher-scored items within a domain rather than rotating across domains.
    """
    if max_per_domain <= 0:
        raise ValueError("max_per_domain must be >= 1")

    domain_counts: dict[str, int] = {}
    diverse: list[ResultT] = []
    for result in sorted(results, key=_score_key, reverse=True):
        domain = extract_domain(result.url)
        count = domain_counts.get(domain, 0)
        if count >= max_per_domain:
            continue
        domain_counts[domain] = count + 1
        diverse.append(result)
    return diverse


def merge_results(
    scored_results: Sequence[RawResult],
    unscored_results: Sequence[RawResult],
    *,
    max_sources_per_domain: int = 2,
    total_max_results: int | None = 15,
) -> list[NormalizedResult]:
    """Concatenate, dedupe, normalize, rank and diversify two providers' results."""
    deduped = deduplicate_by_url([*scored_results, *unscored_results])
    normalized = normalize_scores(deduped)
    normalized.sort(key=_score_key, reverse=True)
    diverse = enforce_domain_diversity(normalized, max_sources_per_domain)
    if total_max_results is None:
        return diverse
    return diverse[:total_max_results]


def filter_existing_urls(results: Iterable[ResultT], existing_urls: Iterable[str]) -> list[ResultT]:
    existing = {normalize_url(url) for url in existing_urls}
    return [result for result in results if normalize_url(result.url) not in existing]


def title_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the two titles' lowercase word sets."""
    words_a = set(first.lower().split())
    words_b = set(second.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def filter_similar_titles(
    results: Iterable[ResultT],
    existing_titles: Sequence[str],
    threshold: float = 0.85,
) -> list[ResultT]:
    """Drop results whose title is at least ``threshold`` similar to any existing title."""
    return [
        result
        for result in results
        if not any(title_similarity(result.title, title) >= threshold for title in existing_titles)
    ]


def to_research_source(result: RawResult) -> ResearchSource:
    return ResearchSource(
        id=result.id,
        title=result.title,
        url=result.url,
        author=result.author,
        published_date=result.date,
        excerpt=result.snippet,
        score=result.score,
        selected=True,
        provider=result.provider,
        domain=extract_domain(result.url),
    )


def to_research_sources(results: Iterable[RawResult]) -> list[ResearchSource]:
    return [to_research_source(result) for result in results]
