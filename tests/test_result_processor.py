from __future__ import annotations

import pytest

from sourcefinder.research_core import result_processor
from sourcefinder.research_core.models.interfaces import RawResult, SearchProvider


def _exa(url: str, score: float | None = None, title: str = "t", rid: str | None = None) -> RawResult:
    return RawResult(
        id=rid or f"exa-{url}",
        title=title,
        url=url,
        snippet="snippet",
        score=score,
        provider=SearchProvider.EXA,
    )


def _pplx(url: str, title: str = "t") -> RawResult:
    return RawResult(id=f"pplx-{url}", title=title, url=url, snippet="snippet", provider=SearchProvider.PERPLEXITY)


def test_normalize_url_strips_scheme_www_and_trailing_slash():
    from sourcefinder.tools.web_utils import normalize_url

    assert normalize_url("HTTPS://www.Example.com/Path/") == "example.com/path"
    assert normalize_url("http://a.com/1") == normalize_url("https://www.a.com/1/")


def test_deduplicate_keeps_first_seen_and_is_idempotent():
    results = [
        _exa("http://a.com/1", 0.9, rid="first"),
        _exa("https://www.a.com/1/", 0.5, rid="second"),
        _pplx("http://b.com/2"),
    ]
    once = result_processor.deduplicate_by_url(results)
    twice = result_processor.deduplicate_by_url(once)

    assert [r.id for r in once] == ["first", "pplx-http://b.com/2"]
    assert twice == once


def test_normalize_scores_is_per_provider_and_bounded():
    results = [
        _exa("https://a.com/1", 12.0),
        _exa("https://a.com/2", 4.0),
        _exa("https://a.com/3", None),
        *[_pplx(f"https://p.com/{i}") for i in range(30)],
    ]
    normalized = result_processor.normalize_scores(results)

    assert all(0.0 <= r.score <= 1.0 for r in normalized)
    by_url = {r.url: r.score for r in normalized}
    assert by_url["https://a.com/1"] == 1.0
    assert by_url["https://a.com/2"] == 0.0
    assert by_url["https://a.com/3"] == 0.5
    assert by_url["https://p.com/0"] == 1.0
    assert by_url["https://p.com/2"] == pytest.approx(0.9)
    assert by_url["https://p.com/29"] == 0.0


def test_basic_merge_dedupes_across_scheme_and_www_variants():
    exa_results = [_exa("http://a.com/1", 0.9, rid="keep"), _exa("https://www.a.com/1/", 0.5, rid="drop")]
    perplexity_results = [_pplx("http://b.com/2")]

    merged = result_processor.merge_results(exa_results, perplexity_results)

    assert len(merged) == 2
    assert {r.id for r in merged} == {"keep", "pplx-http://b.com/2"}


def test_domain_cap_keeps_two_highest_scored():
    results = [_exa(f"https://example.com/{i}", score) for i, score in enumerate([0.1, 0.9, 0.4, 0.8, 0.2])]

    diverse = result_processor.enforce_domain_diversity(results, max_per_domain=2)

    assert [r.url for r in diverse] == ["https://example.com/1", "https://example.com/3"]


def test_merge_respects_domain_cap_and_total_limit():
    exa_results = [_exa(f"https://site{i % 3}.com/{i}", 1.0 - i * 0.01) for i in range(20)]
    perplexity_results = [_pplx(f"https://www.site{i % 4}.org/{i}") for i in range(20)]

    merged = result_processor.merge_results(
        exa_results,
        perplexity_results,
        max_sources_per_domain=2,
        total_max_results=10,
    )

    assert len(merged) <= 10
    counts: dict[str, int] = {}
    for r in merged:
        domain = result_processor.extract_domain(r.url)
        counts[domain] = counts.get(domain, 0) + 1
    assert max(counts.values()) <= 2
    assert [r.score for r in merged] == sorted((r.score for r in merged), reverse=True)


def test_enforce_domain_diversity_rejects_non_positive_cap():
    with pytest.raises(ValueError):
        result_processor.enforce_domain_diversity([], max_per_domain=0)


def test_filter_existing_urls_uses_normalized_form():
    results = [_pplx("https://www.news.com/story/"), _pplx("https://news.com/other")]

    kept = result_processor.filter_existing_urls(results, ["http://news.com/story"])

    assert [r.url for r in kept] == ["https://news.com/other"]


def test_filter_similar_titles_catches_case_and_whitespace_variants():
    results = [
        _pplx("https://x.com/1", title="The Future Of Solar Energy "),
        _pplx("https://x.com/2", title="Wind Power Economics"),
    ]

    kept = result_processor.filter_similar_titles(results, ["The Future of Solar Energy"], threshold=0.85)

    assert [r.title for r in kept] == ["Wind Power Economics"]


def test_title_similarity_handles_empty_titles():
    assert result_processor.title_similarity("", "") == 0.0
    assert result_processor.title_similarity("a b", "a c") == pytest.approx(1 / 3)


def test_to_research_source_sets_provider_domain_and_selected():
    raw = RawResult(
        id="r1",
        title="Title",
        url="https://www.journal.org/paper",
        snippet="Excerpt",
        date="2024-01-01",
        author="Jane Doe",
        score=0.7,
        provider=SearchProvider.EXA,
    )

    source = result_processor.to_research_source(raw)

    assert source.domain == "journal.org"
    assert source.provider == SearchProvider.EXA
    assert source.selected is True
    assert source.published_date == "2024-01-01"
    assert source.excerpt == "Excerpt"
