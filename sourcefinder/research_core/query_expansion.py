"""Search query expansion for broader, more varied source coverage."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Callable

from sourcefinder.research_core.models.interfaces import DocumentType

DOCUMENT_TYPE_PREFIXES: dict[DocumentType, list[str]] = {
    DocumentType.RESEARCH_PAPER: [
        "academic research",
        "peer-reviewed study",
        "scientific literature",
    ],
    DocumentType.ESSAY: [
        "analysis",
        "critical examination",
        "discussion",
    ],
    DocumentType.REPORT: [
        "comprehensive report",
        "industry analysis",
        "detailed findings",
    ],
}
DEFAULT_PREFIXES = ["research"]

PERSPECTIVE_SUFFIXES = [
    "history and development",
    "current applications",
    "challenges and limitations",
    "future trends",
    "case studies",
    "key researchers and contributors",
    "methodology approaches",
    "comparative analysis",
]

ACADEMIC_FRAMING_WORDS = ("research", "academic", "study", "analysis")

GEOGRAPHY_TERMS = (
    "US",
    "USA",
    "United States",
    "UK",
    "Europe",
    "Asia",
    "China",
    "India",
    "Japan",
    "Germany",
    "France",
    "Canada",
    "Australia",
)

MAX_KEY_PHRASES = 5
MIN_PHRASE_LENGTH = 4
MAX_PHRASE_LENGTH = 50


@dataclass(frozen=True, slots=True)
class PhraseRule:
    name: str
    pattern: re.Pattern[str]
    lowercase_input: bool = True
    transform: Callable[[str], str] = str.strip


def _clause(verb: str) -> re.Pattern[str]:
    return re.compile(verb + r"\s+([^,.;]+)", re.IGNORECASE)


# Evaluated in order; earlier rules win the limited phrase slots.
PHRASE_RULES: tuple[PhraseRule, ...] = (
    PhraseRule("years", re.compile(r"\b((?:19|20)\d{2}(?:\s*-\s*(?:19|20)\d{2})?)\b")),
    PhraseRule("focus_on", _clause(r"focus(?:ing)?\s+on")),
    PhraseRule("include", _clause(r"include")),
    PhraseRule("emphasize", _clause(r"emphasi[sz]e")),
    PhraseRule("concentrate_on", _clause(r"concentrat(?:e|ing)\s+on")),
    PhraseRule(
        "geography",
        re.compile(r"\b(" + "|".join(re.escape(term) for term in GEOGRAPHY_TERMS) + r")\b", re.IGNORECASE),
        transform=lambda match: match.strip().lower(),
    ),
    PhraseRule("quoted", re.compile(r'"([^"]+)"'), lowercase_input=False),
)


def primary_prefix(document_type: DocumentType) -> str:
    return DOCUMENT_TYPE_PREFIXES.get(document_type, DEFAULT_PREFIXES)[0]


def category_for_document_type(document_type: DocumentType) -> str | None:
    """Scored-search category hint for a document type."""
    if document_type == DocumentType.RESEARCH_PAPER:
        return "research paper"
    if document_type == DocumentType.REPORT:
        return "pdf"
    return None


def expand_search_queries(
    topic: str,
    document_type: DocumentType,
    variation_count: int = 3,
    *,
    rng: random.Random | None = None,
) -> tuple[str, list[str]]:
    """Return (primary query, variations) for a topic.

    Variations are the remaining document-type framings followed by a random
    sample of perspective suffixes, capped at ``variation_count``. Pass a seeded
    ``rng`` for reproducible output.
    """
    if variation_count < 0:
        raise ValueError("variation_count must be >= 0")

    topic = " ".join(topic.split())
    prefixes = DOCUMENT_TYPE_PREFIXES.get(document_type, DEFAULT_PREFIXES)
    primary = f"{prefixes[0]} {topic}"

    candidates = [f"{prefix} {topic}" for prefix in prefixes[1:]]
    sample_size = min(variation_count, len(PERSPECTIVE_SUFFIXES))
    for suffix in (rng or random).sample(PERSPECTIVE_SUFFIXES, sample_size):
        candidates.append(f"{topic} {suffix}")

    variations: list[str] = []
    seen = {primary.lower()}
    for query in candidates:
        key = query.lower()
        if key in seen:
            continue
        seen.add(key)
        variations.append(query)
        if len(variations) >= variation_count:
            break
    return primary, variations


def get_all_queries(
    topic: str,
    document_type: DocumentType,
    variation_count: int = 3,
    *,
    rng: random.Random | None = None,
) -> list[str]:
    primary, variations = expand_search_queries(topic, document_type, variation_count, rng=rng)
    return [primary, *variations]


def enhance_query_for_document_type(query: str, document_type: DocumentType) -> str:
    """Prefix a query with document-type framing unless it already has academic framing."""
    lowered = query.lower()
    if any(word in lowered for word in ACADEMIC_FRAMING_WORDS):
        return query
    return f"{primary_prefix(document_type)} {query}"


def generate_targeted_queries(
    topic: str,
    aspects: list[str],
    document_type: DocumentType,
) -> list[str]:
    prefix = primary_prefix(document_type)
    return [f"{prefix} {topic} {aspect}" for aspect in aspects]


def extract_key_phrases(instructions: str | None) -> list[str]:
    """Pull up to five search-worthy phrases out of free-text instructions."""
    if not instructions or not instructions.strip():
        return []

    lowered = instructions.lower()
    phrases: list[str] = []
    for rule in PHRASE_RULES:
        text = lowered if rule.lowercase_input else instructions
        for match in rule.pattern.findall(text):
            phrases.append(rule.transform(match))

    unique = list(dict.fromkeys(phrases))
    return [
        phrase
        for phrase in unique
        if MIN_PHRASE_LENGTH <= len(phrase) <= MAX_PHRASE_LENGTH
    ][:MAX_KEY_PHRASES]


def enhance_queries_with_instructions(queries: list[str], instructions: str | None) -> list[str]:
    """Append the top key phrases to the first one or two queries in place of adding new ones."""
    key_phrases = extract_key_phrases(instructions)
    if not key_phrases or not queries:
        return list(queries)

    enhanced = list(queries)
    enhanced[0] = f"{enhanced[0]} {key_phrases[0]}"
    if len(key_phrases) > 1 and len(enhanced) > 1:
        enhanced[1] = f"{enhanced[1]} {key_phrases[1]}"
    return enhanced


def expand(
    topic: str,
    document_type: DocumentType,
    instructions: str | None = None,
    variation_count: int = 3,
    *,
    rng: random.Random | None = None,
) -> list[str]:
    """Primary query plus up to ``variation_count`` variations, enhanced with instruction phrases."""
    queries = get_all_queries(topic, document_type, variation_count, rng=rng)
    return enhance_queries_with_instructions(queries, instructions)
