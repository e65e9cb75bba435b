from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class DocumentType(str, Enum):
    REPORT = "REPORT"
    RESEARCH_PAPER = "RESEARCH_PAPER"
    ESSAY = "ESSAY"
    ASSIGNMENT = "ASSIGNMENT"


class SearchProvider(str, Enum):
    EXA = "exa"
    PERPLEXITY = "perplexity"


UI_DOCUMENT_TYPES: dict[str, DocumentType] = {
    "research-paper": DocumentType.RESEARCH_PAPER,
    "essay": DocumentType.ESSAY,
    "report": DocumentType.REPORT,
    "thesis": DocumentType.ASSIGNMENT,
    "assignment": DocumentType.ASSIGNMENT,
}


def map_ui_document_type(ui_type: str) -> DocumentType:
    """Map a kebab-case UI document type (e.g. "research-paper") to DocumentType."""
    mapped = UI_DOCUMENT_TYPES.get(ui_type.strip().lower())
    if mapped is None:
        raise ValueError(
            f'Invalid document type: "{ui_type}". '
            f"Valid types are: {', '.join(UI_DOCUMENT_TYPES)}"
        )
    return mapped


def map_document_type_to_ui(document_type: DocumentType) -> str:
    for ui_type, mapped in UI_DOCUMENT_TYPES.items():
        if mapped == document_type:
            return ui_type
    return "essay"


@dataclass
class RawResult:
    """A single search hit in the shape a provider client produces."""

    id: str
    title: str
    url: str
    snippet: str
    provider: SearchProvider
    date: str | None = None
    author: str | None = None
    score: float | None = None


@dataclass
class NormalizedResult(RawResult):
    """A search hit whose score is comparable across providers (0..1)."""

    score: float = 0.0


@dataclass(slots=True)
class ResearchSource:
    id: str
    title: str
    url: str
    excerpt: str
    provider: SearchProvider
    domain: str
    author: str | None = None
    published_date: str | None = None
    score: float | None = None
    selected: bool = True

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["provider"] = self.provider.value
        return payload

    def to_row(self, project_id: str, position: int) -> dict[str, Any]:
        """Shape used when persisting a source after the project's existing ones."""
        return {
            "project_id": project_id,
            "title": self.title,
            "url": self.url,
            "author": self.author,
            "published_date": self.published_date,
            "excerpt": self.excerpt,
            "full_content": None,
            "highlights": None,
            "source_type": "web",
            "relevance_score": self.score,
            "is_selected": self.selected,
            "position": position,
        }


@dataclass(slots=True)
class FetchRequest:
    id: str
    url: str
    title: str


@dataclass(slots=True)
class FetchResult:
    source_id: str
    url: str
    success: bool
    content: str | None = None
    word_count: int | None = None
    error: str | None = None
    fetch_duration_ms: int = 0
    attempts: int = 0


@dataclass(slots=True)
class ExtractionResult:
    url: str
    success: bool
    content: str = ""
    title: str = ""
    author: str | None = None
    word_count: int = 0
    excerpt: str = ""
    method: str = ""
    error: str | None = None


@dataclass(slots=True)
class TargetedSearchResult:
    query: str
    sources: list[ResearchSource] = field(default_factory=list)
    rationale: str = ""


@dataclass(slots=True)
class FeedbackAnalysis:
    """Structured feedback produced by the external classifier."""

    search_queries: list[str] = field(default_factory=list)
    requires_new_sources: bool = False
    intents: list[str] = field(default_factory=list)
    specific_requests: list[str] = field(default_factory=list)
    knowledge_gaps: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ChatCitation:
    number: int
    title: str
    url: str
    snippet: str
    hostname: str
