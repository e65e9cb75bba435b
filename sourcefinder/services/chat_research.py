"""Decide whether a chat question needs web research, and run it."""

from __future__ import annotations

import re

from sourcefinder.research_core.models.interfaces import ChatCitation
from sourcefinder.services.logger import logger
from sourcefinder.tools.search_provider import SearchClient
from sourcefinder.tools.web_utils import extract_domain

CHAT_MAX_RESULTS = 5

RESEARCH_TRIGGERS = (
    # Question starters
    "what is",
    "what are",
    "who is",
    "who are",
    "when did",
    "when was",
    "where is",
    "where are",
    "why is",
    "why are",
    "how does",
    "how do",
    "how is",
    "how are",
    "explain",
    "describe",
    "define",
    "tell me about",
    "what does",
    # Research-related
    "research",
    "study",
    "studies",
    "evidence",
    "statistics",
    "data",
    "findings",
    "according to",
    "source",
    "reference",
    "cite",
    "citation",
    # Information seeking
    "information about",
    "details about",
    "facts about",
    "background on",
    "history of",
    "overview of",
    "examples of",
    "types of",
    "benefits of",
    "advantages of",
    "disadvantages of",
    "pros and cons",
    "comparison",
    "difference between",
)

SKIP_RESEARCH_PATTERNS = (
    # Greetings
    re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening)\b"),
    # Acknowledgments
    re.compile(r"^(thanks|thank you|ok|okay|got it|understood|sure|yes|no)\b"),
    # Editing requests
    re.compile(r"^(edit|change|modify|update|fix|correct|replace|remove|delete|add to|insert)\b"),
    # Formatting requests
    re.compile(r"^(format|reformat|make it|rewrite|rephrase|shorten|lengthen|summarize this|expand this)\b"),
    # Clarifications about the document
    re.compile(r"^(what do you mean|can you clarify|i meant|i mean|actually|wait)\b"),
    # Questions about the assistant
    re.compile(r"^(can you|are you able|do you|will you|could you help)\b"),
)

MIN_QUESTION_LENGTH = 20


def needs_research(question: str) -> bool:
    lowered = question.lower().strip()
    if any(pattern.search(lowered) for pattern in SKIP_RESEARCH_PATTERNS):
        return False
    if any(trigger in lowered for trigger in RESEARCH_TRIGGERS):
        return True
    return question.strip().endswith("?") and len(question) > MIN_QUESTION_LENGTH


async def research_chat_question(
    client: SearchClient,
    question: str,
    topic: str | None = None,
) -> list[ChatCitation]:
    """Search for a chat question and number the hits as citations."""
    search_query = question
    if topic and topic.lower() not in question.lower():
        search_query = f"{topic}: {question}"

    try:
        results = await client.search(search_query, CHAT_MAX_RESULTS)
    except Exception as exc:
        logger.error(f"Chat research search failed: {exc}")
        return []

    if not results:
        logger.info("No research results found for chat question")
        return []

    citations = [
        ChatCitation(
            number=index,
            title=result.title,
            url=result.url,
            snippet=result.snippet,
            hostname=extract_domain(result.url),
        )
        for index, result in enumerate(results, start=1)
    ]
    logger.info(f"Found {len(citations)} citations for chat")
    return citations
