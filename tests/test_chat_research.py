from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from sourcefinder.research_core.models.interfaces import RawResult, SearchProvider
from sourcefinder.services.chat_research import needs_research, research_chat_question


@pytest.mark.parametrize(
    ("question", "expected"),
    [
        ("What is the carbon footprint of concrete?", True),
        ("Tell me about the history of the printing press", True),
        ("hi there", False),
        ("thanks, that helps", False),
        ("Can you explain this paragraph?", False),
        ("rewrite the introduction with more evidence", False),
        ("history of the silk road", True),
        ("Should the conclusion mention tariffs as well?", True),
        ("Really?", False),
    ],
)
def test_needs_research(question, expected):
    assert needs_research(question) is expected


def _client(results) -> MagicMock:
    client = MagicMock()
    client.search = AsyncMock(return_value=results)
    return client


@pytest.mark.asyncio
async def test_research_chat_question_prefixes_topic_and_numbers_citations():
    results = [
        RawResult(id="1", title="One", url="https://www.one.com/a", snippet="s1", provider=SearchProvider.PERPLEXITY),
        RawResult(id="2", title="Two", url="https://two.org/b", snippet="s2", provider=SearchProvider.PERPLEXITY),
    ]
    client = _client(results)

    citations = await research_chat_question(client, "How do heat pumps work?", topic="Home energy")

    client.search.assert_awaited_once_with("Home energy: How do heat pumps work?", 5)
    assert [c.number for c in citations] == [1, 2]
    assert citations[0].hostname == "one.com"
    assert citations[1].snippet == "s2"


@pytest.mark.asyncio
async def test_research_chat_question_skips_topic_already_in_question():
    client = _client([])

    citations = await research_chat_question(client, "What drives solar adoption?", topic="solar")

    client.search.assert_awaited_once_with("What drives solar adoption?", 5)
    assert citations == []


@pytest.mark.asyncio
async def test_research_chat_question_returns_empty_when_provider_raises():
    client = MagicMock()
    client.search = AsyncMock(side_effect=RuntimeError("provider down"))

    citations = await research_chat_question(client, "What is ocean acidification?")

    assert citations == []
