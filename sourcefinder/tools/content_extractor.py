from __future__ import annotations

import asyncio
import re
from io import BytesIO

import httpx
from bs4 import BeautifulSoup

from sourcefinder.research_core.models.interfaces import ExtractionResult

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SourceFinderBot/1.0)"
EXCERPT_WORDS = 200
SENTENCE_SNAP_RATIO = 0.8


def _normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate_to_words(text: str, max_words: int) -> str:
    """Cut text to ``max_words`` words.

    Ends at the last sentence terminator when it falls in the final 20% of the
    cut text, otherwise hard-cuts and appends an ellipsis.
    """
    words = text.split()
    if len(words) <= max_words:
        return text

    truncated = " ".join(words[:max_words])
    last_sentence = max(truncated.rfind("."), truncated.rfind("!"), truncated.rfind("?"))
    if last_sentence > len(truncated) * SENTENCE_SNAP_RATIO:
        return truncated[: last_sentence + 1]
    return truncated + "..."


def count_words(text: str) -> int:
    return len(text.split())


def _extract_author(raw_html: str) -> str | None:
    soup = BeautifulSoup(raw_html, "html.parser")
    for attrs in ({"name": "author"}, {"property": "article:author"}):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return str(tag["content"]).strip() or None
    return None


def _extract_with_readability(raw_html: str) -> tuple[str, str]:
    """Return (title, main-content html) using readability."""
    from readability import Document

    try:
        doc = Document(raw_html)
        return doc.short_title() or "", doc.summary(html_partial=True)
    except Exception:
        return "", ""


def _html_to_markdown(content_html: str) -> str:
    from markitdown import MarkItDown

    try:
        result = MarkItDown().convert_stream(BytesIO(content_html.encode("utf-8")), file_extension=".html")
    except Exception:
        return ""
    text_content = getattr(result, "text_content", "")
    if not isinstance(text_content, str):
        return ""
    # Drop images and inline link targets; keep link text.
    text_content = re.sub(r"!\[[^\]]*\]\([^)]*\)", "", text_content)
    text_content = re.sub(r"\[([^\]]+)\]\((?:https?:)?//[^)]+\)", r"\1", text_content)
    return _normalize_text(text_content)


def _extract_with_trafilatura(raw_html: str) -> str:
    import trafilatura

    extracted = trafilatura.extract(raw_html, output_format="txt")
    return _normalize_text(extracted) if isinstance(extracted, str) else ""


def extract_main_content(raw_html: str) -> tuple[str, str, str]:
    """Return (title, text, method) for the main content of an HTML page."""
    title, content_html = _extract_with_readability(raw_html)
    if content_html:
        markdown = _html_to_markdown(content_html)
        if markdown:
            return title, markdown, "readability"
        soup = BeautifulSoup(content_html, "html.parser")
        plain = _normalize_text(soup.get_text("\n"))
        if plain:
            return title, plain, "readability_text"

    fallback = _extract_with_trafilatura(raw_html)
    if fallback:
        return title, fallback, "trafilatura"
    return title, "", "none"


async def _fetch_html(
    url: str,
    *,
    timeout: float,
    user_agent: str,
    http_client: httpx.AsyncClient | None,
) -> str:
    headers = {"User-Agent": user_agent}
    if http_client is not None:
        response = await http_client.get(url, headers=headers, timeout=timeout)
    else:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url, headers=headers)
    response.raise_for_status()
    return response.text


def _build_result(url: str, raw_html: str, max_words: int) -> ExtractionResult:
    title, text, method = extract_main_content(raw_html)
    if not text:
        return ExtractionResult(url=url, success=False, title=title, method=method, error="Failed to extract content")

    content = truncate_to_words(text, max_words)
    return ExtractionResult(
        url=url,
        success=True,
        content=content,
        title=title,
        author=_extract_author(raw_html),
        word_count=count_words(content),
        excerpt=truncate_to_words(text, EXCERPT_WORDS),
        method=method,
    )


async def extract_article_content(
    url: str,
    *,
    max_words: int = 500,
    timeout: float = 8.0,
    user_agent: str = DEFAULT_USER_AGENT,
    http_client: httpx.AsyncClient | None = None,
) -> ExtractionResult:
    """Fetch a page and return its main content as markdown, truncated to ``max_words``.

    Failures come back as ``success=False`` with an error message; the whole
    fetch-and-parse is bounded by ``timeout`` seconds.
    """

    async def _run() -> ExtractionResult:
        raw_html = await _fetch_html(url, timeout=timeout, user_agent=user_agent, http_client=http_client)
        return await asyncio.to_thread(_build_result, url, raw_html, max_words)

    try:
        return await asyncio.wait_for(_run(), timeout=timeout)
    except asyncio.TimeoutError:
        return ExtractionResult(url=url, success=False, error=f"Timed out after {timeout:g}s")
    except httpx.HTTPError as exc:
        return ExtractionResult(url=url, success=False, error=str(exc) or exc.__class__.__name__)
