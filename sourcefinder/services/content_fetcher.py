from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Iterable, Protocol

from sourcefinder.config import Settings, settings
from sourcefinder.research_core.models.interfaces import (
    ExtractionResult,
    FetchRequest,
    FetchResult,
    ResearchSource,
)
from sourcefinder.services.concurrency import RateLimiter
from sourcefinder.services.logger import log_fetch
from sourcefinder.tools import content_extractor


class Extractor(Protocol):
    def __call__(self, url: str, *, max_words: int, timeout: float) -> Awaitable[ExtractionResult]: ...


def backoff_delay(attempt: int, *, min_timeout: float, max_timeout: float, factor: float) -> float:
    """Delay before retry number ``attempt`` (1-based): min_timeout * factor**(attempt-1), capped."""
    return min(min_timeout * (factor ** (attempt - 1)), max_timeout)


class ContentFetcher:
    """Bounded-concurrency, rate-limited full-text fetcher with retries.

    Every request resolves to exactly one FetchResult; failures are reported
    in the result instead of raised.
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        *,
        rate_limit: int = 5,
        rate_interval: float = 1.0,
        retry_min_timeout: float = 0.1,
        retry_max_timeout: float = 2.0,
        backoff_factor: float = 5.0,
        user_agent: str = content_extractor.DEFAULT_USER_AGENT,
        extractor: Extractor | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self.retry_min_timeout = max(retry_min_timeout, 0.0)
        self.retry_max_timeout = max(retry_max_timeout, self.retry_min_timeout)
        self.backoff_factor = backoff_factor
        self.user_agent = user_agent
        self._extractor = extractor
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._rate_limiter = RateLimiter(rate_limit, rate_interval)

    @classmethod
    def from_settings(cls, config: Settings | None = None, **kwargs: Any) -> "ContentFetcher":
        config = config or settings
        return cls(
            config.fetch_max_concurrent,
            rate_limit=config.fetch_rate_limit,
            rate_interval=config.fetch_rate_interval_seconds,
            retry_min_timeout=config.fetch_retry_min_timeout_seconds,
            retry_max_timeout=config.fetch_retry_max_timeout_seconds,
            backoff_factor=config.fetch_retry_backoff_factor,
            user_agent=config.fetch_user_agent,
            **kwargs,
        )

    async def fetch_multiple(
        self,
        requests: Iterable[FetchRequest],
        *,
        retries: int = 2,
        max_words: int = 500,
        timeout_ms: int = 8000,
    ) -> list[FetchResult]:
        """Fetch all requests; results come back in request order, one per request."""
        if retries < 0:
            raise ValueError("retries must be >= 0")
        if max_words <= 0:
            raise ValueError("max_words must be >= 1")
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be >= 1")

        tasks = [
            self._fetch_queued(request, retries=retries, max_words=max_words, timeout=timeout_ms / 1000.0)
            for request in requests
        ]
        return list(await asyncio.gather(*tasks))

    async def enrich_sources(
        self,
        sources: Iterable[ResearchSource],
        *,
        retries: int = 2,
        max_words: int = 500,
        timeout_ms: int = 8000,
    ) -> dict[str, FetchResult]:
        """Fetch full text for the selected sources, keyed by source id."""
        requests = [
            FetchRequest(id=source.id, url=source.url, title=source.title)
            for source in sources
            if source.selected
        ]
        results = await self.fetch_multiple(requests, retries=retries, max_words=max_words, timeout_ms=timeout_ms)
        return {result.source_id: result for result in results}

    async def _fetch_queued(
        self,
        request: FetchRequest,
        *,
        retries: int,
        max_words: int,
        timeout: float,
    ) -> FetchResult:
        async with self._semaphore:
            await self._rate_limiter.wait()
            return await self._fetch_with_retry(request, retries=retries, max_words=max_words, timeout=timeout)

    async def _extract(self, url: str, *, max_words: int, timeout: float) -> ExtractionResult:
        if self._extractor is not None:
            return await self._extractor(url, max_words=max_words, timeout=timeout)
        return await content_extractor.extract_article_content(
            url,
            max_words=max_words,
            timeout=timeout,
            user_agent=self.user_agent,
        )

    async def _fetch_with_retry(
        self,
        request: FetchRequest,
        *,
        retries: int,
        max_words: int,
        timeout: float,
    ) -> FetchResult:
        started = time.monotonic()
        max_attempts = retries + 1
        last_error: str = "Extraction failed"

        for attempt in range(1, max_attempts + 1):
            try:
                extraction = await self._extract(request.url, max_words=max_words, timeout=timeout)
                if not extraction.success:
                    raise RuntimeError(extraction.error or "Extraction failed")
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                if attempt < max_attempts:
                    await self._sleep(
                        backoff_delay(
                            attempt,
                            min_timeout=self.retry_min_timeout,
                            max_timeout=self.retry_max_timeout,
                            factor=self.backoff_factor,
                        )
                    )
                continue

            duration_ms = int((time.monotonic() - started) * 1000)
            log_fetch(request.url, True, attempts=attempt, duration_ms=duration_ms)
            return FetchResult(
                source_id=request.id,
                url=request.url,
                success=True,
                content=extraction.content,
                word_count=extraction.word_count,
                fetch_duration_ms=duration_ms,
                attempts=attempt,
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        log_fetch(request.url, False, attempts=max_attempts, duration_ms=duration_ms, error=last_error)
        return FetchResult(
            source_id=request.id,
            url=request.url,
            success=False,
            error=last_error,
            fetch_duration_ms=duration_ms,
            attempts=max_attempts,
        )
