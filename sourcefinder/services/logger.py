"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from sourcefinder.config import settings

# Remove default handler
logger.remove()

# Add console handler with color
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

if settings.log_to_file:
    LOG_DIR = Path(settings.log_dir)
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    logger.add(
        LOG_DIR / "sourcefinder_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",  # New file at midnight
        retention="7 days",
        compression="zip",
    )

# Reduce noise from network and extraction libraries
for logger_name in (
    "httpx",
    "httpcore",
    "hpack",
    "asyncio",
    "trafilatura",
    "readability",
    "readability.readability",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def log_search_call(
    provider: str,
    query: str | list[str],
    results_count: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log a search provider call."""
    call_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "provider": provider,
        "query": query,
        "results_count": results_count,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"SEARCH_CALL_FAILED: {call_data}")
    else:
        logger.info(f"SEARCH_CALL: {call_data}")


def log_fetch(
    url: str,
    success: bool,
    attempts: int = 1,
    duration_ms: int = 0,
    error: Optional[str] = None,
) -> None:
    """Log a content fetch."""
    fetch_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "url": url,
        "success": success,
        "attempts": attempts,
        "duration_ms": duration_ms,
        "error": error,
    }
    if success:
        logger.info(f"CONTENT_FETCH: {fetch_data}")
    else:
        logger.warning(f"CONTENT_FETCH_FAILED: {fetch_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
