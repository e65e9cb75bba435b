from __future__ import annotations

import re
from urllib.parse import urlparse

_SCHEME_RE = re.compile(r"^https?://")


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def normalize_url(url: str) -> str:
    """Comparison key for a URL: lowercase, no scheme, no leading www., no trailing slash."""
    key = url.strip().lower()
    key = _SCHEME_RE.sub("", key)
    if key.startswith("www."):
        key = key[4:]
    if key.endswith("/"):
        key = key[:-1]
    return key


def extract_domain(url: str) -> str:
    """Hostname without a leading www., or "unknown" when the URL has none."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return "unknown"
    if host.startswith("www."):
        host = host[4:]
    return host or "unknown"
