"""Shared URL utilities: normalize domains and check page-type URL patterns."""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def normalize_domain(url_or_host: str) -> str:
    """Canonical host for a URL or bare hostname (lowercased, ``www.`` stripped)."""
    candidate = url_or_host.strip()
    if "://" not in candidate:
        candidate = f"http://{candidate}"
    host = (urlparse(candidate).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def domain_slug(url_or_host: str) -> str:
    """Filesystem/identifier-safe form of the domain (``airbnb.com`` -> ``airbnb_com``)."""
    return re.sub(r"[^a-z0-9]+", "_", normalize_domain(url_or_host)).strip("_")


def default_page_type(url: str) -> str:
    return f"{domain_slug(url)}_main"


def url_matches_pattern(url: str, pattern: str | None) -> bool:
    """Check a URL against a page-type pattern.

    The pattern is tried against the path (plus query) first, so ``^/search``
    works, then against the full URL. An invalid pattern matches everything.
    """
    if not pattern:
        return True
    parsed = urlparse(url)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    try:
        return bool(re.search(pattern, path) or re.search(pattern, url))
    except re.error as e:
        logger.warning("Invalid URL pattern %r: %s", pattern, e)
        return True
