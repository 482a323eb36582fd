"""URL comparison helpers used to decide whether navigation is needed."""

from typing import Optional
from urllib.parse import urlparse

BLANK_PAGE_PREFIXES = ("about:", "chrome://newtab", "chrome://new-tab-page", "edge://newtab")


def _split(url: str) -> Optional[tuple[str, str, str]]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return parsed.scheme.lower(), parsed.netloc.lower(), parsed.path or "/"


def normalize_url(url: str) -> str:
    """Reduce a URL to scheme, host and path.

    Query strings and fragments are dropped. Unparsable input is returned
    unchanged.
    """
    parts = _split(url)
    if parts is None:
        return url
    scheme, netloc, path = parts
    return f"{scheme}://{netloc}{path}"


def should_navigate(current_url: str, target_url: str) -> bool:
    """Whether moving from current_url to target_url changes the page.

    Returns False if either URL cannot be parsed.
    """
    current = _split(current_url)
    target = _split(target_url)
    if current is None or target is None:
        return False
    return current != target


def is_same_origin(url_a: str, url_b: str) -> bool:
    a = _split(url_a)
    b = _split(url_b)
    if a is None or b is None:
        return False
    return a[:2] == b[:2]


def is_blank_page(url: Optional[str]) -> bool:
    """True for the initial page a fresh browser or tab starts on."""
    if not url:
        return True
    return url.strip().lower().startswith(BLANK_PAGE_PREFIXES)
