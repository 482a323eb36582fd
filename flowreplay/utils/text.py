"""Text helpers shared by the generator, resolver and recorder-side models."""

import re

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize_text(text: str) -> str:
    """Case- and space-insensitive form used for fuzzy text matching."""
    return collapse_whitespace(text).lower()


def truncate(text: str, limit: int) -> str:
    return text[:limit] if len(text) > limit else text


def mask_text(value: str) -> str:
    """Mask a typed value for display, preserving its length."""
    return "*" * len(value or "")
