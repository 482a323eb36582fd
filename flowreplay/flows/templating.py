"""``{{name}}`` placeholder substitution for typed values."""

import re
from typing import Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def find_placeholders(text: str) -> list[str]:
    """Placeholder names in order of first appearance."""
    return list(dict.fromkeys(PLACEHOLDER_PATTERN.findall(text or "")))


def substitute_variables(text: str, variables: Optional[Mapping[str, object]] = None) -> str:
    """Replace ``{{name}}`` with its variable value.

    Missing variables become empty strings. None values likewise.

    Example:
        substitute_variables("Hello {{name}}", {"name": "Ada"}) -> "Hello Ada"
    """
    variables = variables or {}

    def replace_placeholder(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(replace_placeholder, text)
