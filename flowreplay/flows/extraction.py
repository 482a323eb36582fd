"""Normalization of extracted element data.

Adapters return raw text, values or outer markup; the transforms here turn
that into what an extract step reports. Markup transforms use BeautifulSoup:

- clean_outer_html: drop embedded image data, pretty-print
- simplify_structure: remove non-content tags, keep structural attributes,
  collapse redundant containers
- simplify_markup: same passes with a minimal attribute allow-list, no
  comments or empty elements, compact output
"""

import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from ..errors import ExtractionError
from .models import ExtractProp

NON_CONTENT_TAGS = (
    "script", "style", "noscript", "iframe", "frame", "embed", "object",
    "svg", "canvas", "template", "link", "meta", "base", "head",
)
GENERIC_CONTAINERS = ("div", "span")
VOID_TAGS = ("area", "br", "col", "hr", "img", "input", "source", "track", "wbr")

STRUCTURE_ATTRIBUTES = frozenset({
    "id", "href", "src", "alt", "title", "name", "type", "value", "placeholder",
    "role", "aria-label", "for", "colspan", "rowspan", "action", "method", "label",
})
SIMPLIFIED_ATTRIBUTES = frozenset({"href", "src", "alt", "aria-label", "role"})

_WHITESPACE = re.compile(r"\s+")


def clean_outer_html(html: str) -> str:
    """Outer markup with inline image data removed, pretty-printed."""
    soup = BeautifulSoup(html, "html.parser")
    for img in soup.find_all("img"):
        src = img.get("src") or ""
        if src.startswith("data:image"):
            del img["src"]
            img["data-image-removed"] = "true"
    return soup.prettify().strip()


def _has_own_text(tag: Tag) -> bool:
    return any(
        isinstance(child, NavigableString) and not isinstance(child, Comment) and child.strip()
        for child in tag.children
    )


def _element_children(tag: Tag) -> list[Tag]:
    return [child for child in tag.children if isinstance(child, Tag)]


def _collapse_container(tag: Tag) -> None:
    if tag.attrs:
        return
    children = _element_children(tag)
    has_text = _has_own_text(tag)
    if not children and not has_text:
        tag.decompose()
    elif tag.name == "span":
        tag.unwrap()
    elif len(children) == 1 and not has_text:
        tag.replace_with(children[0].extract())


def _simplify(html: str, allowed: frozenset, minimal: bool) -> BeautifulSoup:
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()

    if minimal:
        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()

    for tag in soup.find_all(True):
        tag.attrs = {name: value for name, value in tag.attrs.items() if name in allowed}

    # Reverse document order visits descendants before their ancestors
    for tag in reversed(soup.find_all(True)):
        if tag.name in GENERIC_CONTAINERS:
            _collapse_container(tag)
        elif minimal and tag.name not in VOID_TAGS and not tag.attrs:
            if not _element_children(tag) and not _has_own_text(tag):
                tag.decompose()

    if minimal:
        for text in soup.find_all(string=True):
            if isinstance(text, Comment):
                continue
            collapsed = _WHITESPACE.sub(" ", str(text))
            if collapsed.strip():
                text.replace_with(collapsed)
            else:
                text.extract()
    return soup


def simplify_structure(html: str) -> str:
    """Near-semantic markup keeping structural attributes."""
    return _simplify(html, STRUCTURE_ATTRIBUTES, minimal=False).prettify().strip()


def simplify_markup(html: str) -> str:
    """Compact markup with a minimal attribute set."""
    return str(_simplify(html, SIMPLIFIED_ATTRIBUTES, minimal=True)).strip()


def source_property(prop: ExtractProp) -> str:
    """Element property the adapter must read for an extraction mode."""
    if prop in (ExtractProp.INNER_TEXT, ExtractProp.VALUE):
        return prop.value
    return "outerHTML"


def transform_extracted(raw: str, prop: ExtractProp) -> str:
    """Turn the raw property value into the extracted result."""
    try:
        if prop == ExtractProp.INNER_TEXT:
            return raw.strip()
        if prop == ExtractProp.VALUE:
            return raw
        if prop == ExtractProp.OUTER_HTML:
            return clean_outer_html(raw)
        if prop == ExtractProp.STRUCTURE:
            return simplify_structure(raw)
        return simplify_markup(raw)
    except Exception as e:
        raise ExtractionError(f"Failed to extract {prop.value}: {e}", prop=prop.value) from e
