"""Locator generation.

Turns a concrete element into a tiered, multi-candidate Locator:

1. Identity attributes: test-id, non-generated id, name, aria-label
2. Semantic attributes: placeholder, title, image alt
3. Structure: stable classes, positional path (always present)
4. Form fields: owning form plus field position, as a last fallback

Metadata is filled from every tier regardless of which selectors were
produced, and is what the resolver scores candidates against.
"""

from typing import Optional

import structlog
from bs4 import BeautifulSoup, Tag

from .dom import (
    FORM_FIELD_TAGS,
    TEST_ID_ATTRIBUTES,
    class_selector,
    css_escape,
    find_form_context,
    find_label_text,
    get_attr,
    infer_role,
    is_hash_like,
    quote_attr,
    structural_selector,
    visible_text,
)
from .models import Locator, LocatorMetadata

logger = structlog.get_logger(__name__)


class LocatorGenerator:
    """Builds Locators from BeautifulSoup elements.

    Generation is deterministic for a fixed tree and never raises for an
    element attached to a document: the structural selector is always
    computable.
    """

    def generate(self, element: Tag) -> Locator:
        selectors = []
        selectors.extend(self._identity_selectors(element))
        selectors.extend(self._semantic_selectors(element))

        by_class = class_selector(element)
        if by_class:
            selectors.append(by_class)
        selectors.append(structural_selector(element))

        metadata = self._metadata(element)
        if metadata.form_context is not None:
            selectors.append(metadata.form_context.field_selector())

        unique = list(dict.fromkeys(s for s in selectors if s))
        locator = Locator(primary=unique[0], fallbacks=unique[1:], metadata=metadata)
        logger.debug(
            "Generated locator",
            tag=element.name,
            primary=locator.primary,
            fallback_count=len(locator.fallbacks),
        )
        return locator

    def _identity_selectors(self, el: Tag) -> list[str]:
        selectors = []
        test_id = self._test_id(el)
        if test_id is not None:
            attr, value = test_id
            selectors.append(f"[{attr}={quote_attr(value)}]")

        element_id = get_attr(el, "id")
        if element_id and not is_hash_like(element_id):
            selectors.append(f"#{css_escape(element_id)}")

        name = get_attr(el, "name")
        if name:
            selectors.append(f"{el.name}[name={quote_attr(name)}]")

        aria_label = get_attr(el, "aria-label")
        if aria_label:
            selectors.append(f"[aria-label={quote_attr(aria_label)}]")
        return selectors

    def _semantic_selectors(self, el: Tag) -> list[str]:
        selectors = []
        for attr in ("placeholder", "title"):
            value = get_attr(el, attr)
            if value:
                selectors.append(f"{el.name}[{attr}={quote_attr(value)}]")
        if el.name == "img":
            alt = get_attr(el, "alt")
            if alt:
                selectors.append(f"img[alt={quote_attr(alt)}]")
        return selectors

    def _test_id(self, el: Tag) -> Optional[tuple[str, str]]:
        for attr in TEST_ID_ATTRIBUTES:
            value = get_attr(el, attr)
            if value:
                return attr, value
        return None

    def _metadata(self, el: Tag) -> LocatorMetadata:
        attributes = {name: get_attr(el, name) for name in ("role", "type")}
        test_id = self._test_id(el)
        is_field = el.name in FORM_FIELD_TAGS
        facts = {
            "text": visible_text(el) or None,
            "role": infer_role(el.name, attributes),
            "tag_name": el.name,
            "test_id": test_id[1] if test_id else None,
            "aria_label": get_attr(el, "aria-label") or None,
            "placeholder": get_attr(el, "placeholder") or None,
            "title": get_attr(el, "title") or None,
            "label_text": find_label_text(el) if is_field else None,
            "form_context": find_form_context(el) if is_field else None,
        }
        # Absent facts stay unset so they are not serialized as nulls
        return LocatorMetadata(**{name: value for name, value in facts.items() if value is not None})


_default_generator = LocatorGenerator()


def generate_locator(element: Tag) -> Locator:
    """Generate a Locator for an element of a parsed document."""
    return _default_generator.generate(element)


def generate_from_snapshot(html: str, path: str) -> Locator:
    """Generate a Locator from serialized page markup and an element's DOM path.

    Remote backends serialize the live document and report the element's
    absolute path, so generation runs on the same code as in-page.
    """
    soup = BeautifulSoup(html, "html.parser")
    element = soup.select_one(path)
    if element is None:
        raise ValueError(f"No element at path {path!r} in snapshot")
    return generate_locator(element)
