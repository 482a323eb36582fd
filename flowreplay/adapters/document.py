"""In-page execution context over a parsed document.

The document is a BeautifulSoup tree. Styles come from inline ``style``
attributes, the ``hidden`` attribute and tags that never render, which is
enough to replay flows against static markup and to exercise the resolver
without a browser. Events a real page would receive (click, input, change,
submit, keydown) are recorded in ``events``.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import urljoin

import soupsieve
from bs4 import BeautifulSoup, Tag

from ..config import ExecutionBackend
from ..errors import ActionError, NavigationError, ReplayTimeoutError
from ..locators.dom import (
    FORM_FIELD_TAGS,
    TEST_ID_ATTRIBUTES,
    dom_path,
    find_label_text,
    form_field_index,
    get_attr,
    parent_element,
    visible_text,
)
from ..locators.scoring import CandidateSnapshot
from ..utils.text import normalize_text
from ..utils.urls import normalize_url
from .base import BackendConfig, ExecutionContext, ReadProperty

SNAPSHOT_ATTRIBUTES = (
    "id", "name", "type", "role", "placeholder", "aria-label", "title", "alt", *TEST_ID_ATTRIBUTES,
)
NON_RENDERED_TAGS = ("head", "script", "style", "template", "noscript", "meta", "link", "title", "base")
SUBMIT_INPUT_TYPES = ("submit", "image")
TEXT_INPUT_TYPES = ("text", "search", "email", "password", "tel", "url", "number")
NAVIGATION_POLL_SECONDS = 0.05


@dataclass
class DispatchedEvent:
    """An event the context delivered to an element."""

    type: str
    target: str
    detail: dict = field(default_factory=dict)


def parse_document(markup: Union[str, BeautifulSoup]) -> BeautifulSoup:
    """Parse markup into a full document, wrapping fragments in html/body."""
    if isinstance(markup, BeautifulSoup):
        return markup
    soup = BeautifulSoup(markup, "html.parser")
    if soup.find("html") is None:
        soup = BeautifulSoup(f"<html><body>{markup}</body></html>", "html.parser")
    return soup


def inline_style(el: Tag) -> dict[str, str]:
    declarations = {}
    for part in (get_attr(el, "style") or "").split(";"):
        name, sep, value = part.partition(":")
        if sep:
            declarations[name.strip().lower()] = value.strip().lower()
    return declarations


def _inherited(el: Tag, prop: str, default: str) -> str:
    node: Optional[Tag] = el
    while node is not None:
        value = inline_style(node).get(prop)
        if value and value != "inherit":
            return value
        node = parent_element(node)
    return default


def _is_hidden_box(el: Tag) -> bool:
    return el.has_attr("hidden") or inline_style(el).get("display") == "none"


def _has_rect(el: Tag) -> bool:
    if el.name in NON_RENDERED_TAGS:
        return False
    if el.name == "input" and (get_attr(el, "type") or "").lower() == "hidden":
        return False
    node: Optional[Tag] = el
    while node is not None:
        if _is_hidden_box(node) or node.name in NON_RENDERED_TAGS:
            return False
        node = parent_element(node)
    return True


def _opacity(el: Tag) -> float:
    try:
        return float(inline_style(el).get("opacity", "1"))
    except ValueError:
        return 1.0


def _owning_form(el: Tag) -> Optional[Tag]:
    return el if el.name == "form" else el.find_parent("form")


def _is_submit_control(el: Tag) -> bool:
    kind = (get_attr(el, "type") or "").lower()
    if el.name == "button":
        return kind in ("", "submit")
    return el.name == "input" and kind in SUBMIT_INPUT_TYPES


class DocumentContext(ExecutionContext):
    """Execution context bound to one in-memory document.

    Args:
        html: Markup or an already parsed document
        url: URL the document is considered loaded from
        pages: Markup of other pages, keyed by URL, reachable by navigation
    """

    def __init__(
        self,
        html: Union[str, BeautifulSoup] = "",
        url: str = "about:blank",
        pages: Optional[dict[str, str]] = None,
        config: Optional[BackendConfig] = None,
    ):
        super().__init__(config or BackendConfig(backend=ExecutionBackend.DOCUMENT))
        self.url = url
        self.pages = dict(pages or {})
        self.events: list[DispatchedEvent] = []
        self.soup = parse_document(html)
        self._focused: Optional[Tag] = None
        self._unobserved_navigations = 0

    async def start(self) -> None:
        self.log.debug("Document context ready", url=self.url)

    async def stop(self) -> None:
        self._focused = None

    def load(self, html: Union[str, BeautifulSoup], url: Optional[str] = None) -> None:
        """Replace the current document, as a page re-render would."""
        self.soup = parse_document(html)
        self._focused = None
        if url is not None:
            self.url = url

    def snapshot(self, el: Tag, selector: Optional[str] = None, order: int = 0, index: int = 0) -> CandidateSnapshot:
        """Facts about one element of the document."""
        own = inline_style(el)
        return CandidateSnapshot(
            dom_path=dom_path(el),
            tag_name=el.name,
            selector=selector,
            selector_order=order,
            element_index=index,
            attributes={name: get_attr(el, name) for name in SNAPSHOT_ATTRIBUTES if el.has_attr(name)},
            label_text=find_label_text(el) if el.name in FORM_FIELD_TAGS else None,
            form_field_index=form_field_index(el),
            text=visible_text(el),
            display="none" if _is_hidden_box(el) else own.get("display", "block"),
            visibility=_inherited(el, "visibility", "visible"),
            opacity=_opacity(el),
            pointer_events=_inherited(el, "pointer-events", "auto"),
            has_rect=_has_rect(el),
            is_root=el.name == "html",
            disabled=el.has_attr("disabled"),
            handle=el,
        )

    def events_of(self, event_type: str) -> list[DispatchedEvent]:
        return [event for event in self.events if event.type == event_type]

    # Queries

    async def query_candidates(self, selectors: list[str]) -> list[CandidateSnapshot]:
        candidates = []
        for order, selector in enumerate(selectors):
            try:
                matches = self.soup.select(selector)
            except (soupsieve.SelectorSyntaxError, NotImplementedError) as e:
                self.log.debug("Skipping invalid selector", selector=selector, error=str(e))
                continue
            for index, el in enumerate(matches):
                candidates.append(self.snapshot(el, selector, order, index))
        return candidates

    async def find_by_label_text(self, text: str) -> list[CandidateSnapshot]:
        return [
            self.snapshot(el, index=index)
            for index, el in enumerate(self.soup.find_all(FORM_FIELD_TAGS))
            if find_label_text(el) == text
        ]

    async def find_by_text(self, text: str) -> list[CandidateSnapshot]:
        wanted = normalize_text(text)
        return [
            self.snapshot(el, index=index)
            for index, el in enumerate(self.soup.find_all(True))
            if normalize_text(visible_text(el)) == wanted
        ]

    # Element actions

    def _tag(self, element: CandidateSnapshot) -> Tag:
        if isinstance(element.handle, Tag):
            return element.handle
        found = self.soup.select_one(element.dom_path)
        if found is None:
            raise ActionError(f"Element {element.dom_path} is no longer attached", dom_path=element.dom_path)
        return found

    def _dispatch(self, event_type: str, el: Tag, **detail) -> None:
        self.events.append(DispatchedEvent(event_type, dom_path(el), detail))

    def _submit(self, form: Tag, submitter: Tag) -> None:
        self._dispatch("submit", form, submitter=dom_path(submitter))

    async def click(self, element: CandidateSnapshot) -> None:
        el = self._tag(element)
        self._focused = el
        self._dispatch("click", el)

        kind = (get_attr(el, "type") or "").lower()
        if el.name == "input" and kind in ("checkbox", "radio"):
            if kind == "radio" or not el.has_attr("checked"):
                el["checked"] = ""
            else:
                del el["checked"]
            self._dispatch("change", el)

        form = _owning_form(el)
        if form is not None and _is_submit_control(el):
            self._submit(form, el)

        link = el if el.name == "a" else el.find_parent("a")
        href = get_attr(link, "href") if link is not None else None
        if href and not href.startswith(("#", "javascript:")):
            target = urljoin(self.url, href)
            if self._page_for(target) is not None:
                await self.navigate(target)

    async def fill(self, element: CandidateSnapshot, value: str) -> None:
        el = self._tag(element)
        if el.name == "input":
            el["value"] = value
        elif el.name == "textarea":
            el.string = value
        else:
            raise ActionError(f"<{el.name}> is not a text control", dom_path=element.dom_path)
        self._focused = el
        self._dispatch("input", el, value=value)
        self._dispatch("change", el, value=value)

    async def select_option(self, element: CandidateSnapshot, value: str) -> None:
        el = self._tag(element)
        if el.name != "select":
            raise ActionError(f"<{el.name}> is not a select control", dom_path=element.dom_path)
        options = el.find_all("option")
        chosen = next((o for o in options if get_attr(o, "value") == value), None)
        if chosen is None:
            chosen = next((o for o in options if o.get_text().strip() == value), None)
        if chosen is None:
            raise ActionError(f"No option {value!r} in {element.dom_path}", dom_path=element.dom_path)
        for option in options:
            if option.has_attr("selected"):
                del option["selected"]
        chosen["selected"] = ""
        self._dispatch("input", el, value=value)
        self._dispatch("change", el, value=value)

    async def submit_form(self, element: CandidateSnapshot) -> bool:
        el = self._tag(element)
        form = _owning_form(el)
        if form is None:
            return False
        self._submit(form, el)
        return True

    async def focus(self, element: CandidateSnapshot) -> None:
        el = self._tag(element)
        self._focused = el
        self._dispatch("focus", el)

    async def press_key(self, key: str, element: Optional[CandidateSnapshot] = None) -> None:
        if element is not None:
            target = self._tag(element)
        else:
            target = self._focused or self.soup.find("body") or self.soup.find("html")
        self._dispatch("keydown", target, key=key)
        self._dispatch("keyup", target, key=key)

        # Implicit submission from a single-line text field
        kind = (get_attr(target, "type") or "text").lower()
        if key == "Enter" and target.name == "input" and kind in TEXT_INPUT_TYPES:
            form = _owning_form(target)
            if form is not None:
                self._submit(form, target)

    async def read_property(self, element: CandidateSnapshot, prop: ReadProperty) -> str:
        el = self._tag(element)
        if prop == "outerHTML":
            return str(el)
        if prop == "value":
            if el.name == "textarea":
                return el.get_text()
            if el.name == "select":
                options = el.find_all("option")
                chosen = next((o for o in options if o.has_attr("selected")), options[0] if options else None)
                if chosen is None:
                    return ""
                return get_attr(chosen, "value") or chosen.get_text().strip()
            return get_attr(el, "value") or ""
        return el.get_text()

    async def screenshot(self, element: Optional[CandidateSnapshot] = None) -> bytes:
        raise ActionError("Screenshots require a rendering backend", url=self.url)

    # Page actions

    def _page_for(self, url: str) -> Optional[str]:
        if url in self.pages:
            return self.pages[url]
        normalized = normalize_url(url)
        for known, html in self.pages.items():
            if normalize_url(known) == normalized:
                return html
        return None

    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        html = self._page_for(url)
        if html is None:
            raise NavigationError(f"No page available for {url}", url=url)
        self.load(html, url=url)
        self._unobserved_navigations += 1
        self.log.debug("Navigated", url=url)

    async def wait_for_navigation(self, timeout_ms: Optional[int] = None) -> None:
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while self._unobserved_navigations == 0:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ReplayTimeoutError(f"No navigation within {timeout_ms}ms", url=self.url)
            await asyncio.sleep(min(NAVIGATION_POLL_SECONDS, remaining))
        self._unobserved_navigations = 0

    async def current_url(self) -> str:
        return self.url

    async def snapshot_html(self) -> str:
        return str(self.soup)
