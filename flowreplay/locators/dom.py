"""DOM heuristics shared by locator generation and the in-page adapter.

Everything here is a pure function of a BeautifulSoup tree. Remote adapters
compute the same facts in the browser (see adapters/scripts.py) and must stay
in step with these definitions.
"""

import re
from typing import Optional

import soupsieve
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from ..utils.text import collapse_whitespace, truncate
from .models import FormContext

TEST_ID_ATTRIBUTES = ("data-testid", "data-test", "data-cy", "data-test-id")
FORM_FIELD_TAGS = ("input", "textarea", "select")
TEXT_LIMIT = 50
STRUCTURAL_DEPTH = 5
MAX_STABLE_CLASSES = 2

HASH_LIKE = re.compile(r"[0-9a-f]{8,}", re.IGNORECASE)

UNSTABLE_CLASS_PATTERNS = [
    re.compile(r"^css-[a-z0-9]+$", re.IGNORECASE),  # emotion
    re.compile(r"^sc-[a-zA-Z0-9]+$"),  # styled-components
    re.compile(r"^_[a-zA-Z0-9_]+$"),  # css modules
    re.compile(r"^[A-Z][a-zA-Z]+_[a-zA-Z]+__[a-zA-Z0-9]+$"),  # Component_name__hash
    HASH_LIKE,
    re.compile(r"^chakra-"),
]

INPUT_TYPE_ROLES = {
    "checkbox": "checkbox",
    "radio": "radio",
    "button": "button",
    "submit": "button",
    "reset": "button",
    "image": "button",
    "range": "slider",
    "number": "spinbutton",
}

TAG_ROLES = {
    "button": "button",
    "a": "link",
    "textarea": "textbox",
    "select": "combobox",
    "img": "img",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
    "nav": "navigation",
    "ul": "list",
    "ol": "list",
    "li": "listitem",
    "table": "table",
    "form": "form",
    "dialog": "dialog",
}


def get_attr(el: Tag, name: str) -> Optional[str]:
    """Attribute value as a string (bs4 returns class lists as lists)."""
    value = el.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return value


def get_classes(el: Tag) -> list[str]:
    value = el.get("class") or []
    if isinstance(value, str):
        value = value.split()
    return [c for c in value if c]


def is_hash_like(value: str) -> bool:
    return bool(HASH_LIKE.search(value))


def is_stable_class(name: str) -> bool:
    return not any(pattern.search(name) for pattern in UNSTABLE_CLASS_PATTERNS)


def css_escape(ident: str) -> str:
    return soupsieve.escape(ident)


def quote_attr(value: str) -> str:
    """Quote a value for use inside an attribute selector."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\a ")
    return f'"{escaped}"'


def infer_role(tag_name: str, attributes: dict[str, Optional[str]]) -> Optional[str]:
    """Explicit role attribute, else the implicit role of the tag."""
    explicit = attributes.get("role")
    if explicit:
        return explicit.strip()
    tag = tag_name.lower()
    if tag == "input":
        input_type = (attributes.get("type") or "text").lower()
        return INPUT_TYPE_ROLES.get(input_type, "textbox")
    return TAG_ROLES.get(tag)


def direct_text(el: Tag) -> str:
    """Text of the element's own text nodes, whitespace collapsed."""
    parts = [
        str(child) for child in el.children
        if isinstance(child, NavigableString) and not isinstance(child, Comment)
    ]
    return collapse_whitespace(" ".join(parts))


def visible_text(el: Tag) -> str:
    """Short visible text recorded as metadata and used for fuzzy matching."""
    if el.name in ("input", "textarea"):
        text = get_attr(el, "value") or get_attr(el, "placeholder") or ""
        if not text and el.name == "textarea":
            text = el.get_text()
    elif el.name == "img":
        text = get_attr(el, "alt") or ""
    else:
        text = direct_text(el)
    return truncate(collapse_whitespace(text), TEXT_LIMIT)


def text_content(el: Tag) -> str:
    return el.get_text()


def element_children(el: Tag) -> list[Tag]:
    return [child for child in el.children if isinstance(child, Tag)]


def parent_element(el: Tag) -> Optional[Tag]:
    parent = el.parent
    if parent is None or isinstance(parent, BeautifulSoup):
        return None
    return parent


def nth_of_type(el: Tag) -> tuple[int, int]:
    """1-based index among same-tag siblings and the number of such siblings."""
    parent = el.parent
    if parent is None:
        return 1, 1
    same = [child for child in parent.children if isinstance(child, Tag) and child.name == el.name]
    index = next((i for i, child in enumerate(same) if child is el), 0)
    return index + 1, len(same)


def structural_selector(el: Tag, depth: int = STRUCTURAL_DEPTH) -> str:
    """Positional selector over the element and its nearest ancestors."""
    parts = []
    node: Optional[Tag] = el
    while node is not None and len(parts) < depth:
        part = node.name
        index, count = nth_of_type(node)
        if count > 1:
            part += f":nth-of-type({index})"
        parts.insert(0, part)
        node = parent_element(node)
    return " > ".join(parts)


def dom_path(el: Tag) -> str:
    """Absolute structural path; unique per element and usable as a selector."""
    parts = []
    node: Optional[Tag] = el
    while node is not None:
        parent = parent_element(node)
        if parent is None:
            parts.insert(0, node.name)
        else:
            index, _ = nth_of_type(node)
            parts.insert(0, f"{node.name}:nth-of-type({index})")
        node = parent
    return " > ".join(parts)


def class_selector(el: Tag) -> Optional[str]:
    """Tag plus up to two stable classes, or None when no class qualifies."""
    stable = [c for c in get_classes(el) if is_stable_class(c)][:MAX_STABLE_CLASSES]
    if not stable:
        return None
    return el.name + "".join(f".{css_escape(c)}" for c in stable)


def _root(el: Tag) -> Tag:
    node = el
    while node.parent is not None:
        node = node.parent
    return node


def _label_text(label: Tag, exclude: Optional[Tag] = None) -> str:
    if exclude is None:
        return label.get_text().strip()
    parts = []
    for text in label.find_all(string=True):
        if isinstance(text, Comment):
            continue
        if any(parent is exclude for parent in text.parents):
            continue
        parts.append(str(text))
    return "".join(parts).strip()


def find_label_text(el: Tag) -> Optional[str]:
    """Text of the label associated with a form field, first strategy wins.

    Order: label[for=id], enclosing label, aria-labelledby target, preceding
    sibling label, first label in the parent not bound to another field.
    """
    root = _root(el)
    field_id = get_attr(el, "id")

    if field_id:
        label = root.find("label", attrs={"for": field_id})
        if label is not None:
            text = _label_text(label)
            if text:
                return text

    enclosing = el.find_parent("label")
    if enclosing is not None:
        text = _label_text(enclosing, exclude=el)
        if text:
            return text

    labelledby = get_attr(el, "aria-labelledby")
    if labelledby:
        texts = []
        for ref in labelledby.split():
            target = root.find(attrs={"id": ref})
            if target is not None:
                texts.append(target.get_text().strip())
        text = " ".join(t for t in texts if t)
        if text:
            return text

    previous = el.find_previous_sibling(True)
    if previous is not None and previous.name == "label":
        text = _label_text(previous)
        if text:
            return text

    parent = parent_element(el)
    if parent is not None:
        label = parent.find("label")
        if label is not None:
            bound_to = get_attr(label, "for")
            if not bound_to or bound_to == field_id:
                text = _label_text(label)
                if text:
                    return text

    return None


def form_selector(form: Tag) -> str:
    form_id = get_attr(form, "id")
    if form_id and not is_hash_like(form_id):
        return f"#{css_escape(form_id)}"
    name = get_attr(form, "name")
    if name:
        return f"form[name={quote_attr(name)}]"
    by_class = class_selector(form)
    if by_class:
        return by_class
    index, _ = nth_of_type(form)
    return f"form:nth-of-type({index})"


def find_form_context(el: Tag) -> Optional[FormContext]:
    """Owning form selector and 1-based field position, for form fields only."""
    if el.name not in FORM_FIELD_TAGS:
        return None
    form = el.find_parent("form")
    if form is None:
        return None
    fields = form.find_all(FORM_FIELD_TAGS)
    index = next((i for i, field in enumerate(fields) if field is el), None)
    if index is None:
        return None
    return FormContext(form_selector=form_selector(form), field_index=index + 1)


def form_field_index(el: Tag) -> Optional[int]:
    context = find_form_context(el)
    return context.field_index if context else None
