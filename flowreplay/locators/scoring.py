"""Candidate facts, visibility predicates and confidence scoring.

Adapters report a CandidateSnapshot per matched element. Everything that
decides whether a candidate qualifies, and how well it matches the recorded
metadata, is computed here so every backend behaves the same way.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import Settings, get_settings
from ..utils.text import normalize_text
from .dom import FORM_FIELD_TAGS, TEST_ID_ATTRIBUTES, infer_role
from .models import LocatorMetadata

DISABLEABLE_TAGS = ("input", "textarea", "select", "button")


@dataclass
class CandidateSnapshot:
    """Facts about one element matched during resolution.

    The handle is adapter-specific (a bs4 Tag, or the DOM path for remote
    backends) and is passed back to the adapter's primitive actions.
    """

    dom_path: str
    tag_name: str
    selector: Optional[str] = None
    selector_order: int = 0
    element_index: int = 0
    attributes: dict[str, Optional[str]] = field(default_factory=dict)
    label_text: Optional[str] = None
    form_field_index: Optional[int] = None
    text: str = ""
    display: str = "block"
    visibility: str = "visible"
    opacity: float = 1.0
    pointer_events: str = "auto"
    has_rect: bool = True
    is_root: bool = False
    disabled: bool = False
    handle: Any = None

    @property
    def role(self) -> Optional[str]:
        return infer_role(self.tag_name, self.attributes)

    @classmethod
    def from_dict(cls, data: dict, handle: Any = None) -> "CandidateSnapshot":
        """Build from the camelCase payload produced by the browser-side script."""
        return cls(
            dom_path=data["domPath"],
            tag_name=data["tagName"],
            selector=data.get("selector"),
            selector_order=data.get("selectorOrder", 0),
            element_index=data.get("elementIndex", 0),
            attributes=dict(data.get("attributes") or {}),
            label_text=data.get("labelText"),
            form_field_index=data.get("formFieldIndex"),
            text=data.get("text") or "",
            display=data.get("display", "block"),
            visibility=data.get("visibility", "visible"),
            opacity=float(data.get("opacity", 1.0)),
            pointer_events=data.get("pointerEvents", "auto"),
            has_rect=data.get("hasRect", True),
            is_root=data.get("isRoot", False),
            disabled=data.get("disabled", False),
            handle=handle if handle is not None else data["domPath"],
        )


def is_visible(candidate: CandidateSnapshot) -> bool:
    """The document root, or rendered with a non-empty rectangle."""
    if candidate.is_root:
        return True
    if candidate.display == "none" or candidate.visibility == "hidden":
        return False
    if candidate.opacity == 0:
        return False
    return candidate.has_rect


def is_interactable(candidate: CandidateSnapshot) -> bool:
    """Visible, enabled and accepting pointer events."""
    if not is_visible(candidate):
        return False
    if candidate.tag_name in DISABLEABLE_TAGS and candidate.disabled:
        return False
    return candidate.pointer_events != "none"


@dataclass
class ScoringWeights:
    """Weights of each metadata match. Empirical; tune through settings."""

    test_id: int = 120
    label_exact: int = 100
    label_partial: int = 50
    form_field_index: int = 90
    placeholder: int = 70
    aria_label: int = 60
    tag_name: int = 20
    role: int = 10

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ScoringWeights":
        settings = settings or get_settings()
        return cls(
            test_id=settings.score_test_id,
            label_exact=settings.score_label_exact,
            label_partial=settings.score_label_partial,
            form_field_index=settings.score_form_field_index,
            placeholder=settings.score_placeholder,
            aria_label=settings.score_aria_label,
            tag_name=settings.score_tag_name,
            role=settings.score_role,
        )


def score_candidate(
    candidate: CandidateSnapshot,
    metadata: Optional[LocatorMetadata],
    weights: Optional[ScoringWeights] = None,
) -> int:
    """Confidence that a candidate is the recorded element."""
    if metadata is None:
        return 0
    weights = weights or ScoringWeights()
    attrs = candidate.attributes
    score = 0

    if metadata.test_id and any(attrs.get(name) == metadata.test_id for name in TEST_ID_ATTRIBUTES):
        score += weights.test_id

    if metadata.label_text and candidate.label_text:
        if candidate.label_text == metadata.label_text:
            score += weights.label_exact
        elif metadata.label_text in candidate.label_text:
            score += weights.label_partial

    form_context = metadata.form_context
    if form_context is not None and candidate.form_field_index == form_context.field_index:
        score += weights.form_field_index

    if metadata.placeholder and attrs.get("placeholder") == metadata.placeholder:
        score += weights.placeholder

    if metadata.aria_label and attrs.get("aria-label") == metadata.aria_label:
        score += weights.aria_label

    if metadata.tag_name and candidate.tag_name == metadata.tag_name.lower():
        score += weights.tag_name

    if metadata.role and candidate.role == metadata.role:
        score += weights.role

    return score


def matches_text(candidate: CandidateSnapshot, text: str, role: Optional[str] = None) -> bool:
    """Case- and whitespace-insensitive text match, optionally role filtered."""
    if not candidate.text or normalize_text(candidate.text) != normalize_text(text):
        return False
    return role is None or candidate.role == role


def is_form_field(candidate: CandidateSnapshot) -> bool:
    return candidate.tag_name in FORM_FIELD_TAGS
