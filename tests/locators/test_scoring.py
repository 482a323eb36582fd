"""Tests for candidate predicates and confidence scoring."""

import pytest

from flowreplay.config import Settings
from flowreplay.locators.models import FormContext, LocatorMetadata
from flowreplay.locators.scoring import (
    CandidateSnapshot,
    ScoringWeights,
    is_form_field,
    is_interactable,
    is_visible,
    matches_text,
    score_candidate,
)


def candidate(**overrides) -> CandidateSnapshot:
    values = {"dom_path": "html > body:nth-of-type(1) > button:nth-of-type(1)", "tag_name": "button"}
    values.update(overrides)
    return CandidateSnapshot(**values)


class TestVisibility:
    """Tests for the visibility predicate."""

    def test_default_visible(self):
        assert is_visible(candidate())

    @pytest.mark.parametrize("overrides", [
        {"display": "none"},
        {"visibility": "hidden"},
        {"opacity": 0.0},
        {"has_rect": False},
    ])
    def test_hidden(self, overrides):
        """Hidden styles or an empty rectangle make a candidate invisible."""
        assert not is_visible(candidate(**overrides))

    def test_root_always_visible(self):
        """The document root counts as visible whatever its styles."""
        assert is_visible(candidate(tag_name="html", is_root=True, display="none", has_rect=False))


class TestInteractability:
    """Tests for the interactable predicate."""

    def test_enabled_button(self):
        assert is_interactable(candidate())

    def test_disabled_control(self):
        """Disabled form controls and buttons are not interactable."""
        assert not is_interactable(candidate(disabled=True))
        assert not is_interactable(candidate(tag_name="input", disabled=True))

    def test_disabled_ignored_on_other_tags(self):
        """The disabled flag only applies to controls."""
        assert is_interactable(candidate(tag_name="div", disabled=True))

    def test_pointer_events_none(self):
        assert not is_interactable(candidate(pointer_events="none"))

    def test_requires_visibility(self):
        assert not is_interactable(candidate(display="none"))


class TestScoreCandidate:
    """Tests for the confidence score."""

    def test_no_metadata(self):
        """Without metadata every candidate scores zero."""
        assert score_candidate(candidate(), None) == 0

    def test_test_id_tag_and_role(self):
        """Weights add up across matching facts."""
        metadata = LocatorMetadata(test_id="save", tag_name="button", role="button")

        score = score_candidate(candidate(attributes={"data-cy": "save"}), metadata)

        assert score == 120 + 20 + 10

    def test_label_exact_and_partial(self):
        """Exact label matches outweigh substring matches."""
        metadata = LocatorMetadata(label_text="Name")

        exact = score_candidate(candidate(tag_name="input", label_text="Name"), metadata)
        partial = score_candidate(candidate(tag_name="input", label_text="Full Name"), metadata)
        other = score_candidate(candidate(tag_name="input", label_text="Email"), metadata)

        assert (exact, partial, other) == (100, 50, 0)

    def test_form_field_index(self):
        """Matching form position adds its weight."""
        metadata = LocatorMetadata(form_context=FormContext(form_selector="#f", field_index=2))

        assert score_candidate(candidate(form_field_index=2), metadata) == 90
        assert score_candidate(candidate(form_field_index=1), metadata) == 0

    def test_placeholder_and_aria_label(self):
        metadata = LocatorMetadata(placeholder="Search", aria_label="Site search")
        match = candidate(attributes={"placeholder": "Search", "aria-label": "Site search"})

        assert score_candidate(match, metadata) == 70 + 60

    def test_role_from_attributes(self):
        """Candidate roles are inferred from tag and attributes."""
        metadata = LocatorMetadata(role="checkbox")

        assert score_candidate(candidate(tag_name="input", attributes={"type": "checkbox"}), metadata) == 10
        assert score_candidate(candidate(tag_name="input", attributes={"type": "text"}), metadata) == 0

    def test_custom_weights(self):
        """Weights can be tuned."""
        weights = ScoringWeights(test_id=5, tag_name=1)
        metadata = LocatorMetadata(test_id="x", tag_name="button")

        assert score_candidate(candidate(attributes={"data-testid": "x"}), metadata, weights) == 6

    def test_weights_from_settings(self):
        """Weights are read from settings."""
        weights = ScoringWeights.from_settings(Settings(score_test_id=200, score_role=3))

        assert weights.test_id == 200
        assert weights.role == 3
        assert weights.label_exact == 100


class TestTextMatching:
    """Tests for fuzzy text matching."""

    def test_case_and_whitespace_insensitive(self):
        assert matches_text(candidate(text="  Sign   IN "), "sign in")

    def test_role_filter(self):
        """A role filter rejects candidates with another role."""
        assert matches_text(candidate(text="Sign in"), "Sign in", role="button")
        assert not matches_text(candidate(tag_name="a", text="Sign in"), "Sign in", role="button")

    def test_empty_text(self):
        assert not matches_text(candidate(text=""), "")


class TestCandidateSnapshot:
    """Tests for snapshot construction."""

    def test_from_dict(self):
        """Browser payloads use camelCase keys."""
        snapshot = CandidateSnapshot.from_dict({
            "domPath": "html > body:nth-of-type(1) > input:nth-of-type(1)",
            "tagName": "input",
            "selector": "#q",
            "selectorOrder": 1,
            "elementIndex": 2,
            "attributes": {"type": "search"},
            "labelText": "Search",
            "formFieldIndex": 1,
            "display": "inline-block",
            "opacity": "0.5",
            "pointerEvents": "none",
            "hasRect": True,
            "disabled": False,
        })

        assert snapshot.selector_order == 1
        assert snapshot.element_index == 2
        assert snapshot.label_text == "Search"
        assert snapshot.opacity == 0.5
        assert snapshot.pointer_events == "none"
        assert snapshot.role == "textbox"
        assert snapshot.handle == "html > body:nth-of-type(1) > input:nth-of-type(1)"

    def test_is_form_field(self):
        assert is_form_field(candidate(tag_name="select"))
        assert not is_form_field(candidate(tag_name="button"))
