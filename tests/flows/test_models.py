"""Tests for step, flow and result models."""

import json

import pytest
from pydantic import ValidationError

from flowreplay.flows.models import (
    ClickStep,
    ExecutionResult,
    ExtractStep,
    Flow,
    KeyboardStep,
    NavigateStep,
    RunResult,
    StepType,
    TypeStep,
    WaitForStep,
    parse_step,
)
from flowreplay.locators.models import Locator

FLOW_DOCUMENT = {
    "id": "flow-1",
    "title": "Sign in",
    "createdAt": 1735689600000,
    "startUrl": "https://example.com/login",
    "steps": [
        {"type": "navigate", "url": "https://example.com/login"},
        {
            "type": "type",
            "locator": {
                "primary": "#email",
                "fallbacks": ["input[name=\"email\"]"],
                "metadata": {
                    "tagName": "input",
                    "labelText": "Email",
                    "formContext": {"formSelector": "#login-form", "fieldIndex": 1},
                },
            },
            "text": "*****",
            "originalText": "a@b.c",
            "_frameId": 0,
            "_frameUrl": "https://example.com/login",
        },
        {
            "type": "click",
            "locator": {"primary": "[data-testid=\"sign-in\"]", "fallbacks": []},
            "timeoutMs": 2000,
            "recordedBy": "extension",
        },
        {"type": "extract", "locator": {"primary": "#title", "fallbacks": []}, "prop": "innerText"},
        {"type": "waitForNavigation", "timeoutMs": 10000},
        {"type": "keyboard", "key": "Escape"},
        {"type": "screenshot"},
    ],
}


class TestStepParsing:
    """Tests for the step tagged union."""

    def test_discriminates_on_type(self):
        step = parse_step({"type": "click", "locator": {"primary": "#go"}})

        assert isinstance(step, ClickStep)
        assert step.step_type == StepType.CLICK
        assert step.locator.primary == "#go"

    @pytest.mark.parametrize("data,cls", [
        ({"type": "navigate", "url": "https://example.com"}, NavigateStep),
        ({"type": "waitFor", "timeoutMs": 100}, WaitForStep),
        ({"type": "keyboard", "key": "Enter"}, KeyboardStep),
        ({"type": "extract", "prop": "value"}, ExtractStep),
    ])
    def test_variants(self, data, cls):
        assert isinstance(parse_step(data), cls)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_step({"type": "hover"})

    def test_missing_fields_parse(self):
        """Required fields are checked at run time, not at parse time."""
        step = parse_step({"type": "type"})

        assert step.locator is None
        assert step.text is None

    def test_every_step_type_has_a_model(self):
        for step_type in StepType:
            assert parse_step({"type": step_type.value}).step_type == step_type


class TestTypeStep:
    """Tests for masked type steps."""

    def test_masked(self):
        step = TypeStep.masked(Locator(primary="#pw"), "secret", submit=True)

        assert step.text == "******"
        assert step.original_text == "secret"
        assert step.submit is True
        assert step.to_dict()["originalText"] == "secret"

    def test_value_to_type_prefers_original(self):
        assert TypeStep(text="***", original_text="abc").value_to_type == "abc"
        assert TypeStep(text="plain").value_to_type == "plain"

    def test_empty_original_falls_back_to_text(self):
        assert TypeStep(text="plain", original_text="").value_to_type == "plain"


class TestFlow:
    """Tests for the Flow document."""

    def test_round_trip(self):
        """A parsed document dumps back to the same JSON."""
        flow = Flow.from_dict(FLOW_DOCUMENT)

        assert flow.to_dict() == FLOW_DOCUMENT
        assert json.loads(flow.to_json()) == FLOW_DOCUMENT
        assert Flow.from_json(flow.to_json()) == flow

    def test_round_trip_keeps_explicit_nulls(self):
        document = {
            "id": "flow-2",
            "title": "Nulls",
            "createdAt": 1735689600000,
            "startUrl": None,
            "steps": [
                {
                    "type": "click",
                    "locator": {"primary": "#go", "metadata": {"text": None, "tagName": "button"}},
                    "_frameId": None,
                },
            ],
        }

        assert Flow.from_dict(document).to_dict() == document

    def test_built_steps_serialize_only_given_fields(self):
        step = NavigateStep(url="https://example.com")

        assert step.to_dict() == {"type": "navigate", "url": "https://example.com"}
        assert ClickStep(locator=Locator(primary="#go")).to_dict() == {
            "type": "click",
            "locator": {"primary": "#go"},
        }

    def test_parsed_fields(self):
        flow = Flow.from_dict(FLOW_DOCUMENT)

        assert flow.start_url == "https://example.com/login"
        assert [step.type for step in flow.steps][:3] == ["navigate", "type", "click"]
        assert flow.steps[1].frame_url == "https://example.com/login"
        assert flow.steps[2].timeout_ms == 2000

    def test_new(self):
        flow = Flow.new("Checkout")

        assert flow.title == "Checkout"
        assert flow.steps == []
        assert len(flow.id) == 36
        assert flow.created_at > 0
        assert set(flow.to_dict()) == {"id", "title", "steps", "createdAt"}
        assert Flow.new(start_url="https://example.com").to_dict()["startUrl"] == "https://example.com"

    def test_with_step_is_a_copy(self):
        flow = Flow.new()

        updated = flow.with_step(NavigateStep(url="https://example.com"))

        assert flow.steps == []
        assert len(updated.steps) == 1
        assert updated.id == flow.id

    def test_replace_and_remove(self):
        flow = Flow.new().with_step(KeyboardStep(key="a")).with_step(KeyboardStep(key="b"))

        replaced = flow.with_step_replaced(0, KeyboardStep(key="z"))
        trimmed = replaced.without_last_step()

        assert [step.key for step in replaced.steps] == ["z", "b"]
        assert [step.key for step in trimmed.steps] == ["z"]


class TestResults:
    """Tests for execution results."""

    def test_execution_result_to_dict(self):
        result = ExecutionResult(success=False, error="boom", error_code="ACTION_FAILURE", duration_ms=12)

        assert result.to_dict() == {
            "success": False,
            "error": "boom",
            "errorCode": "ACTION_FAILURE",
            "durationMs": 12,
        }

    def test_run_result_keys_are_strings(self):
        result = RunResult(
            success=False,
            error="missing",
            error_code="ELEMENT_NOT_FOUND",
            failed_step_index=1,
            extracted_data={0: "Hello"},
        )

        data = result.to_dict()

        assert data["extractedData"] == {"0": "Hello"}
        assert data["failedStepIndex"] == 1
        assert "stopped" not in data
