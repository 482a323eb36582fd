"""Data models for recorded steps, flows and replay results.

- Step: tagged union of recordable actions, discriminated by ``type``
- Flow: ordered steps of one recorded scenario
- ExecutionResult: outcome of one step (not persisted)
- RunResult: outcome of one flow run (not persisted)

Steps and flows use the camelCase keys of the flow document and dump back
to the same JSON they were parsed from.
"""

import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from ..locators.models import Locator, WireModel
from ..utils.text import mask_text


class StepType(str, Enum):
    """Kinds of recordable steps."""

    CLICK = "click"
    TYPE = "type"
    SELECT = "select"
    EXTRACT = "extract"
    WAIT_FOR = "waitFor"
    NAVIGATE = "navigate"
    WAIT_FOR_NAVIGATION = "waitForNavigation"
    KEYBOARD = "keyboard"
    SCREENSHOT = "screenshot"


class ExtractProp(str, Enum):
    """What an extract step reads from its element."""

    INNER_TEXT = "innerText"  # Trimmed text content
    VALUE = "value"  # Current control value
    OUTER_HTML = "outerHTML"  # Cleaned, formatted markup
    STRUCTURE = "structure"  # Simplified markup keeping structure attributes
    SIMPLIFIED = "simplified"  # Minimal markup for downstream consumption


class BaseStep(WireModel):
    """Fields every step may carry."""

    always_dumped: ClassVar[tuple[str, ...]] = ("type",)

    locator: Optional[Locator] = None
    url: Optional[str] = None
    timeout_ms: Optional[int] = Field(None, alias="timeoutMs")
    screenshot: Optional[str] = Field(None, description="Base64 screenshot taken at record time")
    frame_id: Optional[int] = Field(None, alias="_frameId")
    frame_url: Optional[str] = Field(None, alias="_frameUrl")

    @property
    def step_type(self) -> StepType:
        return StepType(self.type)


class ClickStep(BaseStep):
    type: Literal["click"] = "click"


class TypeStep(BaseStep):
    type: Literal["type"] = "type"
    text: Optional[str] = Field(None, description="Masked text shown in the UI")
    original_text: Optional[str] = Field(None, alias="originalText", description="Actual value to type")
    submit: Optional[bool] = None

    @classmethod
    def masked(cls, locator: Locator, value: str, submit: bool = False, **kwargs) -> "TypeStep":
        """Type step whose display text is masked and original text holds the value."""
        return cls(locator=locator, text=mask_text(value), original_text=value, submit=submit, **kwargs)

    @property
    def value_to_type(self) -> Optional[str]:
        return self.original_text or self.text


class SelectStep(BaseStep):
    type: Literal["select"] = "select"
    value: Optional[str] = None


class ExtractStep(BaseStep):
    type: Literal["extract"] = "extract"
    prop: Optional[str] = Field(None, description="One of ExtractProp, innerText when absent")


class WaitForStep(BaseStep):
    type: Literal["waitFor"] = "waitFor"


class NavigateStep(BaseStep):
    type: Literal["navigate"] = "navigate"


class WaitForNavigationStep(BaseStep):
    type: Literal["waitForNavigation"] = "waitForNavigation"


class KeyboardStep(BaseStep):
    type: Literal["keyboard"] = "keyboard"
    key: Optional[str] = None


class ScreenshotStep(BaseStep):
    type: Literal["screenshot"] = "screenshot"


Step = Annotated[
    Union[
        ClickStep,
        TypeStep,
        SelectStep,
        ExtractStep,
        WaitForStep,
        NavigateStep,
        WaitForNavigationStep,
        KeyboardStep,
        ScreenshotStep,
    ],
    Field(discriminator="type"),
]

STEP_ADAPTER = TypeAdapter(Step)


def parse_step(data: dict[str, Any]) -> BaseStep:
    """Parse one step of the flow document."""
    return STEP_ADAPTER.validate_python(data)


class Flow(WireModel):
    """An ordered, persisted sequence of steps.

    Example:
        {
            "id": "8c0d...",
            "title": "Sign in",
            "steps": [{"type": "navigate", "url": "https://example.com/login"}],
            "createdAt": 1735689600000
        }
    """

    id: str
    title: str
    steps: list[Step] = Field(default_factory=list)
    created_at: int = Field(..., alias="createdAt", description="Creation time, ms since epoch")
    start_url: Optional[str] = Field(None, alias="startUrl")

    @classmethod
    def new(cls, title: str = "New Flow", start_url: Optional[str] = None) -> "Flow":
        fields: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "title": title,
            "steps": [],
            "created_at": int(time.time() * 1000),
        }
        if start_url is not None:
            fields["start_url"] = start_url
        return cls(**fields)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Flow":
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: str) -> "Flow":
        return cls.model_validate_json(text)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    def with_step(self, step: BaseStep) -> "Flow":
        """Copy of the flow with a step appended."""
        return self.model_copy(update={"steps": [*self.steps, step]})

    def with_step_replaced(self, index: int, step: BaseStep) -> "Flow":
        steps = list(self.steps)
        steps[index] = step
        return self.model_copy(update={"steps": steps})

    def without_last_step(self) -> "Flow":
        return self.model_copy(update={"steps": list(self.steps[:-1])})


@dataclass
class ExecutionResult:
    """Result of executing one step."""

    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    extracted_data: Any = None
    used_selector: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            data["error"] = self.error
            data["errorCode"] = self.error_code
        if self.extracted_data is not None:
            data["extractedData"] = self.extracted_data
        if self.used_selector is not None:
            data["usedSelector"] = self.used_selector
        data["durationMs"] = self.duration_ms
        return data


@dataclass
class RunResult:
    """Aggregate result of one flow run."""

    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    failed_step_index: Optional[int] = None
    extracted_data: dict[int, Any] = field(default_factory=dict)
    step_results: list[ExecutionResult] = field(default_factory=list)
    stopped: bool = False

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "success": self.success,
            "extractedData": {str(index): value for index, value in self.extracted_data.items()},
        }
        if self.error is not None:
            data["error"] = self.error
            data["errorCode"] = self.error_code
        if self.failed_step_index is not None:
            data["failedStepIndex"] = self.failed_step_index
        if self.stopped:
            data["stopped"] = True
        data["stepResults"] = [result.to_dict() for result in self.step_results]
        return data
