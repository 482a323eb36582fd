"""Checks that a step carries the fields its type requires."""

from typing import Iterable

from ..errors import InvalidStepError
from .models import BaseStep, ExtractProp, StepType

LOCATOR_REQUIRED = (StepType.CLICK, StepType.TYPE, StepType.SELECT, StepType.EXTRACT)
EXTRACT_PROPS = tuple(prop.value for prop in ExtractProp)


def validate_step(step: BaseStep) -> list[str]:
    """Problems that would stop the step from running; empty when valid."""
    problems = []
    step_type = step.step_type

    if step_type in LOCATOR_REQUIRED and step.locator is None:
        problems.append(f"{step_type.value} step requires a locator")

    if step_type == StepType.TYPE and step.text is None and step.original_text is None:
        problems.append("type step requires text or originalText")
    elif step_type == StepType.SELECT and step.value is None:
        problems.append("select step requires a value")
    elif step_type == StepType.NAVIGATE and not step.url:
        problems.append("navigate step requires a url")
    elif step_type == StepType.KEYBOARD and not step.key:
        problems.append("keyboard step requires a key")
    elif step_type == StepType.WAIT_FOR and step.locator is None and step.timeout_ms is None:
        problems.append("waitFor step requires a locator or timeoutMs")
    elif step_type == StepType.EXTRACT and step.prop is not None and step.prop not in EXTRACT_PROPS:
        problems.append(f"extract prop must be one of {', '.join(EXTRACT_PROPS)}")

    if step.timeout_ms is not None and step.timeout_ms < 0:
        problems.append("timeoutMs cannot be negative")
    return problems


def validate_steps(steps: Iterable[BaseStep]) -> dict[int, list[str]]:
    """Problems keyed by step index, only for invalid steps."""
    report = {}
    for index, step in enumerate(steps):
        problems = validate_step(step)
        if problems:
            report[index] = problems
    return report


def has_required_fields(step: BaseStep) -> bool:
    return not validate_step(step)


def is_executable_step(step: BaseStep) -> bool:
    """Whether the runner can execute the step as recorded."""
    return has_required_fields(step)


def ensure_valid(step: BaseStep, index: int | None = None) -> None:
    """Raise InvalidStepError when the step is missing required fields."""
    problems = validate_step(step)
    if problems:
        raise InvalidStepError("; ".join(problems), step_type=step.type, step_index=index, problems=problems)
