"""Steps, flows and flow execution."""

from .extraction import clean_outer_html, simplify_markup, simplify_structure, transform_extracted
from .models import (
    BaseStep,
    ClickStep,
    ExecutionResult,
    ExtractProp,
    ExtractStep,
    Flow,
    KeyboardStep,
    NavigateStep,
    RunResult,
    ScreenshotStep,
    SelectStep,
    Step,
    StepType,
    TypeStep,
    WaitForNavigationStep,
    WaitForStep,
    parse_step,
)
from .runner import FlowRunner, RunOptions
from .storage import FlowStore, JsonFileStorageAdapter, MemoryStorageAdapter, StorageAdapter
from .templating import find_placeholders, substitute_variables
from .transport import (
    CollectingReporter,
    FlowFailedMessage,
    FlowUploadError,
    FlowUploader,
    LoggingReporter,
    RunReporter,
    StepCompletedMessage,
    StepExecutingMessage,
    StopSignal,
)
from .validation import ensure_valid, has_required_fields, is_executable_step, validate_step, validate_steps

__all__ = [
    "clean_outer_html",
    "simplify_markup",
    "simplify_structure",
    "transform_extracted",
    "BaseStep",
    "ClickStep",
    "ExecutionResult",
    "ExtractProp",
    "ExtractStep",
    "Flow",
    "KeyboardStep",
    "NavigateStep",
    "RunResult",
    "ScreenshotStep",
    "SelectStep",
    "Step",
    "StepType",
    "TypeStep",
    "WaitForNavigationStep",
    "WaitForStep",
    "parse_step",
    "FlowRunner",
    "RunOptions",
    "FlowStore",
    "JsonFileStorageAdapter",
    "MemoryStorageAdapter",
    "StorageAdapter",
    "find_placeholders",
    "substitute_variables",
    "CollectingReporter",
    "FlowFailedMessage",
    "FlowUploadError",
    "FlowUploader",
    "LoggingReporter",
    "RunReporter",
    "StepCompletedMessage",
    "StepExecutingMessage",
    "StopSignal",
    "ensure_valid",
    "has_required_fields",
    "is_executable_step",
    "validate_step",
    "validate_steps",
]
