"""Record-once, replay-anywhere browser flows.

Locators generated at record time are resolved again at replay time against
an in-page document or a remote browser driven over playwright or WebDriver.

Usage:
    from flowreplay import Flow, FlowRunner, create_context, ExecutionBackend

    flow = Flow.from_json(path.read_text())
    async with create_context(ExecutionBackend.PLAYWRIGHT) as context:
        result = await FlowRunner().run(flow, context)
"""

from .config import ExecutionBackend, Settings, get_settings
from .errors import (
    ActionError,
    AmbiguousLocatorError,
    ElementNotFoundError,
    ExtractionError,
    InvalidStepError,
    LocatorResolutionError,
    NavigationError,
    NotInteractableError,
    ReplayError,
    ReplayTimeoutError,
)
from .locators import (
    FormContext,
    Locator,
    LocatorGenerator,
    LocatorMetadata,
    LocatorResolver,
    RacingLocatorResolver,
    ResolvedElement,
    ResolverConfig,
    generate_locator,
)
from .adapters import (
    BackendConfig,
    DocumentContext,
    ExecutionContext,
    PlaywrightContext,
    WebDriverContext,
    create_context,
)
from .flows import (
    ExecutionResult,
    Flow,
    FlowRunner,
    RunOptions,
    RunResult,
    Step,
    StepType,
    StopSignal,
    parse_step,
)

__version__ = "0.1.0"

__all__ = [
    "ExecutionBackend",
    "Settings",
    "get_settings",
    "ActionError",
    "AmbiguousLocatorError",
    "ElementNotFoundError",
    "ExtractionError",
    "InvalidStepError",
    "LocatorResolutionError",
    "NavigationError",
    "NotInteractableError",
    "ReplayError",
    "ReplayTimeoutError",
    "FormContext",
    "Locator",
    "LocatorGenerator",
    "LocatorMetadata",
    "LocatorResolver",
    "RacingLocatorResolver",
    "ResolvedElement",
    "ResolverConfig",
    "generate_locator",
    "BackendConfig",
    "DocumentContext",
    "ExecutionContext",
    "PlaywrightContext",
    "WebDriverContext",
    "create_context",
    "ExecutionResult",
    "Flow",
    "FlowRunner",
    "RunOptions",
    "RunResult",
    "Step",
    "StepType",
    "StopSignal",
    "parse_step",
]
