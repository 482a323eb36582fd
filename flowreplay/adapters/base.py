"""Execution context abstraction.

An execution context is the backend-specific capability to query and act on
a page. The resolver and runner only talk to this interface:

                      ┌─────────────────────────────┐
                      │      ExecutionContext       │
                      │    (Abstract Interface)     │
                      └─────────────┬───────────────┘
                                    │
        ┌───────────────────────────┼───────────────────────────┐
        ▼                           ▼                           ▼
┌───────────────┐         ┌─────────────────┐         ┌─────────────────┐
│   Document    │         │   Playwright    │         │    WebDriver    │
│   (in-page)   │         │ (remote driver) │         │ (remote driver) │
└───────────────┘         └─────────────────┘         └─────────────────┘

Contexts report raw candidate facts (CandidateSnapshot); visibility, scoring
and polling live in the resolver and are shared by every backend.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal, Optional

import structlog

from ..config import ExecutionBackend, Settings, get_settings
from ..locators.scoring import CandidateSnapshot

logger = structlog.get_logger(__name__)

ReadProperty = Literal["innerText", "value", "outerHTML"]


@dataclass
class BackendConfig:
    """Configuration for an execution backend."""

    backend: ExecutionBackend = ExecutionBackend.PLAYWRIGHT
    headless: bool = True
    browser_type: str = "chromium"  # chromium, firefox, webkit
    viewport_width: int = 1280
    viewport_height: int = 720
    timeout_ms: int = 30000  # Navigation and page loads
    action_timeout_ms: int = 5000  # Single element actions
    slow_mo_ms: int = 0
    webdriver_url: str = "http://localhost:4444"
    extra_options: dict = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides) -> "BackendConfig":
        settings = settings or get_settings()
        values = {
            "backend": settings.backend,
            "headless": settings.headless,
            "browser_type": settings.browser_type,
            "viewport_width": settings.viewport_width,
            "viewport_height": settings.viewport_height,
            "timeout_ms": settings.navigation_timeout_ms,
            "action_timeout_ms": settings.default_timeout_ms,
            "webdriver_url": settings.webdriver_url,
        }
        values.update(overrides)
        return cls(**values)


class ExecutionContext(ABC):
    """Abstract base class for execution backends.

    Element arguments are CandidateSnapshots returned by this same context,
    usually through the resolver.
    """

    def __init__(self, config: Optional[BackendConfig] = None):
        self.config = config or BackendConfig()
        self.log = logger.bind(backend=self.config.backend.value)

    @abstractmethod
    async def start(self) -> None:
        """Start the backend session."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the backend session."""
        pass

    # Queries

    @abstractmethod
    async def query_candidates(self, selectors: list[str]) -> list[CandidateSnapshot]:
        """Every match of every selector, tagged with selector order and index.

        Invalid selectors yield no candidates.
        """
        pass

    @abstractmethod
    async def find_by_label_text(self, text: str) -> list[CandidateSnapshot]:
        """Form fields whose associated label text equals text."""
        pass

    @abstractmethod
    async def find_by_text(self, text: str) -> list[CandidateSnapshot]:
        """Elements whose visible text matches text, ignoring case and spacing."""
        pass

    # Element actions

    @abstractmethod
    async def click(self, element: CandidateSnapshot) -> None:
        """Native click on the element."""
        pass

    @abstractmethod
    async def fill(self, element: CandidateSnapshot, value: str) -> None:
        """Set the control's value and fire input and change events."""
        pass

    @abstractmethod
    async def select_option(self, element: CandidateSnapshot, value: str) -> None:
        """Select the option with the given value and fire change events."""
        pass

    @abstractmethod
    async def submit_form(self, element: CandidateSnapshot) -> bool:
        """Submit the element's owning form. Returns False if there is none."""
        pass

    @abstractmethod
    async def focus(self, element: CandidateSnapshot) -> None:
        pass

    @abstractmethod
    async def press_key(self, key: str, element: Optional[CandidateSnapshot] = None) -> None:
        """Dispatch a named key to the element, or to the focused element."""
        pass

    @abstractmethod
    async def read_property(self, element: CandidateSnapshot, prop: ReadProperty) -> str:
        """Raw text content, current value, or outer markup."""
        pass

    @abstractmethod
    async def screenshot(self, element: Optional[CandidateSnapshot] = None) -> bytes:
        """PNG of the element's bounding box, or of the viewport."""
        pass

    # Page actions

    @abstractmethod
    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def wait_for_navigation(self, timeout_ms: Optional[int] = None) -> None:
        """Wait until the next navigation completes."""
        pass

    @abstractmethod
    async def current_url(self) -> str:
        pass

    @abstractmethod
    async def snapshot_html(self) -> str:
        """Serialized markup of the current document."""
        pass

    # Optional methods with default implementations

    async def use_frame(self, frame_id: Optional[int] = None, frame_url: Optional[str] = None) -> None:
        """Scope subsequent queries to a frame. Ignored where frames are not supported."""
        if frame_id is not None or frame_url is not None:
            self.log.debug("Frame scoping not supported, using main document", frame_url=frame_url)

    # Context manager support

    async def __aenter__(self) -> "ExecutionContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


def create_context(
    backend: ExecutionBackend | str = ExecutionBackend.PLAYWRIGHT,
    config: Optional[BackendConfig] = None,
    **kwargs,
) -> ExecutionContext:
    """Factory function to create an execution context (not started).

    Args:
        backend: Backend to use
        config: Backend configuration
        **kwargs: Backend-specific options (html/url/pages for document,
            page for playwright, session_id/client for webdriver)

    Example:
        async with create_context("playwright") as context:
            await context.navigate("https://example.com")
    """
    if isinstance(backend, str):
        backend = ExecutionBackend(backend)

    if config is None:
        config = BackendConfig(backend=backend)

    if backend == ExecutionBackend.DOCUMENT:
        from .document import DocumentContext

        return DocumentContext(
            kwargs.get("html", ""),
            url=kwargs.get("url", "about:blank"),
            pages=kwargs.get("pages"),
            config=config,
        )

    elif backend == ExecutionBackend.PLAYWRIGHT:
        from .playwright import PlaywrightContext

        return PlaywrightContext(config, page=kwargs.get("page"))

    elif backend == ExecutionBackend.WEBDRIVER:
        from .webdriver import WebDriverContext

        return WebDriverContext(
            config,
            session_id=kwargs.get("session_id"),
            client=kwargs.get("client"),
        )

    else:
        raise ValueError(f"Unknown backend: {backend}")
