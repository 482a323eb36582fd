"""Playwright execution context.

Each resolver poll is a single ``evaluate`` round trip that reports facts for
every selector of the locator. Elements are addressed afterwards through
their absolute DOM path.
"""

from typing import Any, Awaitable, Optional

from ..config import ExecutionBackend
from ..errors import ActionError, NavigationError, ReplayError, ReplayTimeoutError
from ..locators.scoring import CandidateSnapshot
from ..utils.urls import normalize_url
from .base import BackendConfig, ExecutionContext, ReadProperty
from .scripts import (
    FIND_BY_LABEL_JS,
    FIND_BY_TEXT_JS,
    QUERY_CANDIDATES_JS,
    READ_PROPERTY_JS,
    SELECT_OPTION_JS,
    SET_VALUE_JS,
    SNAPSHOT_HTML_JS,
    SUBMIT_FORM_JS,
)


class PlaywrightContext(ExecutionContext):
    """Playwright-based execution context.

    Pass an existing ``page`` to drive a browser owned by the caller; otherwise
    ``start()`` launches one from the config.
    """

    def __init__(self, config: Optional[BackendConfig] = None, page: Any = None):
        super().__init__(config or BackendConfig(backend=ExecutionBackend.PLAYWRIGHT))
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = page
        self._frame = None
        self._owns_browser = page is None

    @property
    def page(self) -> Any:
        if self._page is None:
            raise ActionError("Playwright context is not started")
        return self._page

    @property
    def _target(self) -> Any:
        return self._frame or self.page

    async def start(self) -> None:
        if self._page is not None:
            return
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()

        browser_type = getattr(self._playwright, self.config.browser_type)
        self._browser = await browser_type.launch(
            headless=self.config.headless,
            slow_mo=self.config.slow_mo_ms,
        )
        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            }
        )
        self._page = await self._context.new_page()
        self.log.info("Playwright browser started", browser_type=self.config.browser_type)

    async def stop(self) -> None:
        if not self._owns_browser:
            return
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None
        self._page = None
        self.log.info("Playwright browser stopped")

    async def use_frame(self, frame_id: Optional[int] = None, frame_url: Optional[str] = None) -> None:
        if frame_url is None:
            self._frame = None
            return
        for frame in self.page.frames:
            if frame.url == frame_url or normalize_url(frame.url) == normalize_url(frame_url):
                self._frame = frame
                return
        self.log.warning("Frame not found, using main frame", frame_url=frame_url)
        self._frame = None

    async def _run(
        self,
        action: str,
        awaitable: Awaitable,
        error_cls: type[ReplayError] = ActionError,
        **context,
    ) -> Any:
        """Await a playwright call, translating its errors."""
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        try:
            return await awaitable
        except PlaywrightTimeoutError as e:
            raise ReplayTimeoutError(f"{action} timed out: {e.message}", action=action, **context) from e
        except PlaywrightError as e:
            raise error_cls(f"{action} failed: {e.message}", action=action, **context) from e

    def _locator(self, element: CandidateSnapshot) -> Any:
        return self._target.locator(element.dom_path)

    # Queries

    async def _describe(self, script: str, arg: dict) -> list[CandidateSnapshot]:
        payload = await self._run("evaluate", self._target.evaluate(script, arg))
        return [CandidateSnapshot.from_dict(item) for item in payload or []]

    async def query_candidates(self, selectors: list[str]) -> list[CandidateSnapshot]:
        return await self._describe(QUERY_CANDIDATES_JS, {"selectors": selectors})

    async def find_by_label_text(self, text: str) -> list[CandidateSnapshot]:
        return await self._describe(FIND_BY_LABEL_JS, {"text": text})

    async def find_by_text(self, text: str) -> list[CandidateSnapshot]:
        return await self._describe(FIND_BY_TEXT_JS, {"text": text})

    # Element actions

    async def click(self, element: CandidateSnapshot) -> None:
        await self._run(
            "click",
            self._locator(element).click(timeout=self.config.action_timeout_ms),
            dom_path=element.dom_path,
        )

    async def fill(self, element: CandidateSnapshot, value: str) -> None:
        await self._run("fill", self._locator(element).evaluate(SET_VALUE_JS, value), dom_path=element.dom_path)

    async def select_option(self, element: CandidateSnapshot, value: str) -> None:
        await self._run(
            "select", self._locator(element).evaluate(SELECT_OPTION_JS, value), dom_path=element.dom_path
        )

    async def submit_form(self, element: CandidateSnapshot) -> bool:
        submitted = await self._run(
            "submit", self._locator(element).evaluate(SUBMIT_FORM_JS), dom_path=element.dom_path
        )
        return bool(submitted)

    async def focus(self, element: CandidateSnapshot) -> None:
        await self._run("focus", self._locator(element).focus(), dom_path=element.dom_path)

    async def press_key(self, key: str, element: Optional[CandidateSnapshot] = None) -> None:
        if element is not None:
            await self._run("press", self._locator(element).press(key), key=key, dom_path=element.dom_path)
        else:
            await self._run("press", self.page.keyboard.press(key), key=key)

    async def read_property(self, element: CandidateSnapshot, prop: ReadProperty) -> str:
        value = await self._run(
            "read", self._locator(element).evaluate(READ_PROPERTY_JS, prop), dom_path=element.dom_path
        )
        return "" if value is None else str(value)

    async def screenshot(self, element: Optional[CandidateSnapshot] = None) -> bytes:
        if element is not None:
            return await self._run("screenshot", self._locator(element).screenshot(), dom_path=element.dom_path)
        return await self._run("screenshot", self.page.screenshot())

    # Page actions

    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        self._frame = None
        await self._run(
            "navigate",
            self.page.goto(url, timeout=timeout_ms, wait_until="load"),
            error_cls=NavigationError,
            url=url,
        )

    async def wait_for_navigation(self, timeout_ms: Optional[int] = None) -> None:
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        page = self.page
        await self._run(
            "wait_for_navigation",
            page.wait_for_event(
                "framenavigated",
                predicate=lambda frame: frame == page.main_frame,
                timeout=timeout_ms,
            ),
            error_cls=NavigationError,
        )
        await self._run(
            "wait_for_load_state",
            page.wait_for_load_state("load", timeout=timeout_ms),
            error_cls=NavigationError,
        )

    async def current_url(self) -> str:
        return self.page.url

    async def snapshot_html(self) -> str:
        return await self._run("snapshot", self._target.evaluate(SNAPSHOT_HTML_JS))
