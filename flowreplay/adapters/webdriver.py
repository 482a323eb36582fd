"""W3C WebDriver execution context.

Talks to a WebDriver endpoint (chromedriver, geckodriver, Selenium Grid) over
plain HTTP. Each resolver poll is one ``execute/sync`` call that reports facts
for every selector of the locator.
"""

import asyncio
import base64
from typing import Any, Optional

import httpx

from ..config import ExecutionBackend
from ..errors import ActionError, NavigationError, ReplayError, ReplayTimeoutError
from ..locators.scoring import CandidateSnapshot
from .base import BackendConfig, ExecutionContext, ReadProperty
from .scripts import (
    FIND_BY_LABEL_JS,
    FIND_BY_TEXT_JS,
    FOCUS_JS,
    QUERY_CANDIDATES_JS,
    READ_PROPERTY_JS,
    READY_STATE_JS,
    SELECT_OPTION_JS,
    SET_VALUE_JS,
    SNAPSHOT_HTML_JS,
    SUBMIT_FORM_JS,
    webdriver_script,
)

ELEMENT_KEY = "element-6066-11e4-a52e-4f735466cecf"
TIMEOUT_ERRORS = ("timeout", "script timeout")
NAVIGATION_POLL_SECONDS = 0.1

# W3C WebDriver key codes for named keys
KEY_CODES = {
    "Backspace": "\ue003",
    "Tab": "\ue004",
    "Enter": "\ue007",
    "Shift": "\ue008",
    "Control": "\ue009",
    "Alt": "\ue00a",
    "Escape": "\ue00c",
    "Space": "\ue00d",
    "PageUp": "\ue00e",
    "PageDown": "\ue00f",
    "End": "\ue010",
    "Home": "\ue011",
    "ArrowLeft": "\ue012",
    "ArrowUp": "\ue013",
    "ArrowRight": "\ue014",
    "ArrowDown": "\ue015",
    "Delete": "\ue017",
    "Meta": "\ue03d",
}

BROWSER_NAMES = {"chromium": "chrome", "chrome": "chrome", "firefox": "firefox", "webkit": "safari"}

FIND_FRAME_JS = r"""(url) => {
  const frames = Array.from(document.querySelectorAll("iframe, frame"));
  return frames.find((frame) => frame.src === url) || null;
}"""


def key_code(key: str) -> str:
    """WebDriver key value for a named key or a single character."""
    return KEY_CODES.get(key, key)


class WebDriverContext(ExecutionContext):
    """Execution context driving a browser through the W3C WebDriver protocol.

    Args:
        config: Backend configuration, ``webdriver_url`` selects the endpoint
        session_id: Attach to an existing session instead of creating one
        client: Pre-built httpx client (base URL must be the endpoint)
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        session_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(config or BackendConfig(backend=ExecutionBackend.WEBDRIVER))
        self.base_url = self.config.webdriver_url
        if not self.base_url.endswith("/"):
            self.base_url = self.base_url + "/"

        self._client = client
        self._owns_client = client is None
        self._session_id = session_id
        self._owns_session = session_id is None
        self._frame_url: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    async def _ensure_client(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=httpx.Timeout(120.0),
            )

    def _capabilities(self) -> dict:
        browser = BROWSER_NAMES.get(self.config.browser_type, self.config.browser_type)
        caps: dict[str, Any] = {"browserName": browser}
        size = f"--window-size={self.config.viewport_width},{self.config.viewport_height}"
        if browser == "chrome":
            args = [size]
            if self.config.headless:
                args.append("--headless=new")
            caps["goog:chromeOptions"] = {"args": args}
        elif browser == "firefox" and self.config.headless:
            caps["moz:firefoxOptions"] = {"args": ["-headless"]}
        caps.update(self.config.extra_options.get("capabilities", {}))
        return {"capabilities": {"alwaysMatch": caps}}

    async def start(self) -> None:
        await self._ensure_client()
        if self._session_id is not None:
            return
        data = await self._request("POST", "session", self._capabilities())
        self._session_id = (data or {}).get("sessionId")
        if not self._session_id:
            raise ActionError("No session ID in WebDriver response")
        self.log.info("WebDriver session started", session_id=self._session_id)

    async def stop(self) -> None:
        if self._owns_session and self._session_id:
            try:
                await self._request("DELETE", f"session/{self._session_id}")
            except ReplayError as e:
                self.log.warning("Failed to end WebDriver session", error=str(e))
            self.log.info("WebDriver session ended", session_id=self._session_id)
            self._session_id = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict] = None,
    ) -> Any:
        """Send one protocol command and unwrap its ``value``."""
        await self._ensure_client()
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            raise ReplayTimeoutError(f"WebDriver request timed out: {path}", path=path) from e
        except httpx.HTTPError as e:
            raise ActionError(f"WebDriver request failed: {e}", path=path) from e

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            raise ActionError(
                f"WebDriver returned a non-JSON response ({response.status_code}): {response.text[:200]}",
                path=path,
                status_code=response.status_code,
            ) from e
        value = data.get("value") if isinstance(data, dict) else None
        if response.is_error:
            error = value.get("error", "unknown error") if isinstance(value, dict) else "unknown error"
            message = value.get("message", response.text) if isinstance(value, dict) else response.text
            if error in TIMEOUT_ERRORS:
                raise ReplayTimeoutError(f"WebDriver {error}: {message}", path=path, webdriver_error=error)
            raise ActionError(f"WebDriver {error}: {message}", path=path, webdriver_error=error)
        return value

    async def _command(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        if not self._session_id:
            raise ActionError("WebDriver session is not started")
        return await self._request(method, f"session/{self._session_id}/{path}", payload)

    async def _execute(self, function: str, *args: Any) -> Any:
        return await self._command(
            "POST", "execute/sync", {"script": webdriver_script(function), "args": list(args)}
        )

    async def _element_id(self, element: CandidateSnapshot) -> str:
        value = await self._command("POST", "element", {"using": "css selector", "value": element.dom_path})
        if not isinstance(value, dict) or ELEMENT_KEY not in value:
            raise ActionError(f"Element {element.dom_path} is no longer attached", dom_path=element.dom_path)
        return value[ELEMENT_KEY]

    async def _element_ref(self, element: CandidateSnapshot) -> dict:
        return {ELEMENT_KEY: await self._element_id(element)}

    async def use_frame(self, frame_id: Optional[int] = None, frame_url: Optional[str] = None) -> None:
        if frame_url == self._frame_url:
            return
        await self._command("POST", "frame", {"id": None})
        self._frame_url = None
        if frame_url is None:
            return
        frame = await self._execute(FIND_FRAME_JS, frame_url)
        if not frame:
            self.log.warning("Frame not found, using main frame", frame_url=frame_url)
            return
        await self._command("POST", "frame", {"id": frame})
        self._frame_url = frame_url

    # Queries

    async def _describe(self, script: str, arg: dict) -> list[CandidateSnapshot]:
        payload = await self._execute(script, arg)
        return [CandidateSnapshot.from_dict(item) for item in payload or []]

    async def query_candidates(self, selectors: list[str]) -> list[CandidateSnapshot]:
        return await self._describe(QUERY_CANDIDATES_JS, {"selectors": selectors})

    async def find_by_label_text(self, text: str) -> list[CandidateSnapshot]:
        return await self._describe(FIND_BY_LABEL_JS, {"text": text})

    async def find_by_text(self, text: str) -> list[CandidateSnapshot]:
        return await self._describe(FIND_BY_TEXT_JS, {"text": text})

    # Element actions

    async def click(self, element: CandidateSnapshot) -> None:
        element_id = await self._element_id(element)
        await self._command("POST", f"element/{element_id}/click", {})

    async def fill(self, element: CandidateSnapshot, value: str) -> None:
        await self._execute(SET_VALUE_JS, await self._element_ref(element), value)

    async def select_option(self, element: CandidateSnapshot, value: str) -> None:
        await self._execute(SELECT_OPTION_JS, await self._element_ref(element), value)

    async def submit_form(self, element: CandidateSnapshot) -> bool:
        return bool(await self._execute(SUBMIT_FORM_JS, await self._element_ref(element)))

    async def focus(self, element: CandidateSnapshot) -> None:
        await self._execute(FOCUS_JS, await self._element_ref(element))

    async def press_key(self, key: str, element: Optional[CandidateSnapshot] = None) -> None:
        if element is not None:
            await self.focus(element)
        code = key_code(key)
        await self._command("POST", "actions", {
            "actions": [{
                "type": "key",
                "id": "keyboard",
                "actions": [
                    {"type": "keyDown", "value": code},
                    {"type": "keyUp", "value": code},
                ],
            }]
        })
        await self._command("DELETE", "actions")

    async def read_property(self, element: CandidateSnapshot, prop: ReadProperty) -> str:
        value = await self._execute(READ_PROPERTY_JS, await self._element_ref(element), prop)
        return "" if value is None else str(value)

    async def screenshot(self, element: Optional[CandidateSnapshot] = None) -> bytes:
        if element is not None:
            element_id = await self._element_id(element)
            encoded = await self._command("GET", f"element/{element_id}/screenshot")
        else:
            encoded = await self._command("GET", "screenshot")
        return base64.b64decode(encoded)

    # Page actions

    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        await self._command("POST", "timeouts", {"pageLoad": timeout_ms})
        try:
            await self._command("POST", "url", {"url": url})
        except ReplayTimeoutError:
            raise
        except ActionError as e:
            raise NavigationError(f"Navigation to {url} failed: {e.message}", url=url) from e
        self._frame_url = None

    async def wait_for_navigation(self, timeout_ms: Optional[int] = None) -> None:
        """Wait until the URL changes and the new document finishes loading."""
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        start_url = await self.current_url()

        while True:
            url = await self.current_url()
            if url != start_url and await self._execute(READY_STATE_JS) == "complete":
                self._frame_url = None
                return
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ReplayTimeoutError(f"No navigation within {timeout_ms}ms", url=start_url)
            await asyncio.sleep(min(NAVIGATION_POLL_SECONDS, remaining))

    async def current_url(self) -> str:
        return await self._command("GET", "url")

    async def snapshot_html(self) -> str:
        return await self._execute(SNAPSHOT_HTML_JS)
