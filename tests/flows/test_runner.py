"""Tests for the flow runner."""

from unittest.mock import AsyncMock, patch

import pytest

from flowreplay.adapters.base import ExecutionContext
from flowreplay.adapters.document import DocumentContext
from flowreplay.config import Settings
from flowreplay.errors import ActionError
from flowreplay.flows.models import Flow, StepType, parse_step
from flowreplay.flows.runner import STOPPED_CODE, FlowRunner, RunOptions
from flowreplay.flows.transport import CollectingReporter, StepCompletedMessage, StopSignal

LOGIN_URL = "https://example.com/login"
HELP_URL = "https://example.com/help"
HELP_PAGE = "<html><body><h1 id=\"help\">How can we help?</h1></body></html>"


def make_flow(*steps: dict, **kwargs) -> Flow:
    return Flow.new(**kwargs).model_copy(update={"steps": [parse_step(step) for step in steps]})


def locator(primary: str, *fallbacks: str) -> dict:
    return {"primary": primary, "fallbacks": list(fallbacks)}


def mock_context(url: str = LOGIN_URL) -> AsyncMock:
    context = AsyncMock(spec=ExecutionContext)
    context.current_url.return_value = url
    return context


class TestFlowScenarios:
    """End-to-end runs against the login page."""

    @pytest.mark.asyncio
    async def test_type_and_submit(self, runner, login_context, run_options):
        """Typing with submit fills the field and submits the form once."""
        flow = make_flow({
            "type": "type",
            "locator": locator("input[name=\"password\"]"),
            "text": "******",
            "originalText": "secret",
            "submit": True,
        })

        result = await runner.run(flow, login_context, run_options)

        assert result.success
        assert len(login_context.events_of("submit")) == 1
        assert login_context.soup.select_one("input[name=\"password\"]")["value"] == "secret"

    @pytest.mark.asyncio
    async def test_extract_then_missing_element(self, runner, login_context, run_options):
        flow = make_flow(
            {"type": "extract", "locator": locator("#title"), "prop": "innerText"},
            {"type": "click", "locator": locator("#does-not-exist"), "timeoutMs": 100},
            {"type": "click", "locator": locator("[data-testid=\"sign-in\"]")},
        )

        result = await runner.run(flow, login_context, run_options)

        assert not result.success
        assert result.failed_step_index == 1
        assert result.error_code == "ELEMENT_NOT_FOUND"
        assert result.extracted_data == {0: "Welcome back"}
        assert result.to_dict()["extractedData"] == {"0": "Welcome back"}
        assert len(result.step_results) == 2
        assert login_context.events_of("click") == []

    @pytest.mark.asyncio
    async def test_type_then_extract_value(self, runner, login_context, run_options):
        flow = make_flow(
            {"type": "type", "locator": locator("#email"), "text": "abc"},
            {"type": "extract", "locator": locator("#email"), "prop": "value"},
        )

        result = await runner.run(flow, login_context, run_options)

        assert result.success
        assert result.extracted_data == {1: "abc"}
        assert [r.used_selector for r in result.step_results] == ["#email", "#email"]

    @pytest.mark.asyncio
    async def test_extract_prefilled_value(self, runner, run_options):
        context = DocumentContext('<input id="q" value="abc">', url="https://example.com/")
        flow = make_flow({"type": "extract", "locator": locator("#q"), "prop": "value"})

        result = await runner.run(flow, context, run_options)

        assert result.success
        assert result.extracted_data == {0: "abc"}

    @pytest.mark.asyncio
    async def test_variables_substituted(self, runner, login_context, run_options):
        flow = make_flow({"type": "type", "locator": locator("#email"), "text": "{{user}}@example.com"})
        run_options.variables = {"user": "ada"}

        result = await runner.run(flow, login_context, run_options)

        assert result.success
        assert login_context.soup.select_one("#email")["value"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_empty_flow_succeeds(self, runner, login_context, run_options):
        result = await runner.run(make_flow(), login_context, run_options)

        assert result.success
        assert result.step_results == []


class TestRunPolicy:
    """Tests for error policy, stop requests and delays."""

    @pytest.mark.asyncio
    async def test_continue_on_error_succeeds(self, runner, reporter, login_context, run_options):
        """Failed steps are only visible in the step results."""
        flow = make_flow(
            {"type": "extract", "locator": locator("#title")},
            {"type": "click", "locator": locator("#gone"), "timeoutMs": 50},
            {"type": "extract", "locator": locator("#title")},
        )
        run_options.stop_on_error = False

        result = await runner.run(flow, login_context, run_options)

        assert result.success
        assert result.failed_step_index is None
        assert result.error is None
        assert result.extracted_data == {0: "Welcome back", 2: "Welcome back"}
        assert [r.success for r in result.step_results] == [True, False, True]
        assert result.step_results[1].error_code == "ELEMENT_NOT_FOUND"
        assert reporter.of_type("FLOW_FAILED") == []

    @pytest.mark.asyncio
    async def test_stop_before_run(self, runner, login_context, run_options):
        signal = StopSignal()
        signal.stop("user")

        result = await runner.run(
            make_flow({"type": "extract", "locator": locator("#title")}), login_context, run_options, signal
        )

        assert result.stopped
        assert result.error_code == STOPPED_CODE
        assert result.failed_step_index == 0
        assert result.step_results == []

    @pytest.mark.asyncio
    async def test_stop_between_steps(self, resolver, login_context, run_options):
        signal = StopSignal()

        class StoppingReporter(CollectingReporter):
            async def send(self, message):
                await super().send(message)
                if isinstance(message, StepCompletedMessage):
                    signal.stop()

        runner = FlowRunner(resolver=resolver, reporter=StoppingReporter())
        flow = make_flow(
            {"type": "extract", "locator": locator("#title")},
            {"type": "click", "locator": locator("[data-testid=\"sign-in\"]")},
        )

        result = await runner.run(flow, login_context, run_options, signal)

        assert result.stopped
        assert result.failed_step_index == 1
        assert result.extracted_data == {0: "Welcome back"}
        assert len(result.step_results) == 1
        assert login_context.events_of("click") == []

    @pytest.mark.asyncio
    async def test_step_delay_between_steps(self, runner, login_context, run_options):
        flow = make_flow({"type": "keyboard", "key": "a"}, {"type": "keyboard", "key": "b"})
        run_options.step_delay_ms = 250

        with patch("flowreplay.flows.runner.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await runner.run(flow, login_context, run_options)

        assert result.success
        sleep.assert_awaited_once_with(0.25)

    @pytest.mark.asyncio
    async def test_message_order(self, runner, reporter, login_context, run_options):
        flow = make_flow(
            {"type": "extract", "locator": locator("#title")},
            {"type": "click", "locator": locator("#gone"), "timeoutMs": 50},
        )

        await runner.run(flow, login_context, run_options)

        assert [m.type for m in reporter.messages] == [
            "STEP_EXECUTING", "STEP_COMPLETED", "STEP_EXECUTING", "STEP_COMPLETED", "FLOW_FAILED",
        ]
        executing = reporter.messages[0].to_dict()
        assert executing["totalSteps"] == 2
        assert executing["currentUrl"] == LOGIN_URL
        failed = reporter.messages[-1].to_dict()
        assert failed["failedStepIndex"] == 1
        assert failed["failedStep"]["locator"]["primary"] == "#gone"


class TestBackendFailures:
    """Backend errors outside a step still produce a RunResult."""

    @pytest.mark.asyncio
    async def test_current_url_failure_during_run(self, runner, reporter, login_context, run_options):
        flow = make_flow({"type": "extract", "locator": locator("#title")})
        dead_session = AsyncMock(side_effect=ActionError("WebDriver invalid session id"))

        with patch.object(login_context, "current_url", dead_session):
            result = await runner.run(flow, login_context, run_options)

        assert result.success
        assert result.extracted_data == {0: "Welcome back"}
        assert reporter.of_type("STEP_EXECUTING")[0].current_url is None

    @pytest.mark.asyncio
    async def test_current_url_failure_before_implicit_navigation(self, runner, reporter, run_options):
        context = mock_context()
        context.current_url.side_effect = ActionError("WebDriver invalid session id")
        flow = make_flow({"type": "click", "locator": locator("#go"), "url": LOGIN_URL})

        result = await runner.run(flow, context, run_options)

        assert not result.success
        assert result.failed_step_index == 0
        assert result.error_code == "ACTION_FAILURE"
        assert [m.type for m in reporter.messages] == ["FLOW_FAILED"]
        context.navigate.assert_not_awaited()


class TestImplicitNavigation:
    """Tests for loading the first page of a flow."""

    @pytest.mark.asyncio
    async def test_navigates_when_blank(self, runner, login_html, run_options):
        context = DocumentContext(pages={LOGIN_URL: login_html})
        flow = make_flow({"type": "extract", "locator": locator("#title"), "url": LOGIN_URL})

        result = await runner.run(flow, context, run_options)

        assert result.success
        assert context.url == LOGIN_URL
        assert result.extracted_data == {0: "Welcome back"}

    @pytest.mark.asyncio
    async def test_uses_start_url(self, runner, run_options):
        context = DocumentContext(pages={HELP_URL: HELP_PAGE})
        flow = make_flow({"type": "extract", "locator": locator("#help")}, start_url=HELP_URL)

        result = await runner.run(flow, context, run_options)

        assert result.extracted_data == {0: "How can we help?"}

    @pytest.mark.asyncio
    async def test_failure_reported_at_first_step(self, runner, reporter, run_options):
        flow = make_flow({"type": "click", "locator": locator("#go"), "url": LOGIN_URL})

        result = await runner.run(flow, DocumentContext(), run_options)

        assert not result.success
        assert result.error_code == "NAVIGATION_FAILURE"
        assert result.failed_step_index == 0
        assert result.step_results == []
        assert [m.type for m in reporter.messages] == ["FLOW_FAILED"]

    @pytest.mark.asyncio
    async def test_skipped_when_page_loaded(self, runner, login_context, run_options):
        flow = make_flow({"type": "extract", "locator": locator("#title"), "url": HELP_URL})

        result = await runner.run(flow, login_context, run_options)

        assert result.success
        assert login_context.url == LOGIN_URL


class TestStepHandlers:
    """Tests for individual step types through run_step."""

    @pytest.mark.asyncio
    async def test_type_on_button_fails(self, runner, login_context, run_options):
        step = parse_step({"type": "type", "locator": locator("[data-testid=\"sign-in\"]"), "text": "x"})

        result = await runner.run_step(step, login_context, run_options)

        assert not result.success
        assert result.error_code == "ACTION_FAILURE"

    @pytest.mark.asyncio
    async def test_submit_outside_form_presses_enter(self, runner, run_options):
        context = DocumentContext('<input id="q" type="text">', url="https://example.com/")
        step = parse_step({"type": "type", "locator": locator("#q"), "text": "shoes", "submit": True})

        result = await runner.run_step(step, context, run_options)

        assert result.success
        assert context.events_of("submit") == []
        assert context.events_of("keydown")[0].detail == {"key": "Enter"}

    @pytest.mark.asyncio
    async def test_select(self, runner, run_options):
        context = DocumentContext(
            '<select id="size"><option value="s">Small</option><option value="m">Medium</option></select>',
            url="https://example.com/",
        )
        step = parse_step({"type": "select", "locator": locator("#size"), "value": "m"})

        result = await runner.run_step(step, context, run_options)

        assert result.success
        assert await context.read_property(context.snapshot(context.soup.select_one("#size")), "value") == "m"
        assert [e.type for e in context.events] == ["input", "change"]

    @pytest.mark.asyncio
    async def test_select_on_input_fails(self, runner, login_context, run_options):
        step = parse_step({"type": "select", "locator": locator("#email"), "value": "m"})

        result = await runner.run_step(step, login_context, run_options)

        assert result.error_code == "ACTION_FAILURE"

    @pytest.mark.asyncio
    async def test_wait_for_duration(self, runner, login_context, run_options):
        result = await runner.run_step(parse_step({"type": "waitFor", "timeoutMs": 10}), login_context, run_options)

        assert result.success
        assert result.used_selector is None

    @pytest.mark.asyncio
    async def test_wait_for_element(self, runner, login_context, run_options):
        step = parse_step({"type": "waitFor", "locator": locator("#title")})

        result = await runner.run_step(step, login_context, run_options)

        assert result.success
        assert result.used_selector == "#title"

    @pytest.mark.asyncio
    async def test_keyboard_on_element(self, runner, login_context, run_options):
        step = parse_step({"type": "keyboard", "locator": locator("#email"), "key": "Enter"})

        result = await runner.run_step(step, login_context, run_options)

        assert result.success
        assert [e.type for e in login_context.events] == ["focus", "keydown", "keyup", "submit"]

    @pytest.mark.asyncio
    async def test_navigate(self, runner, run_options):
        context = DocumentContext(pages={HELP_URL: HELP_PAGE})

        result = await runner.run_step(parse_step({"type": "navigate", "url": HELP_URL}), context, run_options)

        assert result.success
        assert await context.current_url() == HELP_URL

    @pytest.mark.asyncio
    async def test_navigate_unknown_page(self, runner, run_options):
        step = parse_step({"type": "navigate", "url": HELP_URL})

        result = await runner.run_step(step, DocumentContext(), run_options)

        assert result.error_code == "NAVIGATION_FAILURE"

    @pytest.mark.asyncio
    async def test_wait_for_navigation_after_link(self, runner, login_html, run_options):
        context = DocumentContext(login_html, url=LOGIN_URL, pages={HELP_URL: HELP_PAGE})
        flow = make_flow(
            {"type": "click", "locator": locator("a[href=\"/help\"]")},
            {"type": "waitForNavigation"},
            {"type": "extract", "locator": locator("#help")},
        )

        result = await runner.run(flow, context, run_options)

        assert result.success
        assert result.extracted_data == {2: "How can we help?"}

    @pytest.mark.asyncio
    async def test_wait_for_navigation_times_out(self, runner, login_context, run_options):
        step = parse_step({"type": "waitForNavigation", "timeoutMs": 50})

        result = await runner.run_step(step, login_context, run_options)

        assert result.error_code == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_screenshot(self, runner, run_options):
        context = mock_context()
        context.screenshot.return_value = b"png"

        result = await runner.run(make_flow({"type": "screenshot"}), context, run_options)

        assert result.success
        assert result.extracted_data == {0: "cG5n"}
        context.screenshot.assert_awaited_once_with(None)

    @pytest.mark.asyncio
    async def test_screenshot_unsupported_by_document(self, runner, login_context, run_options):
        result = await runner.run_step(parse_step({"type": "screenshot"}), login_context, run_options)

        assert result.error_code == "ACTION_FAILURE"

    @pytest.mark.asyncio
    async def test_invalid_step(self, runner, login_context, run_options):
        result = await runner.run_step(parse_step({"type": "click"}), login_context, run_options, index=4)

        assert not result.success
        assert result.error_code == "INVALID_STEP"

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, runner, run_options):
        context = mock_context()
        context.navigate.side_effect = RuntimeError("boom")

        result = await runner.run_step(parse_step({"type": "navigate", "url": HELP_URL}), context, run_options)

        assert not result.success
        assert result.error == "boom"
        assert result.error_code == "ACTION_FAILURE"

    @pytest.mark.asyncio
    async def test_read_failure_is_extraction_failure(self, runner, login_context, run_options):
        step = parse_step({"type": "extract", "locator": locator("#title")})

        with patch.object(login_context, "read_property", AsyncMock(side_effect=ActionError("detached"))):
            result = await runner.run_step(step, login_context, run_options)

        assert result.error_code == "EXTRACTION_FAILURE"
        assert "detached" in result.error

    @pytest.mark.asyncio
    async def test_frame_selected_before_step(self, runner, login_context, run_options):
        step = parse_step({
            "type": "extract",
            "locator": locator("#title"),
            "_frameId": 2,
            "_frameUrl": "https://example.com/frame",
        })

        with patch.object(login_context, "use_frame", AsyncMock()) as use_frame:
            result = await runner.run_step(step, login_context, run_options)

        assert result.success
        use_frame.assert_awaited_once_with(2, "https://example.com/frame")


class TestRunnerSetup:
    """Tests for runner construction and options."""

    def test_handlers_cover_every_step_type(self, runner):
        assert set(runner._handlers) == set(StepType)

    def test_options_from_settings(self):
        settings = Settings(default_timeout_ms=1000, navigation_timeout_ms=2000, stop_on_error=False)

        options = RunOptions.from_settings(settings, step_delay_ms=5)

        assert options.timeout_ms == 1000
        assert options.navigation_timeout_ms == 2000
        assert options.stop_on_error is False
        assert options.step_delay_ms == 5
        assert options.variables == {}

    def test_default_options_from_settings(self):
        runner = FlowRunner(settings=Settings(default_timeout_ms=750))

        assert runner.default_options.timeout_ms == 750
        assert runner.resolver.config.timeout_ms == 750
