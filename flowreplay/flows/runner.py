"""Flow runner.

Runs the steps of a flow strictly in order against one execution context:

1. Implicit navigation to the first step's URL when the context is blank
2. For each step: check the stop signal, honor the inter-step delay,
   report progress, dispatch to the handler for the step type
3. Record extracted data under the step index
4. Stop at the first failure unless stop_on_error is disabled

Every failure inside a step becomes a failed ExecutionResult carrying the
error code; nothing raised by a handler escapes ``run_step``.
"""

import asyncio
import base64
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

import structlog

from ..adapters.base import ExecutionContext
from ..config import Settings, get_settings
from ..errors import ActionError, ExtractionError, ReplayError
from ..locators.resolver import LocatorResolver, RacingLocatorResolver, ResolvedElement, ResolverConfig
from ..utils.logging import LogContext
from ..utils.urls import is_blank_page
from .extraction import source_property, transform_extracted
from .models import BaseStep, ExecutionResult, ExtractProp, Flow, RunResult, StepType
from .templating import substitute_variables
from .transport import (
    FlowFailedMessage,
    LoggingReporter,
    RunMessage,
    RunReporter,
    StepCompletedMessage,
    StepExecutingMessage,
    StopSignal,
)
from .validation import ensure_valid

logger = structlog.get_logger(__name__)

TEXT_CONTROL_TAGS = ("input", "textarea")
STOPPED_CODE = "STOPPED"

Resolver = Union[LocatorResolver, RacingLocatorResolver]
StepHandler = Callable[[BaseStep, ExecutionContext, "RunOptions"], Awaitable[ExecutionResult]]


@dataclass
class RunOptions:
    """Per-run execution options."""

    timeout_ms: int = 5000
    navigation_timeout_ms: int = 30000
    stop_on_error: bool = True
    step_delay_ms: int = 0
    variables: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides) -> "RunOptions":
        settings = settings or get_settings()
        values = {
            "timeout_ms": settings.default_timeout_ms,
            "navigation_timeout_ms": settings.navigation_timeout_ms,
            "stop_on_error": settings.stop_on_error,
            "step_delay_ms": settings.step_delay_ms,
        }
        values.update(overrides)
        return cls(**values)


class FlowRunner:
    """Replays flows through a resolver against an execution context.

    Args:
        resolver: Locator resolver, the scored LocatorResolver by default
        reporter: Receives progress messages, logging by default
        settings: Source of default options and resolver tuning
    """

    def __init__(
        self,
        resolver: Optional[Resolver] = None,
        reporter: Optional[RunReporter] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.resolver = resolver or LocatorResolver(ResolverConfig.from_settings(settings))
        self.reporter = reporter or LoggingReporter()
        self.default_options = RunOptions.from_settings(settings)
        self.log = logger.bind(component="flow_runner")

        self._handlers: dict[StepType, StepHandler] = {
            StepType.NAVIGATE: self._navigate,
            StepType.CLICK: self._click,
            StepType.TYPE: self._type,
            StepType.SELECT: self._select,
            StepType.EXTRACT: self._extract,
            StepType.WAIT_FOR: self._wait_for,
            StepType.WAIT_FOR_NAVIGATION: self._wait_for_navigation,
            StepType.KEYBOARD: self._keyboard,
            StepType.SCREENSHOT: self._screenshot,
        }
        missing = set(StepType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for step types: {sorted(t.value for t in missing)}")

    async def run(
        self,
        flow: Flow,
        context: ExecutionContext,
        options: Optional[RunOptions] = None,
        stop_signal: Optional[StopSignal] = None,
    ) -> RunResult:
        """Execute every step of a flow and aggregate the results.

        With stop_on_error disabled every step runs and the run succeeds;
        failed steps are reported only through their step results.
        """
        options = options or self.default_options
        total = len(flow.steps)
        extracted: dict[int, object] = {}
        results: list[ExecutionResult] = []

        with LogContext(flow_id=flow.id):
            self.log.info("Flow run started", title=flow.title, steps=total)

            try:
                await self._implicit_navigation(flow, context, options)
            except ReplayError as e:
                self.log.warning("Implicit navigation failed", error=e.message)
                return await self._fail(
                    RunResult(
                        success=False,
                        error=e.message,
                        error_code=e.code,
                        failed_step_index=0,
                        extracted_data=extracted,
                        step_results=results,
                    ),
                    flow,
                )

            for index, step in enumerate(flow.steps):
                if stop_signal is not None and stop_signal.is_set():
                    self.log.info("Flow run stopped", step_index=index, reason=stop_signal.reason)
                    return RunResult(
                        success=False,
                        error=f"Run stopped before step {index}",
                        error_code=STOPPED_CODE,
                        failed_step_index=index,
                        extracted_data=extracted,
                        step_results=results,
                        stopped=True,
                    )

                if index > 0 and options.step_delay_ms > 0:
                    await asyncio.sleep(options.step_delay_ms / 1000)

                await self._report(StepExecutingMessage(
                    step=step.to_dict(),
                    step_index=index,
                    total_steps=total,
                    current_url=await self._current_url(context),
                ))
                result = await self.run_step(step, context, options, index=index)
                results.append(result)
                await self._report(StepCompletedMessage(step_index=index, result=result.to_dict()))

                if result.success:
                    if result.extracted_data is not None:
                        extracted[index] = result.extracted_data
                    continue

                if options.stop_on_error:
                    return await self._fail(
                        RunResult(
                            success=False,
                            error=result.error,
                            error_code=result.error_code,
                            failed_step_index=index,
                            extracted_data=extracted,
                            step_results=results,
                        ),
                        flow,
                    )
                self.log.warning("Step failed, continuing", step_index=index, error=result.error)

            failed = sum(1 for result in results if not result.success)
            self.log.info("Flow run completed", steps=total, failed=failed, extracted=len(extracted))
            return RunResult(success=True, extracted_data=extracted, step_results=results)

    async def _fail(self, result: RunResult, flow: Flow) -> RunResult:
        index = result.failed_step_index
        failed_step = flow.steps[index].to_dict() if index is not None and index < len(flow.steps) else None
        self.log.warning("Flow run failed", failed_step_index=index, error=result.error, code=result.error_code)
        await self._report(FlowFailedMessage(
            error=result.error or "Unknown error",
            error_code=result.error_code,
            failed_step_index=index,
            failed_step=failed_step,
        ))
        return result

    async def _report(self, message: RunMessage) -> None:
        try:
            await self.reporter.send(message)
        except ReplayError as e:
            self.log.warning("Could not report progress", message_type=message.type, code=e.code, error=e.message)

    async def _current_url(self, context: ExecutionContext) -> Optional[str]:
        """Current page URL for progress reporting, None when the backend cannot tell."""
        try:
            return await context.current_url()
        except ReplayError as e:
            self.log.warning("Could not read current URL", code=e.code, error=e.message)
            return None

    async def _implicit_navigation(self, flow: Flow, context: ExecutionContext, options: RunOptions) -> None:
        """Load the first step's page when the context is still blank."""
        if not flow.steps:
            return
        first = flow.steps[0]
        if first.step_type == StepType.NAVIGATE:
            return
        url = first.url or flow.start_url
        if not url or not is_blank_page(await context.current_url()):
            return
        self.log.info("Implicit navigation", url=url)
        await context.navigate(url, timeout_ms=options.navigation_timeout_ms)

    async def run_step(
        self,
        step: BaseStep,
        context: ExecutionContext,
        options: Optional[RunOptions] = None,
        index: Optional[int] = None,
    ) -> ExecutionResult:
        """Execute one step, converting any failure into a failed result."""
        options = options or self.default_options
        start = time.time()
        log = self.log.bind(step_index=index, step_type=step.type)

        try:
            ensure_valid(step, index)
            await context.use_frame(step.frame_id, step.frame_url)
            result = await self._handlers[step.step_type](step, context, options)
        except ReplayError as e:
            log.warning("Step failed", code=e.code, error=e.message)
            return ExecutionResult(
                success=False,
                error=e.message,
                error_code=e.code,
                duration_ms=int((time.time() - start) * 1000),
            )
        except Exception as e:
            log.exception("Unexpected error in step", error=str(e))
            return ExecutionResult(
                success=False,
                error=str(e),
                error_code=ActionError.code,
                duration_ms=int((time.time() - start) * 1000),
            )

        result.duration_ms = int((time.time() - start) * 1000)
        log.debug("Step completed", duration_ms=result.duration_ms, selector=result.used_selector)
        return result

    def _timeout(self, step: BaseStep, default_ms: int) -> int:
        return step.timeout_ms if step.timeout_ms is not None else default_ms

    async def _resolve(
        self,
        step: BaseStep,
        context: ExecutionContext,
        options: RunOptions,
        require_interactable: bool = False,
    ) -> ResolvedElement:
        return await self.resolver.resolve(
            step.locator,
            context,
            timeout_ms=self._timeout(step, options.timeout_ms),
            require_visible=True,
            require_interactable=require_interactable,
        )

    # Step handlers

    async def _navigate(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        await context.navigate(step.url, timeout_ms=self._timeout(step, options.navigation_timeout_ms))
        return ExecutionResult(success=True)

    async def _click(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        element = await self._resolve(step, context, options, require_interactable=True)
        await context.click(element.candidate)
        return ExecutionResult(success=True, used_selector=element.used_selector)

    async def _type(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        element = await self._resolve(step, context, options, require_interactable=True)
        if element.tag_name not in TEXT_CONTROL_TAGS:
            raise ActionError(f"<{element.tag_name}> is not a text control", dom_path=element.candidate.dom_path)

        text = substitute_variables(step.value_to_type or "", options.variables)
        await context.fill(element.candidate, text)

        if step.submit:
            if not await context.submit_form(element.candidate):
                await context.press_key("Enter", element.candidate)
        return ExecutionResult(success=True, used_selector=element.used_selector)

    async def _select(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        element = await self._resolve(step, context, options, require_interactable=True)
        if element.tag_name != "select":
            raise ActionError(f"<{element.tag_name}> is not a select control", dom_path=element.candidate.dom_path)
        await context.select_option(element.candidate, step.value)
        return ExecutionResult(success=True, used_selector=element.used_selector)

    async def _extract(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        element = await self._resolve(step, context, options)
        prop = ExtractProp(step.prop or ExtractProp.INNER_TEXT.value)
        try:
            raw = await context.read_property(element.candidate, source_property(prop))
        except ActionError as e:
            raise ExtractionError(f"Failed to read {prop.value}: {e.message}", prop=prop.value) from e
        data = transform_extracted(raw, prop)
        return ExecutionResult(success=True, extracted_data=data, used_selector=element.used_selector)

    async def _wait_for(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        if step.locator is None:
            await asyncio.sleep(step.timeout_ms / 1000)
            return ExecutionResult(success=True)
        element = await self._resolve(step, context, options)
        return ExecutionResult(success=True, used_selector=element.used_selector)

    async def _wait_for_navigation(
        self, step: BaseStep, context: ExecutionContext, options: RunOptions
    ) -> ExecutionResult:
        await context.wait_for_navigation(self._timeout(step, options.navigation_timeout_ms))
        return ExecutionResult(success=True)

    async def _keyboard(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        element = None
        if step.locator is not None:
            element = await self._resolve(step, context, options)
            await context.focus(element.candidate)
        await context.press_key(step.key, element.candidate if element else None)
        return ExecutionResult(success=True, used_selector=element.used_selector if element else None)

    async def _screenshot(self, step: BaseStep, context: ExecutionContext, options: RunOptions) -> ExecutionResult:
        element = await self._resolve(step, context, options) if step.locator is not None else None
        image = await context.screenshot(element.candidate if element else None)
        return ExecutionResult(
            success=True,
            extracted_data=base64.b64encode(image).decode("ascii"),
            used_selector=element.used_selector if element else None,
        )
