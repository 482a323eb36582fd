"""Locator resolution.

LocatorResolver turns a Locator back into one live element:

1. Query every selector of the locator in one batch per poll
2. Keep visible (and, when required, interactable) matches
3. A selector with a single distinct match wins immediately
4. Several matches are scored against the recorded metadata, deduplicated by
   DOM path, and the best one is accepted only above the confidence threshold
5. Otherwise fall back to metadata-only fuzzy search
6. Poll until the timeout, then raise a typed resolution error

RacingLocatorResolver is the simpler first-to-become-visible strategy. It
skips scoring entirely and is only chosen explicitly.
"""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog

from ..config import Settings, get_settings
from ..errors import (
    AmbiguousLocatorError,
    ElementNotFoundError,
    LocatorResolutionError,
    NotInteractableError,
)
from .dom import TEST_ID_ATTRIBUTES, quote_attr
from .models import Locator
from .scoring import (
    CandidateSnapshot,
    ScoringWeights,
    is_form_field,
    is_interactable,
    is_visible,
    matches_text,
    score_candidate,
)

if TYPE_CHECKING:
    from ..adapters.base import ExecutionContext

logger = structlog.get_logger(__name__)


@dataclass
class ResolverConfig:
    """Tunable resolution parameters."""

    timeout_ms: int = 5000
    poll_interval_ms: int = 100
    min_confidence: int = 80
    weights: ScoringWeights = field(default_factory=ScoringWeights)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ResolverConfig":
        settings = settings or get_settings()
        return cls(
            timeout_ms=settings.default_timeout_ms,
            poll_interval_ms=settings.poll_interval_ms,
            min_confidence=settings.min_confidence_score,
            weights=ScoringWeights.from_settings(settings),
        )


@dataclass
class ResolvedElement:
    """An element chosen by the resolver."""

    candidate: CandidateSnapshot
    used_selector: str
    score: int = 0
    strategy: str = "selector"

    @property
    def handle(self) -> Any:
        return self.candidate.handle

    @property
    def tag_name(self) -> str:
        return self.candidate.tag_name


@dataclass
class _Scored:
    candidate: CandidateSnapshot
    score: int

    @property
    def rank(self) -> tuple[int, int, int]:
        return (-self.score, self.candidate.selector_order, self.candidate.element_index)


@dataclass
class _Attempt:
    """Outcome of one poll."""

    resolved: Optional[ResolvedElement] = None
    pool: dict[str, _Scored] = field(default_factory=dict)
    blocked: Optional[CandidateSnapshot] = None


def _qualifier(require_visible: bool, require_interactable: bool) -> Callable[[CandidateSnapshot], bool]:
    if require_interactable:
        return is_interactable
    if require_visible:
        return is_visible
    return lambda candidate: True


def _distinct(candidates: list[CandidateSnapshot]) -> list[CandidateSnapshot]:
    seen = {}
    for candidate in candidates:
        seen.setdefault(candidate.dom_path, candidate)
    return list(seen.values())


class LocatorResolver:
    """Confidence-scored resolver shared by every execution backend."""

    def __init__(self, config: Optional[ResolverConfig] = None):
        self.config = config or ResolverConfig()
        self.log = logger.bind(component="locator_resolver")

    async def resolve(
        self,
        locator: Locator,
        context: "ExecutionContext",
        timeout_ms: Optional[int] = None,
        require_visible: bool = True,
        require_interactable: bool = False,
    ) -> ResolvedElement:
        """Resolve a locator to one element or raise a LocatorResolutionError.

        Args:
            locator: Locator recorded for the element
            context: Execution context to query
            timeout_ms: Hard ceiling for the whole resolution
            require_visible: Only accept visible elements
            require_interactable: Only accept visible, enabled elements

        Raises:
            AmbiguousLocatorError: Several candidates, none confident enough
            NotInteractableError: The element exists but cannot be acted on
            ElementNotFoundError: Nothing matched
        """
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        poll = self.config.poll_interval_ms / 1000
        qualifies = _qualifier(require_visible, require_interactable)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        attempt = _Attempt()
        polls = 0

        while True:
            polls += 1
            remaining = deadline - loop.time()
            try:
                attempt = await asyncio.wait_for(
                    self._attempt(locator, context, qualifies, require_interactable),
                    timeout=max(remaining, poll),
                )
            except asyncio.TimeoutError:
                break

            if attempt.resolved is not None:
                resolved = attempt.resolved
                self.log.debug(
                    "Locator resolved",
                    selector=resolved.used_selector,
                    strategy=resolved.strategy,
                    score=resolved.score,
                    polls=polls,
                )
                return resolved

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll, remaining))

        error = self._failure(locator, attempt, timeout_ms)
        self.log.warning("Locator resolution failed", code=error.code, polls=polls, **error.context)
        raise error

    async def _attempt(
        self,
        locator: Locator,
        context: "ExecutionContext",
        qualifies: Callable[[CandidateSnapshot], bool],
        require_interactable: bool,
    ) -> _Attempt:
        selectors = locator.selectors
        snapshots = await context.query_candidates(selectors)
        attempt = _Attempt()

        by_order: dict[int, list[CandidateSnapshot]] = {}
        for snapshot in snapshots:
            by_order.setdefault(snapshot.selector_order, []).append(snapshot)

        for order, selector in enumerate(selectors):
            matches = sorted(by_order.get(order, []), key=lambda c: c.element_index)
            qualifying = _distinct([c for c in matches if qualifies(c)])

            if not qualifying:
                if require_interactable and attempt.blocked is None:
                    visible = _distinct([c for c in matches if is_visible(c)])
                    if len(visible) == 1:
                        attempt.blocked = visible[0]
                continue

            if len(qualifying) == 1:
                only = qualifying[0]
                score = score_candidate(only, locator.metadata, self.config.weights)
                attempt.resolved = ResolvedElement(only, selector, score, "selector")
                return attempt

            for candidate in qualifying:
                scored = _Scored(candidate, score_candidate(candidate, locator.metadata, self.config.weights))
                existing = attempt.pool.get(candidate.dom_path)
                if existing is None or scored.score > existing.score:
                    attempt.pool[candidate.dom_path] = scored

            best = min((attempt.pool[c.dom_path] for c in qualifying), key=lambda s: s.rank)
            if best.score >= self.config.min_confidence:
                attempt.resolved = ResolvedElement(
                    best.candidate, best.candidate.selector or selector, best.score, "scored"
                )
                return attempt

        attempt.resolved = await self._fuzzy(locator, context, qualifies)
        return attempt

    async def _fuzzy(
        self,
        locator: Locator,
        context: "ExecutionContext",
        qualifies: Callable[[CandidateSnapshot], bool],
    ) -> Optional[ResolvedElement]:
        """Metadata-only search, in fixed order, first qualifying hit wins."""
        meta = locator.metadata
        if meta is None:
            return None

        if meta.label_text:
            hits = [
                c for c in await context.find_by_label_text(meta.label_text)
                if is_form_field(c) and qualifies(c)
            ]
            if meta.tag_name:
                hits = [c for c in hits if c.tag_name == meta.tag_name.lower()]
            if hits:
                return ResolvedElement(hits[0], hits[0].dom_path, 0, "label")

        queries: list[tuple[str, str]] = []
        if meta.test_id:
            queries.extend(("test_id", f"[{attr}={quote_attr(meta.test_id)}]") for attr in TEST_ID_ATTRIBUTES)
        if meta.placeholder:
            queries.append(("placeholder", f"[placeholder={quote_attr(meta.placeholder)}]"))
        if meta.aria_label:
            queries.append(("aria_label", f"[aria-label={quote_attr(meta.aria_label)}]"))

        by_kind: dict[str, list[CandidateSnapshot]] = {}
        if queries:
            snapshots = await context.query_candidates([selector for _, selector in queries])
            for snapshot in sorted(snapshots, key=lambda c: (c.selector_order, c.element_index)):
                kind = queries[snapshot.selector_order][0]
                by_kind.setdefault(kind, []).append(snapshot)

        text_hits: list[CandidateSnapshot] = []
        if meta.text:
            text_hits = [
                c for c in await context.find_by_text(meta.text)
                if matches_text(c, meta.text, meta.role)
            ]

        for kind in ("test_id", "text", "placeholder", "aria_label"):
            candidates = text_hits if kind == "text" else by_kind.get(kind, [])
            for candidate in candidates:
                if qualifies(candidate):
                    return ResolvedElement(candidate, candidate.selector or candidate.dom_path, 0, kind)
        return None

    def _failure(self, locator: Locator, attempt: _Attempt, timeout_ms: int) -> LocatorResolutionError:
        selectors = locator.selectors
        metadata = locator.metadata.to_dict() if locator.metadata else {}

        if attempt.pool:
            best = max(scored.score for scored in attempt.pool.values())
            return AmbiguousLocatorError(
                f"Ambiguous locator: {len(attempt.pool)} candidates, best score {best} "
                f"(threshold {self.config.min_confidence}). {locator.describe()}",
                selectors_tried=selectors,
                candidate_count=len(attempt.pool),
                best_score=best,
                timeout_ms=timeout_ms,
                metadata=metadata,
            )
        if attempt.blocked is not None:
            return NotInteractableError(
                f"Element {attempt.blocked.dom_path} is not interactable. {locator.describe()}",
                selectors_tried=selectors,
                dom_path=attempt.blocked.dom_path,
                timeout_ms=timeout_ms,
                metadata=metadata,
            )
        return ElementNotFoundError(
            f"Element not found within {timeout_ms}ms. {locator.describe()}",
            selectors_tried=selectors,
            timeout_ms=timeout_ms,
            metadata=metadata,
        )


class RacingLocatorResolver:
    """Races every selector and takes the first qualifying match.

    No scoring or deduplication: only suitable when each selector is expected
    to match a single element.
    """

    def __init__(self, config: Optional[ResolverConfig] = None):
        self.config = config or ResolverConfig()
        self.log = logger.bind(component="racing_resolver")

    async def resolve(
        self,
        locator: Locator,
        context: "ExecutionContext",
        timeout_ms: Optional[int] = None,
        require_visible: bool = True,
        require_interactable: bool = False,
    ) -> ResolvedElement:
        timeout_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        poll = self.config.poll_interval_ms / 1000
        qualifies = _qualifier(require_visible, require_interactable)

        async def watch(selector: str) -> ResolvedElement:
            while True:
                for candidate in await context.query_candidates([selector]):
                    if qualifies(candidate):
                        return ResolvedElement(candidate, selector, 0, "race")
                await asyncio.sleep(poll)

        tasks = [asyncio.create_task(watch(selector)) for selector in locator.selectors]
        try:
            done, _ = await asyncio.wait(
                tasks, timeout=timeout_ms / 1000, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if not done:
            error = ElementNotFoundError(
                f"No selector became visible within {timeout_ms}ms. {locator.describe()}",
                selectors_tried=locator.selectors,
                timeout_ms=timeout_ms,
            )
            self.log.warning("Race resolution failed", code=error.code, selectors=locator.selectors)
            raise error

        winner = min(done, key=tasks.index)
        return winner.result()
