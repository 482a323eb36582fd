"""Error taxonomy for locator resolution and flow replay.

Every error carries a stable ``code`` that ends up in ExecutionResult and
RunResult, plus a ``context`` dict with whatever is needed to diagnose a
failure without replaying it (selectors tried, scores, step index).
"""

from typing import Any, Optional


class ReplayError(Exception):
    """Base exception for replay failures."""

    code = "REPLAY_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.context}


class ReplayTimeoutError(ReplayError, TimeoutError):
    """Navigation, waitFor or resolution exceeded its bound."""

    code = "TIMEOUT"


class LocatorResolutionError(ReplayTimeoutError):
    """No qualifying element could be resolved before the timeout."""

    code = "LOCATOR_RESOLUTION"

    def __init__(self, message: str, selectors_tried: Optional[list[str]] = None, **context: Any):
        super().__init__(message, selectors_tried=list(selectors_tried or []), **context)
        self.selectors_tried = list(selectors_tried or [])


class ElementNotFoundError(LocatorResolutionError):
    """No selector, fuzzy fallback included, produced a visible candidate."""

    code = "ELEMENT_NOT_FOUND"


class AmbiguousLocatorError(LocatorResolutionError):
    """Candidates existed but none reached the confidence threshold."""

    code = "AMBIGUOUS_LOCATOR"

    def __init__(
        self,
        message: str,
        selectors_tried: Optional[list[str]] = None,
        candidate_count: int = 0,
        best_score: int = 0,
        **context: Any,
    ):
        super().__init__(
            message,
            selectors_tried=selectors_tried,
            candidate_count=candidate_count,
            best_score=best_score,
            **context,
        )
        self.candidate_count = candidate_count
        self.best_score = best_score


class NotInteractableError(LocatorResolutionError):
    """A unique element was found but is disabled, hidden or ignores pointer events."""

    code = "NOT_INTERACTABLE"


class NavigationError(ReplayError):
    """Implicit or explicit navigation could not complete."""

    code = "NAVIGATION_FAILURE"


class InvalidStepError(ReplayError):
    """A step is missing the fields its type requires."""

    code = "INVALID_STEP"


class ExtractionError(ReplayError):
    """The extraction transform failed."""

    code = "EXTRACTION_FAILURE"


class ActionError(ReplayError):
    """A primitive action failed inside the execution backend."""

    code = "ACTION_FAILURE"
