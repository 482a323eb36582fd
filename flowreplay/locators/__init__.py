"""Locator generation and resolution."""

from .generator import LocatorGenerator, generate_from_snapshot, generate_locator
from .models import FormContext, Locator, LocatorMetadata
from .resolver import LocatorResolver, RacingLocatorResolver, ResolvedElement, ResolverConfig
from .scoring import (
    CandidateSnapshot,
    ScoringWeights,
    is_interactable,
    is_visible,
    score_candidate,
)

__all__ = [
    "LocatorGenerator",
    "generate_from_snapshot",
    "generate_locator",
    "FormContext",
    "Locator",
    "LocatorMetadata",
    "LocatorResolver",
    "RacingLocatorResolver",
    "ResolvedElement",
    "ResolverConfig",
    "CandidateSnapshot",
    "ScoringWeights",
    "is_interactable",
    "is_visible",
    "score_candidate",
]
