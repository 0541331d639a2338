"""Data models for the suggestion engine."""

from suggestion_engine.models.resolution import (
    ActionKind,
    ActionStatus,
    BatchPriority,
    BatchRequest,
    ResolutionAction,
    ResolutionStats,
)
from suggestion_engine.models.segments import HighlightSegment, NavigationContext
from suggestion_engine.models.suggestion import (
    Suggestion,
    SuggestionPriority,
    SuggestionType,
)

__all__ = [
    "ActionKind",
    "ActionStatus",
    "BatchPriority",
    "BatchRequest",
    "HighlightSegment",
    "NavigationContext",
    "ResolutionAction",
    "ResolutionStats",
    "Suggestion",
    "SuggestionPriority",
    "SuggestionType",
]
