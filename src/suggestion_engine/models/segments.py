"""Derived view models: highlight segments and navigation context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from suggestion_engine.models.suggestion import Suggestion


@dataclass(frozen=True)
class HighlightSegment:
    """A contiguous slice of the document, either plain text or one highlight."""

    text: str
    kind: Literal["text", "highlight"]
    start_offset: int
    end_offset: int
    suggestion: Suggestion | None = None
    is_active: bool = False

    @property
    def is_highlight(self) -> bool:
        return self.kind == "highlight"

    @property
    def suggestion_id(self) -> str | None:
        return self.suggestion.id if self.suggestion is not None else None


@dataclass(frozen=True)
class NavigationContext:
    current_index: int
    total_count: int
    has_next: bool
    has_previous: bool


EMPTY_NAVIGATION = NavigationContext(current_index=0, total_count=0, has_next=False, has_previous=False)
