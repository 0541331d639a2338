"""Active suggestion tracking, navigation and auto-advance."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Literal

from suggestion_engine.engine.scheduler import TaskScheduler
from suggestion_engine.models.segments import EMPTY_NAVIGATION, NavigationContext
from suggestion_engine.models.suggestion import Suggestion

logger = logging.getLogger(__name__)

AUTO_ADVANCE_TASK = "auto-advance"

ManagerState = Literal["idle", "active", "advancing"]


def _text_order(suggestion: Suggestion) -> tuple[int, int, str]:
    return (suggestion.start_offset, suggestion.end_offset, suggestion.id)


class ActiveSuggestionManager:
    """Keeps one suggestion in focus and moves through the unresolved ones.

    Navigation never wraps: stepping past either end returns ``False`` and
    leaves the active suggestion unchanged. Resolving the active suggestion
    moves focus to the one right after it (or the first, if none follows),
    optionally after ``auto_advance_delay`` seconds.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        *,
        enable_auto_advance: bool = True,
        auto_advance_delay: float = 0.3,
        on_active_suggestion_change: Callable[[str | None], None] | None = None,
        on_suggestion_resolved: Callable[[str, int], None] | None = None,
        on_all_suggestions_resolved: Callable[[], None] | None = None,
    ):
        self.scheduler = scheduler
        self.enable_auto_advance = enable_auto_advance
        self.auto_advance_delay = auto_advance_delay
        self.on_active_suggestion_change = on_active_suggestion_change
        self.on_suggestion_resolved = on_suggestion_resolved
        self.on_all_suggestions_resolved = on_all_suggestions_resolved

        self._candidates: tuple[Suggestion, ...] = ()
        self._resolved: set[str] = set()
        self._available: tuple[Suggestion, ...] = ()
        self._active_id: str | None = None
        self._pending_target: str | None = None
        self._all_resolved_notified = False

    # --- state -----------------------------------------------------------

    @property
    def available_suggestions(self) -> tuple[Suggestion, ...]:
        return self._available

    @property
    def available_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self._available)

    @property
    def active_suggestion_id(self) -> str | None:
        return self._active_id

    @property
    def active_suggestion(self) -> Suggestion | None:
        for suggestion in self._available:
            if suggestion.id == self._active_id:
                return suggestion
        return None

    @property
    def state(self) -> ManagerState:
        if self._pending_target is not None:
            return "advancing"
        if self._active_id is None:
            return "idle"
        return "active"

    @property
    def resolved_suggestions(self) -> frozenset[str]:
        return frozenset(self._resolved)

    def is_suggestion_resolved(self, suggestion_id: str) -> bool:
        return suggestion_id in self._resolved

    def _index_of(self, suggestion_id: str | None) -> int:
        for i, suggestion in enumerate(self._available):
            if suggestion.id == suggestion_id:
                return i
        return -1

    @property
    def navigation_context(self) -> NavigationContext:
        total = len(self._available)
        if total == 0:
            return EMPTY_NAVIGATION
        if self._pending_target is not None:
            # focus sits just before the pending target
            index = self._index_of(self._pending_target)
            return NavigationContext(index, total, has_next=True, has_previous=index > 0)
        index = self._index_of(self._active_id)
        return NavigationContext(
            current_index=max(index, 0),
            total_count=total,
            has_next=index < total - 1,
            has_previous=index > 0,
        )

    # --- loading ---------------------------------------------------------

    def load(self, suggestions: Sequence[Suggestion]) -> None:
        """Replace the candidate set (already validated) and refresh focus."""
        self._candidates = tuple(sorted(suggestions, key=_text_order))
        became_empty = self._refresh_available()
        if self._pending_target is not None and self._index_of(self._pending_target) == -1:
            self._cancel_advance()
        if self._pending_target is None and self._index_of(self._active_id) == -1:
            self._set_active(self._available[0].id if self._available else None)
        if became_empty:
            self._notify_all_resolved()

    def _refresh_available(self) -> bool:
        """Recompute the available set. Returns True if it just became empty."""
        was_empty = not self._available
        self._available = tuple(s for s in self._candidates if s.id not in self._resolved)
        if self._available:
            self._all_resolved_notified = False
            return False
        return not was_empty

    def _notify_all_resolved(self) -> None:
        if self._all_resolved_notified:
            return
        self._all_resolved_notified = True
        logger.info("All suggestions resolved")
        if self.on_all_suggestions_resolved:
            self.on_all_suggestions_resolved()

    # --- focus -----------------------------------------------------------

    def _set_active(self, suggestion_id: str | None) -> None:
        if suggestion_id == self._active_id:
            return
        self._active_id = suggestion_id
        if self.on_active_suggestion_change:
            self.on_active_suggestion_change(suggestion_id)

    def _cancel_advance(self) -> None:
        self._pending_target = None
        self.scheduler.cancel(AUTO_ADVANCE_TASK)

    def set_active_suggestion(self, suggestion_id: str | None) -> bool:
        """Jump straight to a suggestion. Unknown ids are ignored."""
        if suggestion_id is None:
            self._cancel_advance()
            self._set_active(None)
            return True
        if self._index_of(suggestion_id) == -1:
            logger.debug("Ignoring unknown suggestion id %s", suggestion_id)
            return False
        self._cancel_advance()
        self._set_active(suggestion_id)
        return True

    def navigate_to_index(self, index: int) -> bool:
        if index < 0 or index >= len(self._available):
            return False
        return self.set_active_suggestion(self._available[index].id)

    def navigate_next(self) -> bool:
        if self._pending_target is not None:
            return self.set_active_suggestion(self._pending_target)
        context = self.navigation_context
        if not context.has_next:
            return False
        return self.navigate_to_index(self._index_of(self._active_id) + 1)

    def navigate_previous(self) -> bool:
        if self._pending_target is not None:
            return self.navigate_to_index(self._index_of(self._pending_target) - 1)
        context = self.navigation_context
        if not context.has_previous:
            return False
        return self.navigate_to_index(self._index_of(self._active_id) - 1)

    def navigate(self, direction: Literal["next", "previous"]) -> bool:
        if direction == "next":
            return self.navigate_next()
        if direction == "previous":
            return self.navigate_previous()
        raise ValueError(f"Unknown navigation direction: {direction!r}")

    def navigate_to_first(self) -> bool:
        return self.navigate_to_index(0)

    def navigate_to_last(self) -> bool:
        return self.navigate_to_index(len(self._available) - 1)

    def force_advance_to_next(self) -> bool:
        """Move forward, wrapping to the first suggestion at the end."""
        if self.navigate_next():
            return True
        return self.navigate_to_first()

    # --- resolution ------------------------------------------------------

    def resolve_suggestion(self, suggestion_id: str, auto_advance: bool | None = None) -> bool:
        """Remove a suggestion from the available set.

        Returns ``False`` if it was not available; the id is still remembered
        so a later ``load`` keeps it hidden.
        """
        before = self._available
        index = self._index_of(suggestion_id)
        if index == -1:
            self._resolved.add(suggestion_id)
            return False
        if auto_advance is None:
            auto_advance = self.enable_auto_advance

        self._resolved.add(suggestion_id)
        became_empty = self._refresh_available()
        remaining = len(self._available)
        if self.on_suggestion_resolved:
            self.on_suggestion_resolved(suggestion_id, remaining)

        was_focus = suggestion_id in (self._active_id, self._pending_target)
        if was_focus:
            self._move_focus_after(before, index, auto_advance)
        if became_empty:
            self._notify_all_resolved()
        return True

    def _move_focus_after(self, before: Sequence[Suggestion], index: int, auto_advance: bool) -> None:
        if not self._available or not auto_advance:
            self._cancel_advance()
            self._set_active(None)
            return
        target = self._next_after(before, index)
        if self.auto_advance_delay > 0:
            self._pending_target = target
            self.scheduler.call_later(AUTO_ADVANCE_TASK, self.auto_advance_delay, self._complete_advance)
        else:
            self._cancel_advance()
            self._set_active(target)

    def _next_after(self, before: Sequence[Suggestion], index: int) -> str:
        for suggestion in before[index + 1:]:
            if suggestion.id not in self._resolved:
                return suggestion.id
        return self._available[0].id

    def _complete_advance(self) -> None:
        target = self._pending_target
        self._pending_target = None
        if target is None or self._index_of(target) == -1:
            target = self._available[0].id if self._available else None
        self._set_active(target)

    def restore_suggestion(self, suggestion_id: str) -> bool:
        """Undo a resolution so the suggestion becomes available again."""
        if suggestion_id not in self._resolved:
            return False
        self._resolved.discard(suggestion_id)
        self._refresh_available()
        if self._active_id is None and self._pending_target is None and self._available:
            self._set_active(self._available[0].id)
        return True

    def reset_resolved_suggestions(self) -> None:
        self._resolved.clear()
        self._refresh_available()
        if self._active_id is None and self._pending_target is None and self._available:
            self._set_active(self._available[0].id)
