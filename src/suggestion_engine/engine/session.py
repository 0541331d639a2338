"""Editor session - wires cache, highlighting, navigation and resolution together."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Literal

from suggestion_engine.cache.suggestion_cache import SuggestionCache
from suggestion_engine.config import EngineConfig
from suggestion_engine.engine.active import ActiveSuggestionManager
from suggestion_engine.engine.highlight import HighlightEngine, HighlightResult
from suggestion_engine.engine.resolution import ResolutionManager, SuggestionBackend
from suggestion_engine.engine.scheduler import TaskScheduler
from suggestion_engine.engine.viewport import ViewportTracker
from suggestion_engine.errors import SchedulerDisposedError
from suggestion_engine.models.resolution import ResolutionAction
from suggestion_engine.models.segments import NavigationContext
from suggestion_engine.models.suggestion import Suggestion
from suggestion_engine.store import SuggestionStore
from suggestion_engine.utils.validation import auto_correct_positions

logger = logging.getLogger(__name__)

CACHE_SWEEP_TASK = "cache-sweep"


class SuggestionSession:
    """One document under review.

    Accepting or rejecting a suggestion hides it right away (it leaves
    ``available_suggestions`` and the next ``render()``), moves focus, and
    queues the backend call. If the call ultimately fails the suggestion
    comes back.
    """

    def __init__(
        self,
        backend: SuggestionBackend,
        config: EngineConfig | None = None,
        *,
        scheduler: TaskScheduler | None = None,
        cache: SuggestionCache | None = None,
        on_active_suggestion_change: Callable[[str | None], None] | None = None,
        on_suggestion_resolved: Callable[[str, int], None] | None = None,
        on_all_suggestions_resolved: Callable[[], None] | None = None,
        on_terminal_failure: Callable[[ResolutionAction], None] | None = None,
    ):
        self.config = config or EngineConfig()
        self.scheduler = scheduler or TaskScheduler()
        self.cache = cache or SuggestionCache(
            max_entries=self.config.cache.max_entries,
            ttl_seconds=self.config.cache.ttl_seconds,
        )
        self.store = SuggestionStore(content="")

        self.highlighter = HighlightEngine(self.cache, self.config.highlight)
        self.viewport = ViewportTracker(
            self.scheduler,
            debounce_delay=self.config.highlight.visibility_debounce,
            enable_debouncing=self.config.highlight.enable_debouncing,
        )
        self.active = ActiveSuggestionManager(
            self.scheduler,
            enable_auto_advance=self.config.navigation.enable_auto_advance,
            auto_advance_delay=self.config.navigation.auto_advance_delay,
            on_active_suggestion_change=on_active_suggestion_change,
            on_suggestion_resolved=on_suggestion_resolved,
            on_all_suggestions_resolved=on_all_suggestions_resolved,
        )
        self.resolution = ResolutionManager(
            backend,
            self.scheduler,
            self.config.resolution,
            on_optimistic_resolve=self._hide,
            on_revert=self._restore,
            on_resolution_success=self._commit,
            on_terminal_failure=on_terminal_failure,
        )

    # --- lifecycle -------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.scheduler.disposed:
            raise SchedulerDisposedError("Session has been disposed")

    def load(self, content: str, suggestions: Sequence[Suggestion]) -> None:
        """Start (or restart) review of ``content`` with a fresh suggestion list.

        Suggestions with unusable ranges are dropped here; ids resolved
        earlier in the session stay hidden.
        """
        self._ensure_open()
        self.store = SuggestionStore(content=content, suggestions=tuple(suggestions))
        view = self.cache.get(self.store.suggestions, content)
        if view.invalid:
            logger.debug("Dropped %d suggestions with invalid ranges", len(view.invalid))
        self.viewport.reset()
        self.active.load(view.available)
        logger.info(
            "Loaded %d suggestions (%d available)", len(self.store), len(self.active.available_suggestions)
        )
        self._schedule_sweep()

    def load_store(self, store: SuggestionStore) -> None:
        self.load(store.content, store.suggestions)

    def update_content(self, content: str) -> list[Suggestion]:
        """Apply an edited document, relocating suggestions whose text moved.

        Returns the suggestions that could not be relocated; they are dropped.
        """
        corrected, lost = auto_correct_positions(self.store.suggestions, content)
        if lost:
            logger.info("Dropped %d suggestions that no longer match the document", len(lost))
        self.load(content, corrected)
        return lost

    def _schedule_sweep(self) -> None:
        interval = self.config.cache.sweep_interval
        if interval <= 0 or self.scheduler.is_pending(CACHE_SWEEP_TASK):
            return
        self.scheduler.call_later(CACHE_SWEEP_TASK, interval, self._sweep, daemon=True)

    def _sweep(self) -> None:
        removed = self.cache.optimize()
        if removed:
            logger.debug("Cache sweep removed %d entries", removed)
        self._schedule_sweep()

    async def flush(self) -> None:
        """Send every queued resolution now instead of waiting for the debounce."""
        await self.resolution.flush_batches()

    async def wait_idle(self) -> None:
        """Wait for queued batches, retries and auto-advance to finish."""
        await self.scheduler.drain()

    def dispose(self) -> None:
        self.scheduler.dispose()

    async def aclose(self) -> None:
        await self.scheduler.aclose()

    async def __aenter__(self) -> SuggestionSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None and not self.scheduler.disposed:
            await self.flush()
        await self.aclose()

    # --- resolution callbacks --------------------------------------------

    def _hide(self, suggestion_id: str) -> None:
        self.viewport.forget([suggestion_id])
        self.active.resolve_suggestion(suggestion_id)

    def _restore(self, suggestion_id: str) -> None:
        self.active.restore_suggestion(suggestion_id)

    def _commit(self, action: ResolutionAction, elapsed: float) -> None:
        self.store = self.store.without([action.suggestion_id])

    # --- read surface ----------------------------------------------------

    @property
    def content(self) -> str:
        return self.store.content

    @property
    def available_suggestions(self) -> tuple[Suggestion, ...]:
        return self.active.available_suggestions

    @property
    def active_suggestion(self) -> Suggestion | None:
        return self.active.active_suggestion

    @property
    def navigation_context(self) -> NavigationContext:
        return self.active.navigation_context

    @property
    def pending_actions(self) -> list[ResolutionAction]:
        return self.resolution.pending_actions

    @property
    def failed_actions(self) -> list[ResolutionAction]:
        return self.resolution.failed_actions

    @property
    def stats(self) -> dict:
        return {
            "available": len(self.active.available_suggestions),
            "resolved": len(self.active.resolved_suggestions),
            "pending": len(self.resolution.pending_actions),
            "failed": len(self.resolution.failed_actions),
            "resolution": self.resolution.stats.to_dict(),
            "cache": self.cache.stats(),
        }

    def render(self) -> HighlightResult:
        return self.highlighter.render(
            self.active.available_suggestions,
            self.store.content,
            active_id=self.active.active_suggestion_id,
            visible_ids=self.viewport.visible_ids,
        )

    def report_visible(self, suggestion_ids: Iterable[str]) -> None:
        self.viewport.report_visible(suggestion_ids)

    # --- navigation ------------------------------------------------------

    def navigate(self, direction: Literal["next", "previous"]) -> bool:
        return self.active.navigate(direction)

    def set_active_suggestion(self, suggestion_id: str | None) -> bool:
        return self.active.set_active_suggestion(suggestion_id)

    # --- resolution ------------------------------------------------------

    def accept(self, suggestion_id: str, edited_text: str | None = None) -> ResolutionAction | None:
        self._ensure_open()
        return self.resolution.accept_suggestion(suggestion_id, edited_text)

    def reject(self, suggestion_id: str) -> ResolutionAction | None:
        self._ensure_open()
        return self.resolution.reject_suggestion(suggestion_id)

    def edit(self, suggestion_id: str, edited_text: str) -> ResolutionAction | None:
        self._ensure_open()
        return self.resolution.edit_suggestion(suggestion_id, edited_text)

    def accept_all(self, suggestion_ids: Iterable[str]) -> list[ResolutionAction]:
        self._ensure_open()
        return self.resolution.batch_accept_suggestions(suggestion_ids)

    def reject_all(self, suggestion_ids: Iterable[str]) -> list[ResolutionAction]:
        self._ensure_open()
        return self.resolution.batch_reject_suggestions(suggestion_ids)

    def retry_failed_action(self, action_id: str) -> bool:
        self._ensure_open()
        return self.resolution.retry_failed_action(action_id)
