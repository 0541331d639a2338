"""Viewport visibility tracking for virtualized highlighting."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from suggestion_engine.engine.scheduler import TaskScheduler

logger = logging.getLogger(__name__)

VISIBILITY_TASK = "viewport-visibility"


class ViewportTracker:
    """Collects suggestion ids reported visible by the renderer.

    Reports are debounced: ids accumulate until ``debounce_delay`` passes
    without a new report, then they are merged into ``visible_ids`` in one
    step.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        *,
        debounce_delay: float = 0.15,
        enable_debouncing: bool = True,
        on_change: Callable[[frozenset[str]], None] | None = None,
    ):
        self.scheduler = scheduler
        self.debounce_delay = debounce_delay
        self.enable_debouncing = enable_debouncing
        self.on_change = on_change
        self._visible: frozenset[str] = frozenset()
        self._pending: set[str] = set()

    @property
    def visible_ids(self) -> frozenset[str]:
        return self._visible

    def report_visible(self, suggestion_ids: Iterable[str]) -> None:
        self._pending.update(suggestion_ids)
        if not self._pending:
            return
        if self.enable_debouncing and self.debounce_delay > 0:
            self.scheduler.call_later(VISIBILITY_TASK, self.debounce_delay, self._apply)
        else:
            self._apply()

    def _apply(self) -> None:
        merged = self._visible | self._pending
        self._pending.clear()
        if merged == self._visible:
            return
        self._visible = frozenset(merged)
        logger.debug("Viewport now tracks %d visible suggestions", len(self._visible))
        if self.on_change:
            self.on_change(self._visible)

    def forget(self, suggestion_ids: Iterable[str]) -> None:
        drop = set(suggestion_ids)
        self._pending -= drop
        self._visible = self._visible - drop

    def reset(self) -> None:
        self.scheduler.cancel(VISIBILITY_TASK)
        self._pending.clear()
        self._visible = frozenset()
