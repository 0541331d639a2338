"""Optimistic suggestion resolution with batching and exponential-backoff retry."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Callable, Iterable
from typing import Protocol

from suggestion_engine.config import ResolutionConfig
from suggestion_engine.engine.scheduler import TaskScheduler
from suggestion_engine.errors import TerminalResolutionError
from suggestion_engine.models.resolution import (
    ActionKind,
    ActionStatus,
    BatchPriority,
    BatchRequest,
    ResolutionAction,
    ResolutionStats,
)

logger = logging.getLogger(__name__)

BATCH_FLUSH_TASK = "batch-flush"
RETRY_TASK_PREFIX = "retry:"


class SuggestionBackend(Protocol):
    """Remote store that persists accept/reject decisions."""

    async def accept_suggestion(self, suggestion_id: str, edited_text: str | None = None) -> None: ...

    async def reject_suggestion(self, suggestion_id: str) -> None: ...


class ResolutionManager:
    """Turns accept/reject/edit intents into optimistic state plus backend calls.

    The caller sees the suggestion disappear immediately; the backend call
    runs later, batched by priority tier. A failed call puts the suggestion
    back and, within ``max_retries``, tries again after
    ``batch_delay * retry_delay_multiplier ** retry_count`` seconds.
    ``TerminalResolutionError`` skips the retry.
    """

    def __init__(
        self,
        backend: SuggestionBackend,
        scheduler: TaskScheduler,
        config: ResolutionConfig | None = None,
        *,
        on_optimistic_resolve: Callable[[str], None] | None = None,
        on_revert: Callable[[str], None] | None = None,
        on_resolution_success: Callable[[ResolutionAction, float], None] | None = None,
        on_resolution_failure: Callable[[ResolutionAction, str], None] | None = None,
        on_terminal_failure: Callable[[ResolutionAction], None] | None = None,
        on_batch_complete: Callable[[str, list[ResolutionAction]], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.scheduler = scheduler
        self.config = config or ResolutionConfig()
        self.on_optimistic_resolve = on_optimistic_resolve
        self.on_revert = on_revert
        self.on_resolution_success = on_resolution_success
        self.on_resolution_failure = on_resolution_failure
        self.on_terminal_failure = on_terminal_failure
        self.on_batch_complete = on_batch_complete
        self._clock = clock

        self._resolved: dict[str, ResolutionAction] = {}
        self._pending: dict[str, ResolutionAction] = {}
        self._failed: dict[str, ResolutionAction] = {}
        self._queue: list[BatchRequest] = []
        self._batch_sequence = itertools.count()
        self._processing = False
        self._drain_task: asyncio.Task | None = None
        self._stats = ResolutionStats()

    # --- queries ---------------------------------------------------------

    def is_suggestion_resolved(self, suggestion_id: str) -> bool:
        return suggestion_id in self._resolved

    @property
    def resolved_suggestions(self) -> frozenset[str]:
        return frozenset(self._resolved)

    @property
    def pending_actions(self) -> list[ResolutionAction]:
        return list(self._pending.values())

    @property
    def failed_actions(self) -> list[ResolutionAction]:
        return list(self._failed.values())

    @property
    def batch_queue_length(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing or bool(self._pending)

    @property
    def stats(self) -> ResolutionStats:
        return self._stats

    # --- optimistic state ------------------------------------------------

    def _mark_resolved(self, action: ResolutionAction) -> None:
        self._resolved[action.suggestion_id] = action
        if self.on_optimistic_resolve:
            self.on_optimistic_resolve(action.suggestion_id)

    def _revert(self, action: ResolutionAction) -> None:
        self._pending.pop(action.id, None)
        if self._resolved.pop(action.suggestion_id, None) is not None and self.on_revert:
            self.on_revert(action.suggestion_id)
        self._failed[action.id] = action

    # --- public intents --------------------------------------------------

    def accept_suggestion(self, suggestion_id: str, edited_text: str | None = None) -> ResolutionAction | None:
        kind = ActionKind.EDIT if edited_text else ActionKind.ACCEPT
        return self.schedule_resolution(suggestion_id, kind, edited_text)

    def edit_suggestion(self, suggestion_id: str, edited_text: str) -> ResolutionAction | None:
        return self.schedule_resolution(suggestion_id, ActionKind.EDIT, edited_text)

    def reject_suggestion(self, suggestion_id: str) -> ResolutionAction | None:
        return self.schedule_resolution(suggestion_id, ActionKind.REJECT)

    def batch_accept_suggestions(self, suggestion_ids: Iterable[str]) -> list[ResolutionAction]:
        actions = [self.schedule_resolution(sid, ActionKind.ACCEPT, priority=BatchPriority.HIGH) for sid in suggestion_ids]
        return [a for a in actions if a is not None]

    def batch_reject_suggestions(self, suggestion_ids: Iterable[str]) -> list[ResolutionAction]:
        actions = [self.schedule_resolution(sid, ActionKind.REJECT, priority=BatchPriority.HIGH) for sid in suggestion_ids]
        return [a for a in actions if a is not None]

    def schedule_resolution(
        self,
        suggestion_id: str,
        kind: ActionKind,
        edited_text: str | None = None,
        priority: BatchPriority = BatchPriority.NORMAL,
        retry_count: int = 0,
    ) -> ResolutionAction | None:
        """Record an intent, apply it optimistically and queue the backend call.

        Returns ``None`` if the suggestion already has a resolution in flight.
        """
        if suggestion_id in self._resolved:
            logger.debug("Suggestion %s already resolved; ignoring %s", suggestion_id, kind.value)
            return None

        action = ResolutionAction(
            suggestion_id=suggestion_id,
            kind=kind,
            edited_text=edited_text,
            priority=priority,
            retry_count=retry_count,
        )
        self._pending[action.id] = action
        if self.config.enable_optimistic_updates:
            self._mark_resolved(action)

        if self.config.enable_batch_processing:
            self._enqueue(action)
            self.scheduler.call_later(BATCH_FLUSH_TASK, self.config.batch_delay, self._on_batch_timer)
        else:
            self.scheduler.spawn(self._process_action(action), name=f"resolve:{action.id}")
        return action

    # --- batching --------------------------------------------------------

    def _enqueue(self, action: ResolutionAction) -> None:
        for batch in self._queue:
            if batch.priority == action.priority and len(batch.actions) < self.config.batch_size:
                batch.actions.append(action)
                return
        batch = BatchRequest(priority=action.priority, sequence=next(self._batch_sequence))
        batch.actions.append(action)
        self._queue.append(batch)

    def _next_batch(self) -> BatchRequest | None:
        if not self._queue:
            return None
        batch = min(self._queue, key=lambda b: b.sort_key)
        self._queue.remove(batch)
        return batch

    def _on_batch_timer(self) -> None:
        if self._processing:
            # the running drain loop picks up whatever is queued
            return
        self._drain_task = self.scheduler.spawn(self._drain_queue(), name="batch-drain")

    async def _drain_queue(self) -> None:
        if self._processing:
            return
        self._processing = True
        try:
            while (batch := self._next_batch()) is not None:
                await self._process_batch(batch)
        finally:
            self._processing = False

    async def _process_batch(self, batch: BatchRequest) -> list[ResolutionAction]:
        logger.info(
            "Flushing %s batch %s with %d actions", batch.priority.value, batch.batch_id, len(batch.actions)
        )
        results = await asyncio.gather(
            *(self._process_action(action) for action in batch.actions), return_exceptions=True
        )
        completed: list[ResolutionAction] = []
        for action, result in zip(batch.actions, results):
            if isinstance(result, BaseException):
                action.status = ActionStatus.FAILED
                action.error = str(result) or type(result).__name__
                completed.append(action)
            else:
                completed.append(result)
        self._stats.batches_processed += 1
        if self.on_batch_complete:
            self.on_batch_complete(batch.batch_id, completed)
        return completed

    async def flush_batches(self) -> None:
        """Dispatch every queued batch now, in priority-then-FIFO order."""
        self.scheduler.cancel(BATCH_FLUSH_TASK)
        if self._drain_task is not None and not self._drain_task.done():
            await asyncio.gather(self._drain_task, return_exceptions=True)
        await self._drain_queue()

    # --- dispatch --------------------------------------------------------

    async def _process_action(self, action: ResolutionAction) -> ResolutionAction:
        action.status = ActionStatus.PROCESSING
        started = self._clock()
        try:
            if action.kind is ActionKind.REJECT:
                await self.backend.reject_suggestion(action.suggestion_id)
            else:
                await self.backend.accept_suggestion(action.suggestion_id, action.edited_text)
        except Exception as exc:
            self._handle_failure(action, exc)
            return action

        elapsed = self._clock() - started
        action.status = ActionStatus.COMPLETED
        self._pending.pop(action.id, None)
        # a success supersedes earlier failures of the same suggestion
        for stale_id in [a.id for a in self._failed.values() if a.suggestion_id == action.suggestion_id]:
            del self._failed[stale_id]
            self.scheduler.cancel(f"{RETRY_TASK_PREFIX}{stale_id}")
        if not self.config.enable_optimistic_updates:
            self._mark_resolved(action)
        self._stats.record_success(elapsed)
        logger.debug("Resolved %s (%s) in %.3fs", action.suggestion_id, action.kind.value, elapsed)
        if self.on_resolution_success:
            self.on_resolution_success(action, elapsed)
        return action

    def _handle_failure(self, action: ResolutionAction, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        action.status = ActionStatus.FAILED
        action.error = message
        self._stats.record_failure()
        self._revert(action)
        logger.warning(
            "Resolution of %s failed (attempt %d): %s", action.suggestion_id, action.retry_count + 1, message
        )
        if self.on_resolution_failure:
            self.on_resolution_failure(action, message)

        retryable = not isinstance(exc, TerminalResolutionError)
        if retryable and self.config.enable_auto_retry and action.retry_count < self.config.max_retries:
            delay = self.config.batch_delay * self.config.retry_delay_multiplier ** action.retry_count
            action.retry_count += 1
            self.scheduler.call_later(f"{RETRY_TASK_PREFIX}{action.id}", delay, self._retry, action)
            return

        logger.error(
            "Giving up on suggestion %s after %d attempts",
            action.suggestion_id,
            action.retry_count + 1,
            exc_info=exc,
        )
        if self.on_terminal_failure:
            self.on_terminal_failure(action)

    def _retry(self, action: ResolutionAction) -> None:
        if self._failed.pop(action.id, None) is None:
            # cleared or retried manually in the meantime
            return
        self._stats.retry_count += 1
        self.schedule_resolution(
            action.suggestion_id,
            action.kind,
            action.edited_text,
            priority=action.priority,
            retry_count=action.retry_count,
        )

    # --- failed action management ----------------------------------------

    def retry_failed_action(self, action_id: str) -> bool:
        """Re-queue a failed action at high priority with a fresh retry budget."""
        action = self._failed.pop(action_id, None)
        if action is None:
            return False
        self.scheduler.cancel(f"{RETRY_TASK_PREFIX}{action_id}")
        return (
            self.schedule_resolution(
                action.suggestion_id, action.kind, action.edited_text, priority=BatchPriority.HIGH
            )
            is not None
        )

    def clear_failed_actions(self) -> None:
        self.scheduler.cancel_prefix(RETRY_TASK_PREFIX)
        self._failed.clear()
