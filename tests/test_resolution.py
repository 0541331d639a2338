"""Tests for optimistic resolution, batching and retry."""

import pytest

from suggestion_engine.config import ResolutionConfig
from suggestion_engine.engine.resolution import ResolutionManager
from suggestion_engine.errors import RetryableResolutionError, TerminalResolutionError
from suggestion_engine.models.resolution import ActionKind, ActionStatus, BatchPriority


@pytest.fixture
def calls():
    return {"optimistic": [], "revert": [], "terminal": [], "batches": [], "success": []}


@pytest.fixture
def make_manager(scheduler, mock_backend, calls):
    def _make(**overrides):
        settings = {"batch_delay": 0.01, "retry_delay_multiplier": 1.0}
        settings.update(overrides)
        return ResolutionManager(
            mock_backend,
            scheduler,
            ResolutionConfig(**settings),
            on_optimistic_resolve=calls["optimistic"].append,
            on_revert=calls["revert"].append,
            on_resolution_success=lambda action, elapsed: calls["success"].append(action.suggestion_id),
            on_terminal_failure=calls["terminal"].append,
            on_batch_complete=lambda batch_id, actions: calls["batches"].append(
                [a.suggestion_id for a in actions]
            ),
        )

    return _make


class TestOptimisticResolution:
    async def test_accept_is_visible_immediately(self, make_manager, mock_backend, calls, scheduler):
        manager = make_manager()
        action = manager.accept_suggestion("s1")
        assert action.kind is ActionKind.ACCEPT
        assert manager.is_suggestion_resolved("s1")
        assert calls["optimistic"] == ["s1"]
        assert manager.batch_queue_length == 1
        assert manager.is_processing
        mock_backend.accept_suggestion.assert_not_awaited()

        await scheduler.drain()
        mock_backend.accept_suggestion.assert_awaited_once_with("s1", None)
        assert action.status is ActionStatus.COMPLETED
        assert manager.pending_actions == []
        assert not manager.is_processing
        assert manager.stats.successful_resolutions == 1
        assert manager.stats.batches_processed == 1
        assert calls["success"] == ["s1"]

    async def test_accept_with_edit(self, make_manager, mock_backend, scheduler):
        manager = make_manager()
        action = manager.accept_suggestion("s1", edited_text="Their")
        assert action.kind is ActionKind.EDIT
        await scheduler.drain()
        mock_backend.accept_suggestion.assert_awaited_once_with("s1", "Their")

    async def test_edit_suggestion(self, make_manager, mock_backend, scheduler):
        manager = make_manager()
        manager.edit_suggestion("s1", "fixed")
        await scheduler.drain()
        mock_backend.accept_suggestion.assert_awaited_once_with("s1", "fixed")

    async def test_reject(self, make_manager, mock_backend, scheduler):
        manager = make_manager()
        manager.reject_suggestion("s1")
        await scheduler.drain()
        mock_backend.reject_suggestion.assert_awaited_once_with("s1")
        mock_backend.accept_suggestion.assert_not_awaited()

    async def test_second_resolution_is_ignored(self, make_manager, scheduler):
        manager = make_manager()
        assert manager.accept_suggestion("s1") is not None
        assert manager.reject_suggestion("s1") is None
        await scheduler.drain()
        assert manager.stats.total_resolutions == 1

    async def test_without_optimistic_updates(self, make_manager, calls, scheduler):
        manager = make_manager(enable_optimistic_updates=False)
        manager.accept_suggestion("s1")
        assert not manager.is_suggestion_resolved("s1")
        await scheduler.drain()
        assert manager.is_suggestion_resolved("s1")
        assert calls["optimistic"] == ["s1"]


class TestBatching:
    async def test_batches_respect_size(self, make_manager, calls, scheduler):
        manager = make_manager(batch_size=2)
        for i in range(5):
            manager.accept_suggestion(f"s{i}")
        assert manager.batch_queue_length == 3
        await scheduler.drain()
        assert calls["batches"] == [["s0", "s1"], ["s2", "s3"], ["s4"]]

    async def test_high_priority_flushes_first(self, make_manager, calls, scheduler):
        manager = make_manager()
        manager.accept_suggestion("a")
        manager.reject_suggestion("b")
        actions = manager.batch_accept_suggestions(["c", "d"])
        assert [a.priority for a in actions] == [BatchPriority.HIGH, BatchPriority.HIGH]
        await scheduler.drain()
        assert calls["batches"] == [["c", "d"], ["a", "b"]]

    async def test_batch_reject(self, make_manager, mock_backend, scheduler):
        manager = make_manager()
        manager.batch_reject_suggestions(["a", "b", "a"])
        await scheduler.drain()
        assert mock_backend.reject_suggestion.await_count == 2

    async def test_actions_in_batch_fail_independently(self, make_manager, mock_backend, scheduler):
        async def accept(suggestion_id, edited_text=None):
            if suggestion_id == "bad":
                raise TerminalResolutionError(suggestion_id, "gone", 404)

        mock_backend.accept_suggestion.side_effect = accept
        manager = make_manager(enable_auto_retry=False)
        manager.accept_suggestion("good")
        manager.accept_suggestion("bad")
        await scheduler.drain()
        assert manager.is_suggestion_resolved("good")
        assert not manager.is_suggestion_resolved("bad")
        assert [a.suggestion_id for a in manager.failed_actions] == ["bad"]

    async def test_flush_dispatches_without_waiting(self, make_manager, mock_backend, scheduler):
        manager = make_manager(batch_delay=10)
        manager.accept_suggestion("s1")
        await manager.flush_batches()
        mock_backend.accept_suggestion.assert_awaited_once()
        assert not scheduler.is_pending("batch-flush")
        assert manager.batch_queue_length == 0

    async def test_immediate_mode(self, make_manager, mock_backend, scheduler):
        manager = make_manager(enable_batch_processing=False)
        manager.accept_suggestion("s1")
        assert manager.batch_queue_length == 0
        await scheduler.drain()
        mock_backend.accept_suggestion.assert_awaited_once_with("s1", None)
        assert manager.stats.batches_processed == 0


class TestRetry:
    async def test_failure_reverts_then_retry_succeeds(self, make_manager, mock_backend, calls, scheduler):
        mock_backend.accept_suggestion.side_effect = [RetryableResolutionError("s1", "503", 503), None]
        manager = make_manager()
        manager.accept_suggestion("s1")
        await scheduler.drain()
        assert calls["revert"] == ["s1"]
        assert calls["optimistic"] == ["s1", "s1"]
        assert manager.is_suggestion_resolved("s1")
        assert manager.failed_actions == []
        assert manager.stats.retry_count == 1
        assert manager.stats.failed_resolutions == 1
        assert manager.stats.successful_resolutions == 1
        assert mock_backend.accept_suggestion.await_count == 2

    async def test_gives_up_after_max_retries(self, make_manager, mock_backend, calls, scheduler):
        mock_backend.accept_suggestion.side_effect = RetryableResolutionError("s1", "503", 503)
        manager = make_manager(max_retries=3)
        manager.accept_suggestion("s1")
        await scheduler.drain()
        assert mock_backend.accept_suggestion.await_count == 4
        assert not manager.is_suggestion_resolved("s1")
        [failed] = manager.failed_actions
        assert failed.retry_count == 3
        assert failed.status is ActionStatus.FAILED
        assert failed.error == "503"
        assert [a.suggestion_id for a in calls["terminal"]] == ["s1"]

    async def test_retry_delay_grows(self, make_manager, mock_backend, scheduler):
        mock_backend.reject_suggestion.side_effect = RetryableResolutionError("s1", "timeout")
        manager = make_manager(batch_delay=0.5, retry_delay_multiplier=2.0)
        action = manager.reject_suggestion("s1")
        await manager.flush_batches()
        first = scheduler._timers[f"retry:{action.id}"].when - scheduler.loop.time()
        assert 0.4 < first <= 0.5
        assert action.retry_count == 1

        scheduler.cancel(f"retry:{action.id}")
        manager._retry(action)
        [retried] = manager.pending_actions
        assert retried.retry_count == 1
        await manager.flush_batches()
        second = scheduler._timers[f"retry:{retried.id}"].when - scheduler.loop.time()
        assert 0.9 < second <= 1.0
        assert retried.retry_count == 2
        manager.clear_failed_actions()

    async def test_auto_retry_disabled(self, make_manager, mock_backend, calls, scheduler):
        mock_backend.accept_suggestion.side_effect = RetryableResolutionError("s1", "503", 503)
        manager = make_manager(enable_auto_retry=False)
        manager.accept_suggestion("s1")
        await scheduler.drain()
        assert mock_backend.accept_suggestion.await_count == 1
        assert len(calls["terminal"]) == 1

    async def test_manual_retry(self, make_manager, mock_backend, scheduler):
        mock_backend.accept_suggestion.side_effect = RetryableResolutionError("s1", "503", 503)
        manager = make_manager(enable_auto_retry=False)
        manager.accept_suggestion("s1")
        await scheduler.drain()
        [failed] = manager.failed_actions

        mock_backend.accept_suggestion.side_effect = None
        assert manager.retry_failed_action(failed.id)
        assert manager.is_suggestion_resolved("s1")
        assert manager.pending_actions[0].priority is BatchPriority.HIGH
        await scheduler.drain()
        assert manager.failed_actions == []
        assert manager.stats.successful_resolutions == 1

    async def test_terminal_error_is_not_retried(self, make_manager, mock_backend, calls, scheduler):
        mock_backend.accept_suggestion.side_effect = TerminalResolutionError("s1", "not found", 404)
        manager = make_manager()
        manager.accept_suggestion("s1")
        await scheduler.drain()
        assert mock_backend.accept_suggestion.await_count == 1
        assert calls["revert"] == ["s1"]
        assert len(calls["terminal"]) == 1

    async def test_success_clears_earlier_failure_of_same_suggestion(self, make_manager, mock_backend, scheduler):
        mock_backend.accept_suggestion.side_effect = TerminalResolutionError("s1", "conflict", 409)
        manager = make_manager()
        manager.accept_suggestion("s1")
        await scheduler.drain()
        assert [a.suggestion_id for a in manager.failed_actions] == ["s1"]

        mock_backend.accept_suggestion.side_effect = None
        manager.accept_suggestion("s1")
        await scheduler.drain()
        assert manager.is_suggestion_resolved("s1")
        assert manager.failed_actions == []

    async def test_manual_retry_unknown_action(self, make_manager):
        assert not make_manager().retry_failed_action("action_missing")

    async def test_clear_failed_cancels_pending_retries(self, make_manager, mock_backend, scheduler):
        mock_backend.accept_suggestion.side_effect = RetryableResolutionError("s1", "503", 503)
        manager = make_manager(batch_delay=0.01, retry_delay_multiplier=10.0)
        manager.accept_suggestion("s1")
        await manager.flush_batches()
        assert manager.failed_actions
        manager.clear_failed_actions()
        assert manager.failed_actions == []
        assert not any(name.startswith("retry:") for name in scheduler.pending_timers)
        await scheduler.drain()
        assert mock_backend.accept_suggestion.await_count == 1

    async def test_unexpected_exception_is_treated_as_failure(self, make_manager, mock_backend, scheduler):
        mock_backend.reject_suggestion.side_effect = RuntimeError()
        manager = make_manager(enable_auto_retry=False)
        manager.reject_suggestion("s1")
        await scheduler.drain()
        [failed] = manager.failed_actions
        assert failed.error == "RuntimeError"
