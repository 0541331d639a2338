"""Named, cancellable deferred work on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle for one pending timer callback."""

    def __init__(self, name: str, handle: asyncio.TimerHandle, daemon: bool = False):
        self.name = name
        self.daemon = daemon
        self._handle = handle

    @property
    def when(self) -> float:
        return self._handle.when()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()

    def cancel(self) -> None:
        self._handle.cancel()


class TaskScheduler:
    """Owns every timer and background task of one editor session.

    Scheduling under an existing name replaces the earlier timer, which is
    what debouncing needs. ``dispose()`` cancels all timers at once and
    refuses further work.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._timers: dict[str, ScheduledTask] = {}
        self._tasks: set[asyncio.Task] = set()
        self._disposed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def disposed(self) -> bool:
        return self._disposed

    def call_later(
        self,
        name: str,
        delay: float,
        callback: Callable[..., Any],
        *args: Any,
        daemon: bool = False,
    ) -> ScheduledTask | None:
        """Run ``callback(*args)`` after ``delay`` seconds under ``name``.

        Daemon timers (periodic sweeps) are not waited for by ``drain()``.
        """
        if self._disposed:
            logger.warning("Scheduler disposed; dropping timer %s", name)
            return None
        self.cancel(name)

        def _fire() -> None:
            if self._timers.get(name) is task:
                del self._timers[name]
            try:
                callback(*args)
            except Exception:
                logger.exception("Scheduled task %s failed", name)

        handle = self.loop.call_later(max(0.0, delay), _fire)
        task = ScheduledTask(name, handle, daemon=daemon)
        self._timers[name] = task
        return task

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task | None:
        """Start a tracked background coroutine."""
        if self._disposed:
            logger.warning("Scheduler disposed; dropping task %s", name)
            coro.close()
            return None
        task = self.loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed", task.get_name(), exc_info=exc)

    def cancel(self, name: str) -> bool:
        task = self._timers.pop(name, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_prefix(self, prefix: str) -> int:
        names = [n for n in self._timers if n.startswith(prefix)]
        for name in names:
            self.cancel(name)
        return len(names)

    def is_pending(self, name: str) -> bool:
        return name in self._timers

    @property
    def pending_timers(self) -> tuple[str, ...]:
        return tuple(self._timers)

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    @property
    def idle(self) -> bool:
        return not self._tasks and not any(not t.daemon for t in self._timers.values())

    async def drain(self) -> None:
        """Wait until no non-daemon timers or background tasks remain."""
        while not self.idle:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
                continue
            next_when = min(t.when for t in self._timers.values() if not t.daemon)
            await asyncio.sleep(max(0.0, next_when - self.loop.time()))
            await asyncio.sleep(0)

    def dispose(self) -> None:
        """Cancel every pending timer; later scheduling is refused."""
        for task in self._timers.values():
            task.cancel()
        if self._timers:
            logger.debug("Cancelled %d pending timers", len(self._timers))
        self._timers.clear()
        self._disposed = True

    async def aclose(self) -> None:
        """Dispose, then wait for in-flight background tasks to settle."""
        self.dispose()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
