from __future__ import annotations
"""Timer service used by the status poller.

A poller asks its scheduler to run a coroutine after a delay and may cancel
that timer by handle. Each poller owns its own scheduler instance.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: TimerCallback) -> Any:
        """Run ``callback()`` after ``delay`` seconds; return a cancellable handle."""
        ...

    def cancel(self, handle: Any) -> None:
        ...


class AsyncioScheduler:
    """Scheduler backed by ``loop.call_later`` on the running event loop."""

    def __init__(self) -> None:
        # Strong references so fired callbacks are not garbage-collected mid-run
        self._running: set[asyncio.Task] = set()

    def schedule(self, delay: float, callback: TimerCallback) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self._fire, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()

    def _fire(self, callback: TimerCallback) -> None:
        task = asyncio.ensure_future(callback())
        self._running.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Scheduled callback failed: %s", task.exception())
