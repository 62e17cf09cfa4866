"""asyncio-backed scheduler that owns the single task queue of the core."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Coroutine, Optional, Set

log = logging.getLogger(__name__)


class LoopScheduler:
    """Run every core mutation on one event loop.

    The loop may be driven by the caller (``run_until_complete``) or by a
    dedicated background thread started with :meth:`start_thread`, which is
    how the desktop shell keeps Qt and the core on separate threads.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)

    def call_soon_threadsafe(self, callback: Callable[..., None], *args: Any) -> None:
        if self._loop.is_closed():
            log.debug("dropping callback %r, loop is closed", callback)
            return
        self._loop.call_soon_threadsafe(callback, *args)

    def spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("background task failed", exc_info=exc)

    # ------------------------------------------------------------------
    # Background thread lifecycle
    # ------------------------------------------------------------------

    def start_thread(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run_forever, name="core-loop", daemon=True)
        self._thread.start()

    def _run_forever(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def stop_thread(self, timeout_s: float = 1.0) -> None:
        if self._thread is None:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout_s)
        self._thread = None
