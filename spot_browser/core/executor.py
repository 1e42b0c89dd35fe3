"""
Execution contexts: the single UI executor and the worker pool.

All controller state and every row sink mutation live on ONE thread, the
UI executor. Blocking work (HTTP requests, image decoding, token
exchange) runs on the worker pool. The two only talk through messages:

    controller --(WorkerPool.ask(task, on_done))--> worker thread
    worker thread --(UiExecutor.post(on_done, future))--> controller

The UI executor is cooperative: whoever owns the main loop (the CLI, a
GUI toolkit adapter, a test) calls run_pending() or run_until() to drain
posted callbacks on its own thread.
"""

import heapq
import itertools
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from spot_browser.core.logger import get_logger

logger = get_logger(__name__)


DEFAULT_WORKERS = 4


class UiExecutor:
    """
    Cooperative single-threaded callback queue.

    post() is safe from any thread. Callbacks only ever run on the thread
    that calls run_pending()/run_until(), in FIFO order. Exceptions raised
    by a callback are logged and do not stop the loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._delayed: list[tuple[float, int, Callable, tuple]] = []
        self._delayed_lock = threading.Lock()
        self._seq = itertools.count()
        self._clock = clock

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        self._queue.put((callback, args))

    def post_delayed(self, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        """Post callback once at least `delay` seconds have passed."""
        due = self._clock() + delay
        with self._delayed_lock:
            heapq.heappush(self._delayed, (due, next(self._seq), callback, args))

    def pending(self) -> int:
        with self._delayed_lock:
            delayed = len(self._delayed)
        return self._queue.qsize() + delayed

    def run_pending(self) -> int:
        """
        Run everything currently runnable without blocking.

        Returns:
            Number of callbacks executed.
        """
        self._promote_due()
        executed = 0
        while True:
            try:
                callback, args = self._queue.get_nowait()
            except queue.Empty:
                return executed
            self._run(callback, args)
            executed += 1

    def run_until(
        self,
        predicate: Callable[[], bool],
        timeout: float | None = None,
        poll_interval: float = 0.05
    ) -> bool:
        """
        Drive the loop until predicate() is true or timeout expires.

        Args:
            predicate: Checked after every callback.
            timeout: Maximum wall time in seconds, None for unbounded.
            poll_interval: Longest single block on the queue.

        Returns:
            True if the predicate became true, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            if deadline is not None and time.monotonic() >= deadline:
                return False
            self._promote_due()
            try:
                callback, args = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue
            self._run(callback, args)
        return True

    def _promote_due(self) -> None:
        now = self._clock()
        with self._delayed_lock:
            while self._delayed and self._delayed[0][0] <= now:
                _, _, callback, args = heapq.heappop(self._delayed)
                self._queue.put((callback, args))

    def _run(self, callback: Callable, args: tuple) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"UI callback {getattr(callback, '__name__', callback)!r} failed: {e}", exc_info=True)


class WorkerPool:
    """
    Thread pool whose results are delivered back onto a UiExecutor.

    Attributes:
        ui: Executor receiving completion callbacks.
    """

    def __init__(self, ui: UiExecutor, max_workers: int = DEFAULT_WORKERS) -> None:
        self.ui = ui
        self._in_flight = 0
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="spot-browser-worker"
        )

    def ask(
        self,
        task: Callable[..., Any],
        on_done: Callable[[Future], None],
        *args: Any
    ) -> Future:
        """
        Run task(*args) on a worker, then post on_done(future) to the UI.

        on_done receives the finished Future and calls result() itself,
        so exceptions raised by the task surface on the UI thread.
        """
        with self._lock:
            self._in_flight += 1
        future = self._executor.submit(task, *args)
        future.add_done_callback(lambda f: self.ui.post(self._deliver, on_done, f))
        return future

    @property
    def in_flight(self) -> int:
        """ask() calls whose on_done has not run yet."""
        with self._lock:
            return self._in_flight

    def _deliver(self, on_done: Callable[[Future], None], future: Future) -> None:
        with self._lock:
            self._in_flight -= 1
        on_done(future)

    def spawn(self, task: Callable[..., Any], *args: Any) -> Future:
        """Fire-and-forget task; failures are logged."""
        future = self._executor.submit(task, *args)
        future.add_done_callback(_log_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Background task failed: {exc}", exc_info=exc)
