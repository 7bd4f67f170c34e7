"""Background workers, cancellation and main-thread hand-off."""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable

from loguru import logger

# Runs a callback on the thread that owns the record store
Dispatch = Callable[[Callable[[], None]], None]


def run_inline(fn: Callable[[], None]) -> None:
    """Dispatch that runs the callback immediately on the calling thread."""
    fn()


class CancelToken:
    """Thread-safe cancellation token."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


class MainThreadDispatcher:
    """
    Queue of callbacks posted by workers and executed by the owning thread.

    Workers call ``post``; the owner calls ``drain`` from its own loop
    (or after joining a worker) to apply queued mutations in order.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()
        self._owner = threading.get_ident()

    def post(self, fn: Callable[[], None]) -> None:
        self._queue.put(fn)

    def __call__(self, fn: Callable[[], None]) -> None:
        self.post(fn)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> int:
        """Run every queued callback. Must be called on the owning thread."""
        if threading.get_ident() != self._owner:
            raise RuntimeError("MainThreadDispatcher.drain() called off the owning thread")
        count = 0
        while True:
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                return count
            fn()
            count += 1


class BackgroundTask:
    """Runs ``fn(cancel_token)`` on a daemon thread and keeps its outcome."""

    def __init__(self, fn: Callable[[CancelToken], Any], name: str = "romkeeper-worker") -> None:
        self._fn = fn
        self.cancel_token = CancelToken()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._result: Any = None
        self._error: BaseException | None = None

    def _run(self) -> None:
        try:
            self._result = self._fn(self.cancel_token)
        except Exception as e:
            logger.exception(f"Background task {self._thread.name} failed: {e}")
            self._error = e

    def start(self) -> BackgroundTask:
        self._thread.start()
        return self

    def cancel(self) -> None:
        self.cancel_token.cancel()

    def is_running(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker. Returns True if it finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def result(self, timeout: float | None = None) -> Any:
        """Wait for the worker and return its value, re-raising its exception."""
        if not self.join(timeout):
            raise TimeoutError(f"Background task {self._thread.name} still running")
        if self._error is not None:
            raise self._error
        return self._result
