"""Runs a recurring task in the background, coalescing repeated requests."""

from __future__ import annotations

import threading
from typing import Any, Callable, Generic, Optional, TypeVar

from launchcore.timing import TimePrinter, logger

T = TypeVar("T")

_FAILED = object()


class BackgroundExecutor(Generic[T]):
    """Runs ``parallel`` in a worker thread and hands its result to ``finish``.

    ``parallel`` receives a ``threading.Event`` that is set when a rerun has
    been requested; the task should then stop early, as its result will be
    discarded and the task run again. ``finish`` is called in the worker
    thread with the result of the last run.
    """

    def __init__(
        self,
        parallel: Callable[[threading.Event], T],
        finish: Callable[[T], Any],
    ) -> None:
        self.parallel = parallel
        self.finish = finish
        self._cond = threading.Condition()
        self._abort = threading.Event()
        self._running = False
        self._pending = 0
        self._closed = False

    def __enter__(self) -> "BackgroundExecutor[T]":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def run(self) -> None:
        """Run the task, or schedule a rerun if it is running."""
        with self._cond:
            if self._closed:
                raise RuntimeError("The executor has been closed.")
            if self._running:
                self._abort.set()
                return
            self._running = True
            self._pending += 1
            threading.Thread(target=self._work, name="background-executor", daemon=True).start()

    def _work(self) -> None:
        result: Any = _FAILED
        try:
            while True:
                try:
                    result = self.parallel(self._abort)
                except Exception as e:
                    logger.warning("Background task threw %s", e)
                    result = _FAILED
                with self._cond:
                    if self._abort.is_set() and not self._closed:
                        self._abort.clear()
                        continue
                    self._running = False
                    closed = self._closed
                break
            if result is not _FAILED and not closed:
                self.finish(result)
        finally:
            with self._cond:
                self._pending -= 1
                self._cond.notify_all()

    def is_running(self) -> bool:
        """True while the task is being executed."""
        with self._cond:
            return self._running

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the task and its finish call are done. False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._running and self._pending == 0, timeout
            )

    def close(self) -> None:
        """Drop pending reruns and results and wait for the task to end."""
        with self._cond:
            self._closed = True
            self._abort.clear()
            busy = self._running
        if busy:
            logger.warning("Busy wait for background task. Abortion handled correctly?")
            with TimePrinter("Busy waited for {} ms."):
                self.wait()
        else:
            self.wait()