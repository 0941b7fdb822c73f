"""Logging of elapsed time."""

from __future__ import annotations

import logging
import time
from types import TracebackType
from typing import Optional

logger = logging.getLogger("launchcore")

_UNIT_NS = {
    "s": 1_000_000_000,
    "ms": 1_000_000,
    "us": 1_000,
    "µs": 1_000,
    "ns": 1,
}


class TimePrinter:
    """Logs the time elapsed between start and stop at debug level.

    Every ``{}`` in the message is replaced by the elapsed count in ``unit``,
    right aligned in a field of width 6.
    """

    def __init__(self, message: str, unit: str = "ms") -> None:
        if unit not in _UNIT_NS:
            raise ValueError(f"Unknown time unit: {unit!r}")
        self.message = message
        self.unit = unit
        self.elapsed: Optional[int] = None
        self._begin: Optional[int] = None
        self._end: Optional[int] = None
        self.restart()

    def restart(self, message: Optional[str] = None) -> None:
        """Stop a running measurement and start a new one."""
        self.stop()
        if message is not None:
            self.message = message
        self._begin = time.perf_counter_ns()
        self._end = None
        self.elapsed = None

    def stop(self) -> Optional[int]:
        """Stop a running measurement, log it and return the elapsed count."""
        if self._begin is not None and self._end is None:
            self._end = time.perf_counter_ns()
            self.elapsed = (self._end - self._begin) // _UNIT_NS[self.unit]
            logger.debug(self.message.replace("{}", f"{self.elapsed:>6}"))
        return self.elapsed

    def __enter__(self) -> "TimePrinter":
        return self

    def __exit__(
        self,
        *args: "Optional[type[BaseException]] | Optional[BaseException] | Optional[TracebackType]",
    ) -> None:
        self.stop()