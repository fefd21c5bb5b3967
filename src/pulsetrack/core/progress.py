"""
Progress reporting and cancellation for long-running analyses.

Analysis runs synchronously; callers that need a responsive UI run it
on a worker thread and use these hooks to observe or stop it.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

ProgressCallback = Callable[[float], None]


class AnalysisCancelled(RuntimeError):
    """Raised when an analysis is stopped through its CancellationToken."""


class CancellationToken:
    """Thread-safe cancellation flag checked between blocks of frames."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Audio analysis was cancelled")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """No-op when no token was supplied."""
    if token is not None:
        token.raise_if_cancelled()


class ProgressReporter:
    """
    Forward fractional progress to an optional callback.

    Values are mapped into [start, end] and never go backwards within a
    single reporter, so stages can report independently.
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback] = None,
        start: float = 0.0,
        end: float = 1.0,
    ):
        self.callback = callback
        self.start = start
        self.end = end
        self._last = start

    def __call__(self, fraction: float) -> None:
        self.report(fraction)

    def report(self, fraction: float) -> None:
        """Report completion of this stage as a fraction in [0, 1]."""
        if self.callback is None:
            return
        fraction = min(1.0, max(0.0, float(fraction)))
        value = self.start + fraction * (self.end - self.start)
        value = max(value, self._last)
        self._last = value
        self.callback(value)

    def stage(self, start: float, end: float) -> "ProgressReporter":
        """Child reporter covering a sub-range of this reporter's range."""
        span = self.end - self.start
        child = ProgressReporter(
            self.callback,
            self.start + start * span,
            self.start + end * span,
        )
        child._last = max(child.start, self._last)
        return child
