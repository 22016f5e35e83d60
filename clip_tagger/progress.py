"""
Monotonic progress reporting for a single tagging call.
"""

import math
import threading
import time
from typing import Callable, Optional

ProgressSink = Callable[[float], None]


class ProgressReporter:
    """Forwards strictly increasing fractions in [0, 1] to a sink.

    Values that would not advance the bar are dropped, so phases can report
    freely without coordinating with each other. The lock is reentrant, so a
    sink may itself call :meth:`report`.
    """

    def __init__(self, sink: Optional[ProgressSink] = None):
        self._sink = sink
        self._value = 0.0
        self._lock = threading.RLock()

    @property
    def value(self) -> float:
        return self._value

    def report(self, fraction: float) -> None:
        clamped = min(1.0, max(0.0, float(fraction)))
        with self._lock:
            if clamped <= self._value:
                return
            self._value = clamped
            # Called under the lock so the sink never sees values out of order.
            if self._sink is not None:
                self._sink(clamped)

    def sub_range(self, start: float, end: float) -> Callable[[Optional[float]], None]:
        """Map a phase-local fraction onto ``[start, end]`` of the overall bar.

        ``None`` (indeterminate) is ignored.
        """
        def report_phase(fraction: Optional[float]) -> None:
            if fraction is None:
                return
            local = min(1.0, max(0.0, fraction))
            self.report(start + (end - start) * local)

        return report_phase


class SyntheticProgress:
    """Eases the bar toward a ceiling while a blocking call runs.

    Progress follows ``start + (ceiling - start) * (1 - exp(-t / time_constant))``
    and never reaches the ceiling. Use as a context manager; the worker thread
    is stopped and joined on exit whether the block succeeded or raised.
    """

    def __init__(
        self,
        reporter: ProgressReporter,
        start: float,
        ceiling: float = 0.975,
        time_constant: float = 2.2,
        interval: float = 0.12,
    ):
        self.reporter = reporter
        self.start = max(start, reporter.value)
        self.ceiling = ceiling
        self.time_constant = time_constant
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def value_at(self, elapsed: float) -> float:
        fraction = 1.0 - math.exp(-elapsed / self.time_constant)
        return self.start + (self.ceiling - self.start) * fraction

    def _run(self) -> None:
        began = time.monotonic()
        while not self._stop.is_set():
            self.reporter.report(self.value_at(time.monotonic() - began))
            self._stop.wait(self.interval)

    def begin(self) -> None:
        self._thread = threading.Thread(target=self._run, name="synthetic-progress", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> "SyntheticProgress":
        self.begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()
