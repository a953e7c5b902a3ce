"""Measurement and reporting of the results of a load test."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from collections.abc import Callable

from tilelog.loadtest.client import RetryError
from tilelog.loadtest.workers import LeafTime

_log = logging.getLogger(__name__)

_STATS_INTERVAL = 0.1
_ERROR_INTERVAL = 1.0
_NS_PER_MS = 1_000_000


class MovingAverage:
    """A thread-safe moving average over the last ``window`` values."""

    def __init__(self, window: int) -> None:
        if window < 1:
            raise ValueError(f"window must be at least 1, got {window}")
        self._values: deque[float] = deque(maxlen=window)
        self._lock = threading.Lock()

    def add(self, value: float) -> None:
        with self._lock:
            self._values.append(value)

    def avg(self) -> float:
        """Return the average of the values in the window, or 0 when empty."""
        with self._lock:
            if not self._values:
                return 0.0
            return sum(self._values) / len(self._values)

    def min(self) -> float:
        with self._lock:
            if not self._values:
                raise ValueError("no values in moving average")
            return min(self._values)

    def max(self) -> float:
        with self._lock:
            if not self._values:
                raise ValueError("no values in moving average")
            return max(self._values)


def _is_retry(error: BaseException) -> bool:
    current: BaseException | None = error
    while current is not None:
        if isinstance(current, RetryError):
            return True
        current = current.__cause__
    return False


class HammerAnalyser:
    """Collects leaf timing samples and errors, and summarises them."""

    def __init__(self, tree_size_fn: Callable[[], int]) -> None:
        self._tree_size = tree_size_fn
        self.seq_leaf_queue: queue.Queue[LeafTime] = queue.Queue(maxsize=100)
        self.error_queue: queue.Queue[Exception] = queue.Queue(maxsize=20)
        self.queue_time = MovingAverage(30)
        self.integration_time = MovingAverage(30)
        self._lock = threading.Lock()
        self._pushback_count = 0
        self._last_error = ""
        self._last_error_count = 0

    def update_stats(self, new_size: int) -> None:
        """Fold queued leaf samples integrated into a tree of ``new_size`` into the averages.

        The first sample beyond the tree size, or assigned after now, is
        discarded and stops this round.
        """
        now = time.monotonic_ns()
        total_latency = 0
        queue_latency = 0
        count = 0
        while True:
            try:
                sample = self.seq_leaf_queue.get_nowait()
            except queue.Empty:
                break
            if sample.index >= new_size or sample.assigned_at > now:
                break
            queue_latency += sample.assigned_at - sample.queued_at
            total_latency += now - sample.queued_at
            count += 1
        if count:
            self.integration_time.add((total_latency // _NS_PER_MS) / count)
            self.queue_time.add((queue_latency // _NS_PER_MS) / count)

    def record_error(self, error: BaseException) -> None:
        """Count an error, reporting runs of repeated errors when they change."""
        with self._lock:
            if _is_retry(error):
                self._pushback_count += 1
                return
            message = str(error)
            if message != self._last_error and self._last_error_count > 0:
                _log.warning("(%d x) %s", self._last_error_count, self._last_error)
                self._last_error = message
                self._last_error_count = 0
                return
            self._last_error = message
            self._last_error_count += 1

    def flush_errors(self) -> list[str]:
        """Report and reset the pending error counts; return the messages reported."""
        messages = []
        with self._lock:
            if self._pushback_count > 0:
                messages.append(f"{self._pushback_count} requests received pushback from log")
                self._pushback_count = 0
            if self._last_error_count > 0:
                messages.append(f"({self._last_error_count} x) {self._last_error}")
                self._last_error_count = 0
        for message in messages:
            _log.warning("%s", message)
        return messages

    def run(self, stop: threading.Event) -> list[threading.Thread]:
        """Start the statistics and error loops in background threads until ``stop`` is set."""
        threads = [
            threading.Thread(target=self._stats_loop, args=(stop,), daemon=True),
            threading.Thread(target=self._error_loop, args=(stop,), daemon=True),
        ]
        for thread in threads:
            thread.start()
        return threads

    def _stats_loop(self, stop: threading.Event) -> None:
        size = self._tree_size()
        while not stop.wait(_STATS_INTERVAL):
            new_size = self._tree_size()
            if new_size <= size:
                continue
            self.update_stats(new_size)

    def _error_loop(self, stop: threading.Event) -> None:
        next_flush = time.monotonic() + _ERROR_INTERVAL
        while not stop.is_set():
            remaining = next_flush - time.monotonic()
            if remaining <= 0:
                self.flush_errors()
                next_flush += _ERROR_INTERVAL
                continue
            try:
                error = self.error_queue.get(timeout=min(remaining, _STATS_INTERVAL))
            except queue.Empty:
                continue
            self.record_error(error)