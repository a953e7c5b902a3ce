"""Token-bucket throttling of load test operations."""

from __future__ import annotations

import queue
import threading
import time

_INTERVAL = 1.0


class Throttle:
    """Hands out a configurable number of operation tokens each second.

    Tokens are placed in a bounded queue whose capacity is fixed at the
    initial rate. Tokens that cannot be delivered within a supply interval
    are counted as oversupply.
    """

    def __init__(self, ops_per_second: int) -> None:
        if ops_per_second < 0:
            raise ValueError(f"ops_per_second must not be negative, got {ops_per_second}")
        self._ops = ops_per_second
        self._tokens: queue.Queue[bool] = queue.Queue(maxsize=max(ops_per_second, 1))
        self._lock = threading.Lock()
        self._oversupply = 0

    @property
    def ops_per_second(self) -> int:
        """The current maximum number of operations per second."""
        with self._lock:
            return self._ops

    @property
    def oversupply(self) -> int:
        """The number of tokens that could not be delivered in the last supply round."""
        with self._lock:
            return self._oversupply

    def increase(self) -> None:
        """Raise the rate by 10%, and by at least one."""
        with self._lock:
            self._ops += int(max(self._ops * 0.1, 1))

    def decrease(self) -> None:
        """Lower the rate by 10%, and by at least one, never below one."""
        with self._lock:
            if self._ops <= 1:
                return
            self._ops -= int(max(self._ops * 0.1, 1))

    def supply_tokens(self, timeout: float) -> None:
        """Try to deliver one round of tokens within ``timeout`` seconds."""
        deadline = time.monotonic() + timeout
        with self._lock:
            undelivered = self._ops
            for _ in range(self._ops):
                wait = deadline - time.monotonic()
                try:
                    if wait <= 0:
                        self._tokens.put_nowait(True)
                    else:
                        self._tokens.put(True, timeout=wait)
                except queue.Full:
                    self._oversupply = undelivered
                    return
                undelivered -= 1
            self._oversupply = 0

    def take(self, timeout: float | None = None) -> bool:
        """Take one token, waiting up to ``timeout`` seconds; return whether one was taken."""
        try:
            if timeout is not None and timeout <= 0:
                self._tokens.get_nowait()
            else:
                self._tokens.get(timeout=timeout)
        except queue.Empty:
            return False
        return True

    def run(self, stop: threading.Event) -> None:
        """Supply a round of tokens every second until ``stop`` is set."""
        while not stop.wait(_INTERVAL):
            self.supply_tokens(_INTERVAL)

    def __str__(self) -> str:
        with self._lock:
            return (
                f"Current max: {self._ops}/s. "
                f"Oversupply in last second: {self._oversupply}"
            )