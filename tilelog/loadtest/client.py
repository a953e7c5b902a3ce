"""Round-robin spreading of load test requests over several log endpoints."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar

LeafWriter = Callable[[bytes], int]

_T = TypeVar("_T")


class RetryError(Exception):
    """Raised by a writer when the log asks for the request to be retried later."""


class LogReader(Protocol):
    """Read access to the static resources of a log."""

    def read_checkpoint(self) -> bytes:
        ...

    def read_tile(self, level: int, index: int, p: int) -> bytes:
        ...

    def read_entry_bundle(self, index: int, p: int) -> bytes:
        ...


class _RoundRobin:
    def __init__(self, items: Sequence[_T]) -> None:
        if not items:
            raise ValueError("at least one target is required")
        self._items = list(items)
        self._idx = 0
        self._lock = threading.Lock()

    def next(self) -> _T:
        with self._lock:
            item = self._items[self._idx]
            self._idx = (self._idx + 1) % len(self._items)
            return item


class RoundRobinReader:
    """A log reader which spreads requests over several readers in turn."""

    def __init__(self, readers: Sequence[LogReader]) -> None:
        self._readers = _RoundRobin(readers)

    def read_checkpoint(self) -> bytes:
        return self._readers.next().read_checkpoint()

    def read_tile(self, level: int, index: int, p: int) -> bytes:
        return self._readers.next().read_tile(level, index, p)

    def read_entry_bundle(self, index: int, p: int) -> bytes:
        return self._readers.next().read_entry_bundle(index, p)


def round_robin_writer(writers: Sequence[LeafWriter]) -> LeafWriter:
    """Return a writer which spreads writes over ``writers`` in turn."""
    rotation = _RoundRobin(writers)

    def write(data: bytes) -> int:
        return rotation.next()(data)

    return write