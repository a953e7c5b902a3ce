"""Workers which read leaves from, and write leaves to, a log under test."""

from __future__ import annotations

import logging
import queue
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from tilelog.ct_layout import ENTRY_BUNDLE_WIDTH
from tilelog.hashing import parse_entry_bundle
from tilelog.loadtest.client import LeafWriter

_log = logging.getLogger(__name__)

_POLL = 0.05


class _TokenSource(Protocol):
    def take(self, timeout: float | None = None) -> bool:
        ...


@dataclass(frozen=True)
class LeafTime:
    """When a leaf was queued for writing and when it was assigned its index.

    Times are monotonic clock readings in nanoseconds.
    """

    index: int
    queued_at: int
    assigned_at: int


class LeafReader:
    """Reads leaves from the log, choosing which with ``next_leaf``.

    Not thread safe: each reader should run in a single thread.
    """

    def __init__(
        self,
        tree_size: Callable[[], int],
        fetch_bundle: Callable[[int, int], bytes],
        next_leaf: Callable[[int], int],
        throttle: _TokenSource,
        errors: queue.Queue[Exception],
    ) -> None:
        self._tree_size = tree_size
        self._fetch = fetch_bundle
        self._next = next_leaf
        self._throttle = throttle
        self._errors = errors
        self._stop = threading.Event()
        self._started = False
        self._cache_start = 0
        self._cache_leaves: list[bytes] = []

    def get_leaf(self, index: int, log_size: int) -> bytes:
        """Return the raw leaf at ``index`` of a log of size ``log_size``."""
        if index >= log_size:
            raise ValueError(f"requested leaf {index} >= log size {log_size}")
        if self._cache_start <= index < self._cache_start + len(self._cache_leaves):
            _log.debug("Using cached result for index %d", index)
            return self._cache_leaves[index - self._cache_start]

        bundle_index = index // ENTRY_BUNDLE_WIDTH
        partial = log_size % ENTRY_BUNDLE_WIDTH if bundle_index == log_size // ENTRY_BUNDLE_WIDTH else 0
        try:
            leaves = parse_entry_bundle(self._fetch(bundle_index, partial))
        except Exception as exc:
            raise RuntimeError(f"failed to get entry bundle: {exc}") from exc
        offset = index % ENTRY_BUNDLE_WIDTH
        if offset >= len(leaves):
            raise ValueError(
                f"entry bundle {bundle_index} has {len(leaves)} entries, wanted entry {offset}"
            )
        self._cache_start = index - offset
        self._cache_leaves = leaves
        return leaves[offset]

    def run(self) -> None:
        """Read leaves, one per throttle token, until killed."""
        if self._started:
            raise RuntimeError("LeafReader was run multiple times")
        self._started = True
        while not self._stop.is_set():
            if not self._throttle.take(timeout=_POLL):
                continue
            size = self._tree_size()
            if size == 0:
                continue
            index = self._next(size)
            if index >= size:
                continue
            _log.debug("LeafReader getting %d", index)
            try:
                self.get_leaf(index, size)
            except Exception as exc:
                self._errors.put(RuntimeError(f"failed to get leaf {index}: {exc}"))

    def kill(self) -> None:
        """Stop the reader at the next opportune moment."""
        self._stop.set()


class LogWriter:
    """Writes leaves produced by ``gen`` to the log, sampling their timings."""

    def __init__(
        self,
        writer: LeafWriter,
        gen: Callable[[], bytes],
        throttle: _TokenSource,
        errors: queue.Queue[Exception],
        leaf_samples: queue.Queue[LeafTime],
    ) -> None:
        self._writer = writer
        self._gen = gen
        self._throttle = throttle
        self._errors = errors
        self._samples = leaf_samples
        self._stop = threading.Event()
        self._started = False

    def run(self) -> None:
        """Write leaves, one per throttle token, until killed."""
        if self._started:
            raise RuntimeError("LogWriter was run multiple times")
        self._started = True
        leaf = self._gen()
        while not self._stop.is_set():
            if not self._throttle.take(timeout=_POLL):
                continue
            queued_at = time.monotonic_ns()
            try:
                index = self._writer(leaf)
            except Exception as exc:
                wrapped = RuntimeError(f"failed to create request: {exc}")
                wrapped.__cause__ = exc
                self._errors.put(wrapped)
                continue
            sample = LeafTime(index, queued_at, time.monotonic_ns())
            try:
                self._samples.put_nowait(sample)
            except queue.Full:
                pass
            _log.debug("Wrote leaf at index %d", index)
            leaf = self._gen()

    def kill(self) -> None:
        """Stop the writer at the next opportune moment."""
        self._stop.set()


def random_next_leaf() -> Callable[[int], int]:
    """Return a strategy which picks a random leaf within the tree."""
    return random.randrange


def monotonically_increasing_next_leaf() -> Callable[[int], int]:
    """Return a strategy which reads leaves in order from 0.

    When it has caught up with the tree it returns the tree size.
    """
    position = 0

    def next_leaf(size: int) -> int:
        nonlocal position
        if position < size:
            position += 1
            return position - 1
        return size

    return next_leaf