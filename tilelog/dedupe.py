"""In-memory deduplication of entries being added to a log."""

from __future__ import annotations

import dataclasses
import threading
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from tilelog.entry import Entry


class PushbackError(Exception):
    """Raised when the log cannot accept new entries because it is overloaded.

    Callers should apply back-pressure to the source of new entries.
    """


@dataclass(frozen=True)
class Index:
    """The index assigned to an entry, and whether it was a duplicate."""

    index: int
    is_dup: bool = False


IndexFuture = Callable[[], Index]
AddFn = Callable[[Entry], IndexFuture]


def _once(fn: Callable[[], IndexFuture]) -> Callable[[], IndexFuture]:
    lock = threading.Lock()
    result: list[IndexFuture] = []

    def call() -> IndexFuture:
        with lock:
            if not result:
                result.append(fn())
        return result[0]

    return call


class InMemoryDedupe:
    """Wraps an add function, returning earlier results for recently seen entries.

    Results are kept in a least-recently-added cache of ``size`` entries.
    Failed additions are not cached, so they may be retried.
    """

    def __init__(self, delegate: AddFn, size: int) -> None:
        if size <= 0:
            raise ValueError(f"cache size must be positive, got {size}")
        self._delegate = delegate
        self._size = size
        self._cache: OrderedDict[bytes, Callable[[], IndexFuture]] = OrderedDict()
        self._lock = threading.Lock()

    def _peek_or_add(
        self, key: bytes, value: Callable[[], IndexFuture]
    ) -> Callable[[], IndexFuture] | None:
        with self._lock:
            existing = self._cache.get(key)
            if existing is not None:
                return existing
            self._cache[key] = value
            while len(self._cache) > self._size:
                self._cache.popitem(last=False)
            return None

    def _forget(self, key: bytes) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def add(self, entry: Entry) -> IndexFuture:
        """Add ``entry`` unless it was seen recently; return a future for its index."""
        key = bytes(entry.identity)

        def resolve() -> IndexFuture:
            # Only one delegate call is made per unique entry, however many duplicates arrive.
            delegate_future: IndexFuture | None = None
            failure: Exception | None = None
            try:
                delegate_future = self._delegate(entry)
            except Exception as exc:
                failure = exc

            def future() -> Index:
                try:
                    if failure is not None:
                        raise failure
                    return delegate_future()
                except Exception:
                    # Errors may be transient (including pushback), so let the entry be retried.
                    self._forget(key)
                    raise

            return future

        first = _once(resolve)
        previous = self._peek_or_add(key, first)
        if previous is None:
            return first()

        def duplicate() -> Index:
            return dataclasses.replace(previous()(), is_dup=True)

        return duplicate

    __call__ = add


def in_memory_dedupe(size: int) -> Callable[[AddFn], AddFn]:
    """Return a decorator which wraps an add function in an in-memory dedupe cache."""

    def decorate(add_fn: AddFn) -> AddFn:
        return InMemoryDedupe(add_fn, size).add

    return decorate