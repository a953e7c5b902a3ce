"""Streaming of contiguous entry bundles and entries from a log."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar, runtime_checkable

from tilelog.ct_layout import ENTRY_BUNDLE_WIDTH

_log = logging.getLogger(__name__)

T = TypeVar("T")

GetBundleFn = Callable[[int, int], bytes]
GetTreeSizeFn = Callable[[], int]


@dataclass(frozen=True)
class RangeInfo:
    """Which entries of one entry bundle fall inside a requested range.

    ``partial`` is the partial size of the bundle resource (0 for a full
    bundle); ``first`` and ``n`` select the relevant entries within it.
    """

    index: int
    partial: int
    first: int
    n: int


@dataclass(frozen=True)
class Bundle:
    """A raw entry bundle fetched from a log, with the part of it that is relevant."""

    range_info: RangeInfo
    data: bytes


@dataclass(frozen=True)
class StreamEntry(Generic[T]):
    """A single leaf of a log and its index."""

    index: int
    entry: T


@runtime_checkable
class Streamer(Protocol):
    """Something which can stream the entries of an integrated log."""

    def integrated_size(self) -> int:
        """Return the size of the integrated tree.

        Only for processes internal to the log; it is not a substitute for
        reading a published checkpoint.
        """
        ...

    def stream_entries(self, start_entry: int, n: int) -> Iterator[Bundle]:
        """Yield the bundles covering entries [start_entry, start_entry + n)."""
        ...


@runtime_checkable
class Follower(Protocol):
    """Something which tracks the contents of the local log."""

    def name(self) -> str:
        """Return a human readable name for this follower."""
        ...

    def follow(self, streamer: Streamer) -> None:
        """Visit the log's entries in order, resuming from earlier progress."""
        ...

    def entries_processed(self) -> int:
        """Return the number of log entries processed so far."""
        ...


def _partial_bundle_size(index: int, tree_size: int) -> int:
    if index < tree_size // ENTRY_BUNDLE_WIDTH:
        return 0
    return tree_size % ENTRY_BUNDLE_WIDTH


def bundle_ranges(from_entry: int, end_entry: int, tree_size: int) -> Iterator[RangeInfo]:
    """Yield the bundles covering entries [from_entry, end_entry) of a tree.

    The range is truncated at ``tree_size``; nothing is yielded if it is empty.
    """
    end_entry = min(end_entry, tree_size)
    if from_entry >= end_entry:
        return
    last = end_entry - 1
    first_bundle = from_entry // ENTRY_BUNDLE_WIDTH
    last_bundle = last // ENTRY_BUNDLE_WIDTH

    for index in range(first_bundle, last_bundle + 1):
        if index == first_bundle:
            first = from_entry % ENTRY_BUNDLE_WIDTH
            if index == last_bundle:
                n = last % ENTRY_BUNDLE_WIDTH + 1 - first
            else:
                n = ENTRY_BUNDLE_WIDTH - first
            yield RangeInfo(index, _partial_bundle_size(index, tree_size), first, n)
        elif index == last_bundle:
            n = last % ENTRY_BUNDLE_WIDTH + 1
            yield RangeInfo(index, _partial_bundle_size(index, tree_size), 0, n)
        else:
            yield RangeInfo(index, 0, 0, ENTRY_BUNDLE_WIDTH)


def entry_bundles(
    num_workers: int,
    get_size: GetTreeSizeFn,
    get_bundle: GetBundleFn,
    from_entry: int,
    n: int,
) -> Iterator[Bundle]:
    """Yield, in log order, the bundles covering entries [from_entry, from_entry + n).

    Up to ``num_workers`` bundles are fetched ahead in parallel. Any error
    from ``get_size`` or ``get_bundle`` is raised from the iterator, which
    then stops.
    """
    if num_workers < 1:
        raise ValueError(f"num_workers must be at least 1, got {num_workers}")
    return _stream_bundles(num_workers, get_size, get_bundle, from_entry, n)


def _stream_bundles(
    num_workers: int,
    get_size: GetTreeSizeFn,
    get_bundle: GetBundleFn,
    from_entry: int,
    n: int,
) -> Iterator[Bundle]:
    tree_size = get_size()
    _log.debug("streaming entries [%d, %d)", from_entry, from_entry + n)

    pool = ThreadPoolExecutor(max_workers=num_workers)
    pending: deque[tuple[RangeInfo, Future[bytes]]] = deque()

    def ready() -> Bundle:
        ri, future = pending.popleft()
        return Bundle(ri, future.result())

    try:
        for ri in bundle_ranges(from_entry, from_entry + n, tree_size):
            pending.append((ri, pool.submit(get_bundle, ri.index, ri.partial)))
            if len(pending) >= num_workers:
                yield ready()
        while pending:
            yield ready()
    finally:
        for _, future in pending:
            future.cancel()
        pool.shutdown(wait=False, cancel_futures=True)
    _log.debug("stream of entry bundles done")


def entries(
    bundles: Iterable[Bundle], bundle_fn: Callable[[bytes], Sequence[T]]
) -> Iterator[StreamEntry[T]]:
    """Yield the relevant entries of each bundle, processed with ``bundle_fn``.

    ``bundle_fn`` turns a raw bundle into its entries, which may be raw bytes,
    parsed structures or derived values such as hashes.
    """
    for bundle in bundles:
        items = bundle_fn(bundle.data)
        ri = bundle.range_info
        if len(items) <= ri.first:
            raise ValueError(f"logic error: First is {ri.first} but only {len(items)} entries")
        base = ri.index * ENTRY_BUNDLE_WIDTH + ri.first
        for index, item in enumerate(items[ri.first:ri.first + ri.n], start=base):
            yield StreamEntry(index, item)