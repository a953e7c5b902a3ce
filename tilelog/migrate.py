"""Copying of entry bundles from a source log into a target log."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor

from tilelog.stream import RangeInfo, bundle_ranges

_log = logging.getLogger(__name__)

SetEntryBundleFn = Callable[[int, int, bytes], None]
GetEntryBundleFn = Callable[[int, int], bytes]


class CopyError(Exception):
    """Raised when copying entry bundles fails."""


class Copier:
    """Copies entry bundles from a source log to a target using parallel workers.

    Only the entry bundles are copied; the target is expected to integrate
    them and recalculate the root itself. Each bundle copy is retried with
    exponential backoff before giving up.
    """

    def __init__(
        self,
        num_workers: int,
        set_entry_bundle: SetEntryBundleFn,
        get_entry_bundle: GetEntryBundleFn,
        attempts: int = 10,
        base_delay: float = 0.1,
    ) -> None:
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        if attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {attempts}")
        self._num_workers = num_workers
        self._set = set_entry_bundle
        self._get = get_entry_bundle
        self._attempts = attempts
        self._base_delay = base_delay
        self._copied = 0
        self._lock = threading.Lock()

    def bundles_copied(self) -> int:
        """Return the number of entry bundles copied so far."""
        with self._lock:
            return self._copied

    def copy(self, from_size: int, source_size: int) -> None:
        """Copy the bundles for entries [from_size, source_size), blocking until done."""
        _log.info("Starting copy from %d to source size %d", from_size, source_size)
        if from_size > source_size:
            raise CopyError(f"from size {from_size} > source size {source_size}")

        work: Iterator[RangeInfo] = bundle_ranges(from_size, source_size, source_size)
        work_lock = threading.Lock()

        def next_bundle() -> RangeInfo | None:
            with work_lock:
                return next(work, None)

        with ThreadPoolExecutor(max_workers=self._num_workers) as pool:
            futures = [pool.submit(self._worker, next_bundle) for _ in range(self._num_workers)]
        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            raise CopyError(f"copy failed: {errors[0]}") from errors[0]

    def _worker(self, next_bundle: Callable[[], RangeInfo | None]) -> None:
        while (ri := next_bundle()) is not None:
            self._copy_with_retry(ri)

    def _copy_with_retry(self, ri: RangeInfo) -> None:
        last_error: CopyError | None = None
        for attempt in range(self._attempts):
            if attempt:
                time.sleep(self._base_delay * 2 ** (attempt - 1))
            try:
                data = self._get(ri.index, ri.partial)
            except Exception as exc:
                last_error = CopyError(
                    f"failed to fetch entrybundle {ri.index} (p={ri.partial}): {exc}"
                )
                _log.info("%s", last_error)
                continue
            try:
                self._set(ri.index, ri.partial, data)
            except Exception as exc:
                last_error = CopyError(
                    f"failed to store entrybundle {ri.index} (p={ri.partial}): {exc}"
                )
                _log.info("%s", last_error)
                continue
            with self._lock:
                self._copied += 1
            return
        assert last_error is not None
        _log.info("retry: %s", last_error)
        raise last_error