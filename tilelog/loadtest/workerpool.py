"""A simple pool of running workers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol


class Worker(Protocol):
    """Something which runs until it is killed."""

    def run(self) -> None:
        """Do the worker's job until killed."""
        ...

    def kill(self) -> None:
        """Ask the worker to stop at the next opportune moment."""
        ...


class WorkerPool:
    """A collection of running workers created by a factory."""

    def __init__(self, factory: Callable[[], Worker]) -> None:
        self._factory = factory
        self._workers: list[Worker] = []

    def grow(self) -> None:
        """Create a new worker and start it in a background thread."""
        worker = self._factory()
        self._workers.append(worker)
        threading.Thread(target=worker.run, daemon=True).start()

    def shrink(self) -> None:
        """Kill the most recently added worker, if there is one."""
        if self._workers:
            self._workers.pop().kill()

    def __len__(self) -> int:
        return len(self._workers)