"""Cooperative cancellation and a bounded asyncio worker pool."""

import asyncio
import os
import threading
from typing import Awaitable, Callable, Sequence, TypeVar

from proxyprint.errors import ExportCancelled

T = TypeVar("T")

HARD_MAX_CONCURRENCY = 8


class AbortSignal:
    """
    Flag checked cooperatively by long-running exports.

    Safe to trip from another thread (e.g., a UI or signal handler).
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str | None = None) -> None:
        """Request cancellation."""
        self.reason = reason
        self._event.set()

    def raise_if_aborted(self) -> None:
        """
        Raise if cancellation was requested.

        Raises:
            ExportCancelled: If abort() has been called.
        """
        if self._event.is_set():
            raise ExportCancelled(self.reason or "Export was cancelled")


def check_abort(signal: AbortSignal | None) -> None:
    """Raise ExportCancelled when an optional signal has tripped."""
    if signal is not None:
        signal.raise_if_aborted()


def resolve_concurrency(max_override: int | None = None) -> int:
    """
    Pick a worker count.

    Args:
        max_override: Requested worker count, if any.

    Returns:
        Worker count between 1 and 8.
    """
    if max_override is not None and max_override > 0:
        return max(1, min(HARD_MAX_CONCURRENCY, int(max_override)))
    cpus = os.cpu_count()
    if cpus:
        return min(HARD_MAX_CONCURRENCY, cpus)
    return 2


async def process_with_concurrency(
    items: Sequence[T],
    worker: Callable[[T, int], Awaitable[None]],
    limit: int | None = None,
    signal: AbortSignal | None = None,
) -> None:
    """
    Run an async worker over items with at most `limit` in flight.

    A fixed pool of runners pulls the next index from a shared counter, so
    items start in input order. Runners stop picking up work once the signal
    trips; work already in flight finishes.

    Args:
        items: Items to process.
        worker: Coroutine function called as worker(item, index).
        limit: Maximum concurrent workers (defaults to CPU count, capped at 8).
        signal: Optional abort signal.
    """
    if not items:
        return

    max_workers = resolve_concurrency(limit)
    next_index = 0

    async def run() -> None:
        nonlocal next_index
        while True:
            if signal is not None and signal.aborted:
                return
            current = next_index
            next_index += 1
            if current >= len(items):
                return
            await worker(items[current], current)
            # Let other runners and the caller's loop make progress
            await asyncio.sleep(0)

    runners = [run() for _ in range(min(max_workers, len(items)))]
    await asyncio.gather(*runners)
