"""
Keyed memoization for build and publish stages.

Each key maps to a shared task. The first caller for a key starts the work;
every concurrent or later caller awaits that same task, so the underlying
computation runs at most once per key. The bookkeeping lock only guards the
table and is released before the work is awaited, so unrelated keys never
wait on each other.
"""

import asyncio
import logging
from functools import partial
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ComputeCache(Generic[K, V]):
    """
    At-most-once computation per key.

    Args:
        name: Label used in log messages
        cache_failures: Keep failed computations so later callers receive the
            same error instead of retrying (default: retry)
    """

    def __init__(self, name: str = "cache", cache_failures: bool = False):
        self.name = name
        self.cache_failures = cache_failures
        self._entries: Dict[K, "asyncio.Future[V]"] = {}
        self._lock = asyncio.Lock()

    async def get_or_compute(self, key: K, fn: Callable[[K], Awaitable[V]]) -> V:
        """Return the result for ``key``, running ``fn(key)`` only if needed."""
        async with self._lock:
            task = self._entries.get(key)
            if task is None:
                log.debug(f"{self.name}: computing {key}")
                task = asyncio.ensure_future(fn(key))
                self._entries[key] = task
                task.add_done_callback(partial(self._on_done, key))
            else:
                log.debug(f"{self.name}: reusing {key}")

        # Shield so a cancelled waiter does not cancel the shared work.
        return await asyncio.shield(task)

    def _on_done(self, key: K, task: "asyncio.Future[V]") -> None:
        if task.cancelled():
            failed = True
        else:
            failed = task.exception() is not None

        if failed and (task.cancelled() or not self.cache_failures):
            if self._entries.get(key) is task:
                del self._entries[key]
                log.debug(f"{self.name}: dropped failed entry for {key}")

    def close(self) -> None:
        """Forget every entry. In-flight work is left to finish on its own."""
        self._entries.clear()

    def __contains__(self, key: K) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
