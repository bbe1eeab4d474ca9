"""
Unit tests for the keyed compute cache.

Covers the at-most-once guarantee under concurrent callers, independence of
distinct keys, and the failure policy (failures are retried by default).
"""

import asyncio
import itertools

import pytest

from sko.core.cache import ComputeCache


class CountingWork:
    """Async unit of work that sleeps, then returns a unique token."""

    def __init__(self, delay: float = 0.05, fail_times: int = 0):
        self.delay = delay
        self.fail_times = fail_times
        self.calls = []
        self._tokens = itertools.count()

    async def __call__(self, key):
        self.calls.append(key)
        await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError(f"boom for {key}")
        return f"{key}-{next(self._tokens)}"


class TestComputeCache:
    @pytest.mark.asyncio
    async def test_concurrent_same_key_runs_once(self):
        cache = ComputeCache()
        work = CountingWork()

        results = await asyncio.gather(
            *(cache.get_or_compute("k", work) for _ in range(10))
        )

        assert work.calls == ["k"]
        assert len(set(results)) == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_run_independently(self):
        cache = ComputeCache()
        work = CountingWork(delay=0.1)

        loop = asyncio.get_running_loop()
        start = loop.time()
        r1, r2 = await asyncio.gather(
            cache.get_or_compute("k1", work), cache.get_or_compute("k2", work)
        )
        elapsed = loop.time() - start

        assert sorted(work.calls) == ["k1", "k2"]
        assert r1.startswith("k1-") and r2.startswith("k2-")
        # Both ran concurrently rather than one after the other.
        assert elapsed < 0.19

    @pytest.mark.asyncio
    async def test_completed_result_is_reused(self):
        cache = ComputeCache()
        work = CountingWork(delay=0)

        first = await cache.get_or_compute("k", work)
        second = await cache.get_or_compute("k", work)

        assert first == second
        assert work.calls == ["k"]
        assert "k" in cache and len(cache) == 1

    @pytest.mark.asyncio
    async def test_concurrent_waiters_share_the_failure(self):
        cache = ComputeCache()
        work = CountingWork(fail_times=1)

        results = await asyncio.gather(
            *(cache.get_or_compute("k", work) for _ in range(3)),
            return_exceptions=True,
        )

        assert work.calls == ["k"]
        assert all(isinstance(r, RuntimeError) for r in results)

    @pytest.mark.asyncio
    async def test_failure_is_not_cached_by_default(self):
        cache = ComputeCache()
        work = CountingWork(delay=0, fail_times=1)

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("k", work)
        assert "k" not in cache

        result = await cache.get_or_compute("k", work)
        assert result.startswith("k-")
        assert work.calls == ["k", "k"]

    @pytest.mark.asyncio
    async def test_failure_cached_when_configured(self):
        cache = ComputeCache(cache_failures=True)
        work = CountingWork(delay=0, fail_times=1)

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("k", work)
        with pytest.raises(RuntimeError):
            await cache.get_or_compute("k", work)

        assert work.calls == ["k"]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_work(self):
        cache = ComputeCache()
        work = CountingWork(delay=0.05)

        waiter = asyncio.ensure_future(cache.get_or_compute("k", work))
        await asyncio.sleep(0)
        waiter.cancel()

        result = await cache.get_or_compute("k", work)
        assert result == "k-0"
        assert work.calls == ["k"]

    @pytest.mark.asyncio
    async def test_close_forgets_entries(self):
        cache = ComputeCache()
        work = CountingWork(delay=0)

        await cache.get_or_compute("k", work)
        cache.close()
        await cache.get_or_compute("k", work)

        assert len(cache) == 1
        assert work.calls == ["k", "k"]
