"""Memoize publishes by identity and build result."""

from typing import Optional

from ..core.cache import ComputeCache
from ..core.reference import Reference
from ..core.types import BuildResult
from .base import Publisher


class CachingPublisher:
    """Publish each (identity, result) pair at most once."""

    def __init__(self, inner: Publisher, cache: Optional[ComputeCache] = None):
        self.inner = inner
        self.cache = cache if cache is not None else ComputeCache(name="publish")

    async def publish(self, result: BuildResult, identity: str) -> Reference:
        key = f"{identity}@{result.digest}"
        return await self.cache.get_or_compute(
            key, lambda _: self.inner.publish(result, identity)
        )

    async def close(self) -> None:
        await self.inner.close()
