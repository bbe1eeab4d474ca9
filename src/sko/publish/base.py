"""Publisher contract shared by every delivery backend."""

from typing import Protocol

from ..core.reference import Reference
from ..core.types import BuildResult, SingleImage


class Publisher(Protocol):
    """Delivers a build result somewhere and names where it went."""

    async def publish(self, result: BuildResult, identity: str) -> Reference: ...

    async def close(self) -> None: ...


class ImageStore(Protocol):
    """Local image store the daemon publisher writes into."""

    async def load(self, image: SingleImage, reference: Reference) -> None: ...

    async def tag(self, source: Reference, target: Reference) -> None: ...
