"""Fan a single publish out to several publishers."""

import logging
from typing import List, Sequence

from ..core.reference import Reference
from ..core.types import BuildResult
from ..exceptions import PublisherCloseError, PublisherFailed
from .base import Publisher

log = logging.getLogger(__name__)


class MultiPublisher:
    """
    Publish to each configured publisher in order.

    The first failure stops the fan-out; destinations before it keep what
    they received. With a single publisher its error surfaces unchanged,
    otherwise it is wrapped with the failing index.
    """

    def __init__(self, publishers: Sequence[Publisher]):
        if not publishers:
            raise ValueError("at least one publisher is required")
        self.publishers = list(publishers)

    async def publish_all(self, result: BuildResult, identity: str) -> List[Reference]:
        """
        Publish to every publisher and return their references in order.

        Raises:
            PublisherFailed: With the index of the first publisher that failed,
                when more than one publisher is configured
        """
        references = []
        for index, publisher in enumerate(self.publishers):
            try:
                references.append(await publisher.publish(result, identity))
            except Exception as e:
                log.error(f"Publisher #{index} ({type(publisher).__name__}) failed: {e}")
                if len(self.publishers) == 1:
                    raise
                raise PublisherFailed(index, e) from e
        return references

    async def publish(self, result: BuildResult, identity: str) -> Reference:
        """Publish to every publisher and return the first one's reference."""
        return (await self.publish_all(result, identity))[0]

    async def close(self) -> None:
        """Close every publisher, then report all close failures together."""
        errors = []
        for publisher in self.publishers:
            try:
                await publisher.close()
            except Exception as e:
                log.warning(f"Failed to close {type(publisher).__name__}: {e}")
                errors.append(e)
        if errors:
            raise PublisherCloseError(errors)
