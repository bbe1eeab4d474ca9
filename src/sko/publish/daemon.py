"""
Local daemon publisher.

Loads a single-platform image into the local image store under the primary
tag, then adds every requested tag as an alias. Only the load is
all-or-nothing; a tag failure leaves earlier tags in place and reports them.
"""

import logging
from typing import List, Optional, Sequence

from ..build.platform import select_image
from ..core.naming import Namer, ignore_import_path, normalize_identity
from ..core.reference import Reference, new_tag
from ..core.types import BuildResult, Platform
from ..exceptions import DaemonLoadFailed, DaemonTagFailed
from .base import ImageStore

log = logging.getLogger(__name__)


class DaemonPublisher:
    """Publish images to a local container daemon."""

    def __init__(
        self,
        store: ImageStore,
        repo_name: str,
        tags: Sequence[str],
        namer: Namer = ignore_import_path,
        platform: Optional[Platform] = None,
    ):
        """
        Initialize daemon publisher.

        Args:
            store: Local image store (normally a DockerClient)
            repo_name: Repository base handed to ``namer``
            tags: Tags to apply; the first one is the primary tag
            namer: Maps (repo_name, identity) to the repository name
            platform: Platform to load out of a collection (default linux/amd64)
        """
        if not tags:
            raise ValueError("at least one tag is required")

        self.store = store
        self.repo_name = repo_name
        self.tags = list(tags)
        self.namer = namer
        self.platform = platform or Platform.default()

    def _reference(self, identity: str, tag: str) -> Reference:
        return new_tag(f"{self.namer(self.repo_name, identity)}:{tag}")

    async def publish(self, result: BuildResult, identity: str) -> Reference:
        """
        Load the image for the configured platform and apply every tag.

        Raises:
            NoMatchingPlatform: If a collection lacks the configured platform
            UnsupportedBuildResult: If ``result`` is not an image or collection
            InvalidReference: If any destination reference is malformed; nothing
                is loaded or tagged
            DaemonLoadFailed: If loading fails; no tags are attempted
            DaemonTagFailed: If a tag fails; later tags are not attempted
        """
        identity = normalize_identity(identity)
        image = select_image(result, self.platform, identity)

        # Every destination is validated before the store is touched.
        targets = [(tag_name, self._reference(identity, tag_name)) for tag_name in self.tags]
        primary = targets[0][1]

        log.info(f"Loading {primary}")
        try:
            await self.store.load(image, primary)
        except Exception as e:
            raise DaemonLoadFailed(primary) from e
        log.info(f"Loaded {primary}")

        applied: List[str] = []
        for tag_name, target in targets:
            log.info(f"Adding tag {tag_name}")
            try:
                await self.store.tag(primary, target)
            except Exception as e:
                raise DaemonTagFailed(tag_name, applied) from e
            applied.append(tag_name)
            log.info(f"Added tag {tag_name}")

        return primary

    async def close(self) -> None:
        return None
