"""
Tarball publisher.

Writes images into a docker-archive file that ``docker load`` accepts. Every
publish rewrites the file with all images recorded so far, so several
import paths can share one tarball.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from ..core.archive import write_archive
from ..core.naming import Namer, ignore_import_path, normalize_identity
from ..core.reference import Reference, new_tag
from ..core.types import BuildResult, ResultKind, SingleImage
from ..exceptions import UnsupportedBuildResult

log = logging.getLogger(__name__)


class TarballPublisher:
    """Publish images to a tarball on disk."""

    def __init__(
        self,
        file: Path,
        repo_name: str,
        tags: Sequence[str],
        namer: Namer = ignore_import_path,
    ):
        if not tags:
            raise ValueError("at least one tag is required")

        self.file = Path(file)
        self.repo_name = repo_name
        self.tags = list(tags)
        self.namer = namer
        self._images: Dict[str, Tuple[SingleImage, List[Reference]]] = {}

    async def publish(self, result: BuildResult, identity: str) -> Reference:
        """
        Record ``result`` under every tag and rewrite the tarball.

        Raises:
            UnsupportedBuildResult: If ``result`` is not a single image
            InvalidReference: If a destination reference is malformed
        """
        identity = normalize_identity(identity)
        if getattr(result, "kind", None) is not ResultKind.IMAGE:
            raise UnsupportedBuildResult(identity, result)

        repo = self.namer(self.repo_name, identity)
        references = [new_tag(f"{repo}:{tag}") for tag in self.tags]

        # A tag names exactly one image; later publishes take it over.
        for digest, (_, existing) in self._images.items():
            if digest != result.digest:
                existing[:] = [ref for ref in existing if ref not in references]

        _, current = self._images.setdefault(result.digest, (result, []))
        current.extend(ref for ref in references if ref not in current)

        entries = [(image, refs) for image, refs in self._images.values() if refs]
        log.info(f"Saving {', '.join(str(r) for r in references)} to {self.file}")
        await asyncio.to_thread(write_archive, self.file, entries)
        log.info(f"Saved {self.file}")

        return references[0]

    async def close(self) -> None:
        return None
