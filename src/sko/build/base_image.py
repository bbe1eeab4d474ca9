"""
Base image resolution.

Reads the configured base image from its registry once, so builds can pin
it by digest and reject platforms the base does not provide.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.docker import DockerClient
from ..core.reference import Reference
from ..core.types import Platform
from ..exceptions import BaseImageError, SkoError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaseImage:
    """A resolved base image."""

    reference: Reference
    digest: str
    # Empty when the base is a single manifest whose platform is not listed.
    platforms: List[Platform] = field(default_factory=list)

    @property
    def pinned(self) -> Reference:
        """The base reference pinned to the resolved digest."""
        return Reference(
            repository=self.reference.repository,
            tag=self.reference.tag,
            digest=self.digest,
        )

    def supports(self, platform: Platform) -> bool:
        return not self.platforms or platform in self.platforms


class BaseImageResolver:
    """Resolve base image references with a registry read."""

    def __init__(self, docker: DockerClient):
        self.docker = docker
        self._resolved: Dict[str, BaseImage] = {}

    async def resolve(self, reference: Reference) -> BaseImage:
        """
        Resolve ``reference`` to its digest and platform list.

        Raises:
            BaseImageError: If the image cannot be read from its registry
        """
        key = str(reference)
        if key in self._resolved:
            return self._resolved[key]

        log.info(f"Resolving base image {reference}")
        try:
            manifest = await self.docker.inspect_manifest(reference)
        except SkoError as e:
            raise BaseImageError(reference, str(e)) from e

        digest = reference.digest or manifest.get("digest")
        if not digest:
            raise BaseImageError(reference, "registry did not report a digest")

        base = BaseImage(
            reference=reference,
            digest=digest,
            platforms=_platforms(manifest.get("manifests") or []),
        )
        log.info(f"Using base image {base.pinned}")
        self._resolved[key] = base
        return base


def _platforms(manifests: List[dict]) -> List[Platform]:
    platforms = []
    for entry in manifests:
        info: Optional[dict] = entry.get("platform")
        if not info:
            continue
        os_name, arch = info.get("os"), info.get("architecture")
        # Attestation manifests are published as unknown/unknown.
        if not os_name or not arch or os_name == "unknown":
            continue
        platforms.append(
            Platform(os=os_name, architecture=arch, variant=info.get("variant", ""))
        )
    return platforms
