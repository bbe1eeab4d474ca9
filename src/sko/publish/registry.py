"""
Registry publisher.

Pushes images to a remote registry through the docker daemon. When explicit
credentials are given they live in a private docker config directory for
the lifetime of the publisher, leaving the user's own login untouched.
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Set

from ..core.docker import DockerClient
from ..core.naming import Namer, ignore_import_path, normalize_identity
from ..core.reference import Reference, new_tag
from ..core.types import BuildResult, ImageCollection, ResultKind, SingleImage
from ..exceptions import UnsupportedBuildResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Registry username and password used for pushing."""

    username: str
    password: str = field(repr=False)


class RegistryPublisher:
    """Publish images to a remote registry."""

    def __init__(
        self,
        docker: DockerClient,
        repo_name: str,
        tags: Sequence[str],
        namer: Namer = ignore_import_path,
        credentials: Optional[Credentials] = None,
    ):
        """
        Initialize registry publisher.

        Args:
            docker: Docker client used to load, tag and push
            repo_name: Repository base handed to ``namer``
            tags: Tags to push; the first one is the primary tag
            namer: Maps (repo_name, identity) to the repository name
            credentials: Push with these instead of the default docker login
        """
        if not tags:
            raise ValueError("at least one tag is required")

        self.docker = docker
        self.repo_name = repo_name
        self.tags = list(tags)
        self.namer = namer
        self.credentials = credentials
        self._config_dir: Optional[Path] = None
        self._logged_in: Set[str] = set()

    async def _client_for(self, registry: str) -> DockerClient:
        if self.credentials is None:
            return self.docker

        if self._config_dir is None:
            self._config_dir = Path(tempfile.mkdtemp(prefix="sko-docker-config-"))
            # buildx is looked up under DOCKER_CONFIG/cli-plugins.
            plugins = Path.home() / ".docker" / "cli-plugins"
            if plugins.is_dir():
                (self._config_dir / "cli-plugins").symlink_to(plugins)

        client = self.docker.with_config_dir(self._config_dir)
        if registry not in self._logged_in:
            log.info(f"Logging in to {registry} as {self.credentials.username}")
            await client.login(
                registry, self.credentials.username, self.credentials.password
            )
            self._logged_in.add(registry)
        return client

    async def publish(self, result: BuildResult, identity: str) -> Reference:
        """
        Push ``result`` under every tag.

        Returns:
            ``repository@digest`` when the registry reported a digest,
            otherwise the primary tag reference

        Raises:
            UnsupportedBuildResult: If ``result`` is not an image or collection
            InvalidReference: If a destination reference is malformed
            DockerCommandError: If loading, tagging or pushing fails
        """
        identity = normalize_identity(identity)
        repo = self.namer(self.repo_name, identity)
        references = [new_tag(f"{repo}:{tag}") for tag in self.tags]

        kind = getattr(result, "kind", None)
        if kind not in (ResultKind.IMAGE, ResultKind.COLLECTION):
            raise UnsupportedBuildResult(identity, result)

        client = await self._client_for(references[0].registry)
        if kind is ResultKind.IMAGE:
            digest = await self._publish_image(client, result, references)
        else:
            digest = await self._publish_collection(client, result, references)

        if digest is None:
            return references[0]
        published = references[0].with_digest(digest)
        log.info(f"Published {published}")
        return published

    async def _publish_image(
        self, client: DockerClient, image: SingleImage, references: List[Reference]
    ) -> Optional[str]:
        primary = references[0]
        await client.load(image, primary)
        for reference in references[1:]:
            await client.tag(primary, reference)

        digest = None
        for reference in references:
            log.info(f"Pushing {reference}")
            digest = await client.push(reference) or digest
        return digest

    async def _publish_collection(
        self,
        client: DockerClient,
        collection: ImageCollection,
        references: List[Reference],
    ) -> Optional[str]:
        primary = references[0]
        sources = []
        for descriptor in collection.manifests:
            if descriptor.platform is None:
                continue
            platform_ref = primary.with_tag(f"{primary.tag}-{descriptor.platform.slug}")
            await client.load(collection.image(descriptor.digest), platform_ref)

            log.info(f"Pushing {platform_ref}")
            digest = await client.push(platform_ref)
            sources.append(platform_ref.with_digest(digest) if digest else platform_ref)

        log.info(f"Creating index {', '.join(str(r) for r in references)}")
        await client.create_index(references, sources)
        manifest = await client.inspect_manifest(primary)
        return manifest.get("digest")

    async def close(self) -> None:
        """Remove the private docker config, if one was created."""
        if self._config_dir is not None:
            shutil.rmtree(self._config_dir, ignore_errors=True)
            self._config_dir = None
            self._logged_in.clear()
