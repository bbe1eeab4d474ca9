"""
Image builders.

DockerBuilder compiles the Go program at an import path into one image per
requested platform using ``docker buildx``. CachingBuilder memoizes any
builder by import path.
"""

import asyncio
import logging
import posixpath
from pathlib import Path
from typing import Optional, Protocol, Sequence

from ..core.archive import image_digest
from ..core.cache import ComputeCache
from ..core.docker import DockerClient
from ..core.naming import STRICT_SCHEME
from ..core.reference import Reference
from ..core.types import BuildResult, ImageCollection, Platform, SingleImage
from ..exceptions import BaseImageError, BuildFailed, DockerCommandError
from .base_image import BaseImageResolver
from .dockerfile import DockerfileConfig, DockerfileGenerator

log = logging.getLogger(__name__)

DEFAULT_GO_IMAGE = "golang:1.22"


class Builder(Protocol):
    """Anything that turns an import path into a build result."""

    async def build(self, import_path: str) -> BuildResult: ...


class DockerBuilder:
    """Build Go programs into container images with docker buildx."""

    def __init__(
        self,
        docker: DockerClient,
        base_image: Reference,
        platforms: Sequence[Platform],
        workdir: Path,
        context_dir: Path = Path("."),
        go_image: str = DEFAULT_GO_IMAGE,
        disable_optimizations: bool = False,
        resolver: Optional[BaseImageResolver] = None,
        dockerfile_generator: Optional[DockerfileGenerator] = None,
    ):
        """
        Initialize docker builder.

        Args:
            docker: Docker client used for buildx and registry reads
            base_image: Reference of the image the binary is layered onto
            platforms: Platforms to build, in result order
            workdir: Directory receiving generated Dockerfiles and archives
            context_dir: Build context (the Go module root)
            go_image: Image providing the Go toolchain
            disable_optimizations: Compile with ``-N -l`` for debugging
            resolver: Base image resolver (defaults to one over ``docker``)
            dockerfile_generator: Dockerfile renderer
        """
        if not platforms:
            raise ValueError("at least one platform is required")

        self.docker = docker
        self.base_image = base_image
        self.platforms = list(platforms)
        self.workdir = Path(workdir)
        self.context_dir = Path(context_dir)
        self.go_image = go_image
        self.disable_optimizations = disable_optimizations
        self.resolver = resolver or BaseImageResolver(docker)
        self.dockerfile_generator = dockerfile_generator or DockerfileGenerator()

    async def build(self, import_path: str) -> BuildResult:
        """
        Build the program at ``import_path``.

        Returns:
            A SingleImage for one platform, an ImageCollection otherwise

        Raises:
            BaseImageError: If the base image is unreadable or lacks a platform
            BuildFailed: If compiling or exporting an image fails
        """
        path = import_path
        if path.startswith(STRICT_SCHEME):
            path = path[len(STRICT_SCHEME) :]

        base = await self.resolver.resolve(self.base_image)
        missing = [str(p) for p in self.platforms if not base.supports(p)]
        if missing:
            raise BaseImageError(
                self.base_image, f"no image for platform(s) {', '.join(missing)}"
            )

        binary = self._binary_name(path)
        dockerfile = self.workdir / f"{binary}.Dockerfile"
        self.workdir.mkdir(parents=True, exist_ok=True)
        dockerfile.write_text(
            self.dockerfile_generator.generate(
                DockerfileConfig(
                    base_image=str(base.pinned),
                    import_path=path,
                    binary_name=binary,
                    go_image=self.go_image,
                    disable_optimizations=self.disable_optimizations,
                    kodata_dir=self._kodata_dir(path),
                )
            )
        )

        images = []
        for platform in self.platforms:
            dest = self.workdir / f"{binary}-{platform.slug}.tar"
            log.info(f"Building {path} for {platform}")
            try:
                await self.docker.build(dockerfile, self.context_dir, platform, dest)
                digest = await asyncio.to_thread(image_digest, dest)
            except (DockerCommandError, OSError, ValueError) as e:
                raise BuildFailed(import_path, str(e)) from e

            log.info(f"Built {path} for {platform}: {digest}")
            images.append(SingleImage(digest=digest, archive=dest, platform=platform))

        if len(images) == 1:
            return images[0]
        return ImageCollection.from_images(images)

    def _binary_name(self, path: str) -> str:
        name = posixpath.basename(posixpath.normpath(path))
        if name in ("", ".", ".."):
            name = (self.context_dir / path).resolve().name
        return name or "app"

    def _kodata_dir(self, path: str) -> Optional[str]:
        # Only relative paths map onto the build context.
        if not path.startswith("."):
            return None
        kodata = self.context_dir / path / "kodata"
        if not kodata.is_dir():
            return None
        return posixpath.normpath(posixpath.join(path, "kodata"))


class CachingBuilder:
    """Memoize another builder by import path."""

    def __init__(self, inner: Builder, cache: Optional[ComputeCache] = None):
        self.inner = inner
        self.cache = cache if cache is not None else ComputeCache(name="build")

    async def build(self, import_path: str) -> BuildResult:
        return await self.cache.get_or_compute(import_path, self.inner.build)
