"""
Build-and-publish orchestration.

Wires one builder and the configured publishers together for a single run:
build the import path once, publish the result through every destination,
then release the publishers and the per-run caches.
"""

import contextlib
import logging
import tempfile
from pathlib import Path
from typing import List, Optional

from .build.builder import Builder, CachingBuilder, DockerBuilder
from .config import Options
from .core.cache import ComputeCache
from .core.docker import DockerClient
from .core.naming import get_namer
from .core.reference import Reference, parse_reference
from .exceptions import PublisherCloseError
from .publish import (
    CachingPublisher,
    DaemonPublisher,
    MultiPublisher,
    Publisher,
    RegistryPublisher,
    TarballPublisher,
)

log = logging.getLogger(__name__)


class Orchestrator:
    """Run one build and publish sequence for a set of options."""

    def __init__(
        self,
        options: Options,
        docker: Optional[DockerClient] = None,
        builder: Optional[Builder] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            options: Validated run options
            docker: Docker client shared by the builder and publishers
            builder: Builder to use instead of the default DockerBuilder
        """
        self.options = options
        self.docker = docker or DockerClient()
        self._builder = builder
        self.build_cache: ComputeCache = ComputeCache(name="build")
        self.publish_cache: ComputeCache = ComputeCache(name="publish")

    def make_builder(self, workdir: Path) -> Builder:
        opts = self.options
        inner = self._builder
        if inner is None:
            inner = DockerBuilder(
                docker=self.docker,
                base_image=parse_reference(opts.base_image),
                platforms=opts.platforms,
                workdir=workdir,
                context_dir=opts.context_dir,
                go_image=opts.go_image,
                disable_optimizations=opts.disable_optimizations,
            )
        return CachingBuilder(inner, self.build_cache)

    def make_publishers(self) -> List[Publisher]:
        """Tarball and/or daemon when requested, the registry otherwise."""
        opts = self.options
        namer = get_namer(opts.naming)
        publishers: List[Publisher] = []

        if opts.tar:
            publishers.append(TarballPublisher(opts.tar, opts.image_name, opts.tags, namer))
        if opts.local:
            publishers.append(
                DaemonPublisher(
                    self.docker,
                    opts.image_name,
                    opts.tags,
                    namer,
                    platform=opts.daemon_platform,
                )
            )
        if not publishers:
            if opts.credentials is not None:
                log.info("Using credentials from --user and --password")
            publishers.append(
                RegistryPublisher(
                    self.docker,
                    opts.image_name,
                    opts.tags,
                    namer,
                    credentials=opts.credentials,
                )
            )
        return publishers

    async def run(self) -> Reference:
        """
        Build the import path and publish it.

        Returns:
            Reference returned by the first publisher

        Raises:
            SkoError: The first unrecovered error; already published
                artifacts are left in place
        """
        opts = self.options
        with tempfile.TemporaryDirectory(prefix="sko-") as tmpdir:
            builder = self.make_builder(Path(tmpdir))
            publisher = CachingPublisher(
                MultiPublisher(self.make_publishers()), self.publish_cache
            )

            try:
                result = await builder.build(opts.import_path)
                reference = await publisher.publish(result, opts.import_path)
            except BaseException:
                # The run error takes precedence over close failures.
                with contextlib.suppress(PublisherCloseError):
                    await publisher.close()
                raise
            else:
                await publisher.close()
            finally:
                self.build_cache.close()
                self.publish_cache.close()

        log.info(f"Published {reference}")
        return reference


async def build_and_publish(options: Options) -> Reference:
    """Check docker is usable, then run a full build and publish."""
    docker = DockerClient()
    await docker.ensure_available()
    return await Orchestrator(options, docker=docker).run()
