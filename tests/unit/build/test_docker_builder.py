"""
Unit tests for DockerBuilder and CachingBuilder.

The docker client is faked: ``build`` writes a small docker-archive to the
requested destination and ``inspect_manifest`` answers with a canned index.
"""

import asyncio
import tarfile
from unittest.mock import AsyncMock

import pytest

from sko.build.builder import CachingBuilder, DockerBuilder
from sko.core.reference import new_tag
from sko.core.types import Platform, ResultKind
from sko.exceptions import BaseImageError, BuildFailed, DockerCommandError

from conftest import write_docker_archive

BASE_DIGEST = "sha256:" + "b" * 64


class FakeDocker:
    def __init__(
        self, platforms=("linux/amd64", "linux/arm64"), fail_build=False, empty_archive=False
    ):
        self.platforms = platforms
        self.fail_build = fail_build
        self.empty_archive = empty_archive
        self.builds = []
        self.inspected = []

    async def inspect_manifest(self, reference):
        self.inspected.append(reference)
        return {
            "digest": BASE_DIGEST,
            "manifests": [
                {"platform": {"os": p.split("/")[0], "architecture": p.split("/")[1]}}
                for p in self.platforms
            ]
            + [{"platform": {"os": "unknown", "architecture": "unknown"}}],
        }

    async def build(self, dockerfile, context, platform, dest):
        if self.fail_build:
            raise DockerCommandError(["docker", "buildx", "build"], 1, stderr="go: not found")
        self.builds.append((dockerfile, platform))
        if self.empty_archive:
            with tarfile.open(dest, "w"):
                pass
            return
        write_docker_archive(dest, f"{dockerfile.name}-{platform}")


def make_builder(docker, tmp_path, platforms=("linux/amd64",), **kwargs):
    return DockerBuilder(
        docker=docker,
        base_image=new_tag("gcr.io/distroless/static:nonroot"),
        platforms=[Platform.parse(p) for p in platforms],
        workdir=tmp_path / "work",
        context_dir=tmp_path,
        **kwargs,
    )


class TestDockerBuilder:
    @pytest.mark.asyncio
    async def test_single_platform_returns_image(self, tmp_path):
        docker = FakeDocker()
        result = await make_builder(docker, tmp_path).build("./cmd/app")

        assert result.kind is ResultKind.IMAGE
        assert result.platform == Platform.default()
        assert result.archive == tmp_path / "work" / "app-linux-amd64.tar"
        assert result.digest.startswith("sha256:")

    @pytest.mark.asyncio
    async def test_multiple_platforms_return_collection(self, tmp_path):
        docker = FakeDocker()
        result = await make_builder(
            docker, tmp_path, platforms=("linux/amd64", "linux/arm64")
        ).build("ko://github.com/foo/bar")

        assert result.kind is ResultKind.COLLECTION
        assert [str(m.platform) for m in result.manifests] == ["linux/amd64", "linux/arm64"]
        assert len(set(m.digest for m in result.manifests)) == 2

    @pytest.mark.asyncio
    async def test_dockerfile_pins_base_and_strips_scheme(self, tmp_path):
        docker = FakeDocker()
        await make_builder(docker, tmp_path).build("ko://github.com/foo/bar")

        dockerfile = (tmp_path / "work" / "bar.Dockerfile").read_text()
        assert f"FROM gcr.io/distroless/static:nonroot@{BASE_DIGEST}" in dockerfile
        assert "/ko-app/bar github.com/foo/bar" in dockerfile

    @pytest.mark.asyncio
    async def test_kodata_detected(self, tmp_path):
        (tmp_path / "cmd" / "app" / "kodata").mkdir(parents=True)
        await make_builder(FakeDocker(), tmp_path).build("./cmd/app")

        dockerfile = (tmp_path / "work" / "app.Dockerfile").read_text()
        assert "COPY cmd/app/kodata /var/run/ko" in dockerfile

    @pytest.mark.asyncio
    async def test_current_directory_named_after_context(self, tmp_path):
        (tmp_path / "server").mkdir()
        builder = make_builder(FakeDocker(), tmp_path / "server")
        builder.workdir = tmp_path / "work"

        result = await builder.build(".")

        assert result.archive.name == "server-linux-amd64.tar"

    @pytest.mark.asyncio
    async def test_unsupported_base_platform(self, tmp_path):
        docker = FakeDocker(platforms=("linux/amd64",))
        builder = make_builder(docker, tmp_path, platforms=("linux/amd64", "linux/s390x"))

        with pytest.raises(BaseImageError, match="linux/s390x"):
            await builder.build("./cmd/app")
        assert docker.builds == []

    @pytest.mark.asyncio
    async def test_unreadable_base_image(self, tmp_path):
        docker = FakeDocker()
        docker.inspect_manifest = AsyncMock(
            side_effect=DockerCommandError(["docker", "buildx"], 1, stderr="unauthorized")
        )

        with pytest.raises(BaseImageError, match="unauthorized"):
            await make_builder(docker, tmp_path).build("./cmd/app")

    @pytest.mark.asyncio
    async def test_export_without_manifest(self, tmp_path):
        builder = make_builder(FakeDocker(empty_archive=True), tmp_path)

        with pytest.raises(BuildFailed, match="has no manifest.json"):
            await builder.build("./cmd/app")

    @pytest.mark.asyncio
    async def test_build_failure(self, tmp_path):
        builder = make_builder(FakeDocker(fail_build=True), tmp_path)

        with pytest.raises(BuildFailed, match="failed to build ./cmd/app"):
            await builder.build("./cmd/app")

    @pytest.mark.asyncio
    async def test_base_resolved_once(self, tmp_path):
        docker = FakeDocker()
        builder = make_builder(docker, tmp_path)

        await builder.build("./cmd/app")
        await builder.build("./cmd/other")

        assert len(docker.inspected) == 1

    def test_requires_platform(self, tmp_path):
        with pytest.raises(ValueError):
            make_builder(FakeDocker(), tmp_path, platforms=())


class TestCachingBuilder:
    @pytest.mark.asyncio
    async def test_builds_each_import_path_once(self, make_image):
        inner = AsyncMock()

        async def slow_build(import_path):
            await asyncio.sleep(0.01)
            return make_image(seed=import_path.strip("./").replace("/", "-"))

        inner.build.side_effect = slow_build
        builder = CachingBuilder(inner)

        a1, a2, b = await asyncio.gather(
            builder.build("./cmd/a"), builder.build("./cmd/a"), builder.build("./cmd/b")
        )

        assert a1 is a2
        assert b is not a1
        assert inner.build.await_count == 2
