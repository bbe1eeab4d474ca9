"""Unit tests for TarballPublisher."""

import pytest

from sko.core.archive import read_manifest
from sko.core.naming import base_import_path
from sko.exceptions import UnsupportedBuildResult
from sko.publish.tarball import TarballPublisher


class TestTarballPublisher:
    @pytest.mark.asyncio
    async def test_writes_every_tag(self, make_image, tmp_path):
        out = tmp_path / "image.tar"
        publisher = TarballPublisher(out, "example.com/app", ["v1", "latest"])

        ref = await publisher.publish(make_image(), "./cmd/app")

        assert str(ref) == "example.com/app:v1"
        assert read_manifest(out)[0]["RepoTags"] == [
            "example.com/app:v1",
            "example.com/app:latest",
        ]

    @pytest.mark.asyncio
    async def test_accumulates_import_paths(self, make_image, tmp_path):
        out = tmp_path / "image.tar"
        publisher = TarballPublisher(out, "example.com", ["latest"], namer=base_import_path)

        await publisher.publish(make_image("a"), "./cmd/a")
        await publisher.publish(make_image("b"), "./cmd/b")

        tags = [entry["RepoTags"] for entry in read_manifest(out)]
        assert tags == [["example.com/a:latest"], ["example.com/b:latest"]]

    @pytest.mark.asyncio
    async def test_later_image_takes_over_tag(self, make_image, tmp_path):
        out = tmp_path / "image.tar"
        publisher = TarballPublisher(out, "example.com/app", ["latest"])

        await publisher.publish(make_image("old"), "./cmd/app")
        new = make_image("new")
        await publisher.publish(new, "./cmd/app")

        manifest = read_manifest(out)
        assert len(manifest) == 1
        assert manifest[0]["Config"].endswith(new.digest.split(":")[1])

    @pytest.mark.asyncio
    async def test_rejects_collections(self, make_collection, tmp_path):
        out = tmp_path / "image.tar"
        publisher = TarballPublisher(out, "example.com/app", ["latest"])

        with pytest.raises(UnsupportedBuildResult):
            await publisher.publish(make_collection("linux/amd64", "linux/arm64"), "./cmd/app")
        assert not out.exists()
