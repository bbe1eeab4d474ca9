"""
Test configuration and fixtures for sko tests.

Provides shared fixtures for:
- Docker-archive tarballs built on the fly
- Single images and image collections
- A fake local image store recording load and tag calls
"""

import hashlib
import io
import json
import tarfile
from pathlib import Path
from typing import Callable, List, Optional, Set

import pytest

from sko.core.reference import Reference
from sko.core.types import ImageCollection, Platform, SingleImage
from sko.exceptions import DockerCommandError


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def write_docker_archive(path: Path, seed: str, repo_tags: Optional[List[str]] = None) -> str:
    """Write a minimal docker-archive and return its config digest."""
    config = json.dumps({"seed": seed}).encode()
    layer = f"layer-{seed}".encode()
    config_hex = hashlib.sha256(config).hexdigest()
    layer_hex = hashlib.sha256(layer).hexdigest()

    manifest = [
        {
            "Config": f"blobs/sha256/{config_hex}",
            "RepoTags": repo_tags or [],
            "Layers": [f"blobs/sha256/{layer_hex}"],
        }
    ]
    with tarfile.open(path, "w") as tar:
        _add_bytes(tar, f"blobs/sha256/{config_hex}", config)
        _add_bytes(tar, f"blobs/sha256/{layer_hex}", layer)
        _add_bytes(tar, "index.json", b'{"schemaVersion": 2, "manifests": []}')
        _add_bytes(tar, "manifest.json", json.dumps(manifest).encode())
    return f"sha256:{config_hex}"


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., SingleImage]:
    """Factory for single images backed by a real docker-archive."""

    def factory(seed: str = "app", platform: Optional[str] = None) -> SingleImage:
        archive = tmp_path / f"{seed}.tar"
        digest = write_docker_archive(archive, seed)
        return SingleImage(
            digest=digest,
            archive=archive,
            platform=Platform.parse(platform) if platform else None,
        )

    return factory


@pytest.fixture
def make_collection(make_image) -> Callable[..., ImageCollection]:
    """Factory for collections, one image per platform string."""

    def factory(*platforms: str) -> ImageCollection:
        images = [make_image(seed=p.replace("/", "-"), platform=p) for p in platforms]
        return ImageCollection.from_images(images)

    return factory


class FakeImageStore:
    """In-memory local image store recording every operation."""

    def __init__(self, fail_load: bool = False, fail_tags: Optional[Set[str]] = None):
        self.fail_load = fail_load
        self.fail_tags = fail_tags or set()
        self.loads: List[tuple] = []
        self.tags: List[tuple] = []
        self.images = {}

    async def load(self, image: SingleImage, reference: Reference) -> None:
        if self.fail_load:
            raise DockerCommandError(["docker", "load"], 1, stderr="no space left on device")
        self.loads.append((image, reference))
        self.images[str(reference)] = image.digest

    async def tag(self, source: Reference, target: Reference) -> None:
        if target.tag in self.fail_tags:
            raise DockerCommandError(["docker", "tag"], 1, stderr="tag refused")
        self.tags.append((source, target))
        self.images[str(target)] = self.images[str(source)]


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def make_store() -> Callable[..., FakeImageStore]:
    """Factory for image stores that fail on demand."""
    return FakeImageStore
