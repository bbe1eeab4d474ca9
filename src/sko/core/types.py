"""
Build result data model.

A build produces either one platform-specific image or a collection of
images keyed by platform. Both carry an explicit ``kind`` so consumers can
dispatch on the variant rather than on Python types.
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Union

DEFAULT_OS = "linux"
DEFAULT_ARCHITECTURE = "amd64"


class ResultKind(str, Enum):
    """Variants of a build result."""

    IMAGE = "image"
    COLLECTION = "collection"


@dataclass(frozen=True)
class Platform:
    """
    Operating system and architecture pair.

    Equality compares ``os`` and ``architecture`` only. The variant is
    carried along for builders that need it but never affects matching.
    """

    os: str
    architecture: str
    variant: str = field(default="", compare=False)

    @classmethod
    def parse(cls, value: str) -> "Platform":
        """
        Parse ``os/arch`` or ``os/arch/variant``.

        Raises:
            ValueError: If the value does not have two or three parts
        """
        parts = value.strip().split("/")
        if len(parts) not in (2, 3) or not all(parts):
            raise ValueError(
                f"invalid platform {value!r}: expected os/arch or os/arch/variant"
            )
        variant = parts[2] if len(parts) == 3 else ""
        return cls(os=parts[0], architecture=parts[1], variant=variant)

    @classmethod
    def default(cls) -> "Platform":
        return cls(os=DEFAULT_OS, architecture=DEFAULT_ARCHITECTURE)

    def __str__(self) -> str:
        value = f"{self.os}/{self.architecture}"
        if self.variant:
            value += f"/{self.variant}"
        return value

    @property
    def slug(self) -> str:
        """Filesystem and tag friendly form, e.g. ``linux-arm64``."""
        return str(self).replace("/", "-")


@dataclass(frozen=True)
class SingleImage:
    """A content-addressed image stored as a docker-archive tarball."""

    kind: ClassVar[ResultKind] = ResultKind.IMAGE

    digest: str
    archive: Path
    platform: Optional[Platform] = None


@dataclass(frozen=True)
class Descriptor:
    """Entry of an image collection. ``platform`` may be unknown."""

    digest: str
    platform: Optional[Platform] = None


@dataclass(frozen=True)
class ImageCollection:
    """Ordered platform descriptors plus a digest to image lookup."""

    kind: ClassVar[ResultKind] = ResultKind.COLLECTION

    manifests: List[Descriptor]
    images: Dict[str, SingleImage] = field(default_factory=dict)

    @classmethod
    def from_images(cls, images: List[SingleImage]) -> "ImageCollection":
        return cls(
            manifests=[Descriptor(img.digest, img.platform) for img in images],
            images={img.digest: img for img in images},
        )

    def image(self, digest: str) -> SingleImage:
        """Resolve a descriptor digest to its image."""
        return self.images[digest]

    @property
    def digest(self) -> str:
        """Stable identity of the whole collection."""
        payload = [
            {"digest": m.digest, "platform": str(m.platform) if m.platform else None}
            for m in self.manifests
        ]
        encoded = json.dumps(payload, sort_keys=True).encode()
        return f"sha256:{hashlib.sha256(encoded).hexdigest()}"


BuildResult = Union[SingleImage, ImageCollection]
