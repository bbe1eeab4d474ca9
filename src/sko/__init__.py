"""sko: build Go programs into container images and publish them."""

# Set at release time.
__commit__ = "n/a"

from .core.types import BuildResult, ImageCollection, Platform, SingleImage  # noqa: E402
from .core.reference import Reference  # noqa: E402
from .exceptions import SkoError  # noqa: E402

__all__ = [
    "BuildResult",
    "ImageCollection",
    "Platform",
    "Reference",
    "SingleImage",
    "SkoError",
]
