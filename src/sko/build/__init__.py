"""
sko build system.

Components:
    - DockerBuilder: compile a Go program into per-platform images
    - CachingBuilder: memoize any builder by import path
    - BaseImageResolver: pin the base image by digest
    - select_image: pick one platform out of a build result
"""

from .base_image import BaseImage, BaseImageResolver
from .builder import Builder, CachingBuilder, DockerBuilder
from .platform import select_image

__all__ = [
    "BaseImage",
    "BaseImageResolver",
    "Builder",
    "CachingBuilder",
    "DockerBuilder",
    "select_image",
]
