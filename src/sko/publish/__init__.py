"""
sko publishers.

Every publisher implements ``publish(result, identity) -> Reference`` and
``close()``, so they compose freely:

    publisher = CachingPublisher(MultiPublisher([daemon, tarball]))
"""

from .base import ImageStore, Publisher
from .caching import CachingPublisher
from .daemon import DaemonPublisher
from .multi import MultiPublisher
from .registry import Credentials, RegistryPublisher
from .tarball import TarballPublisher

__all__ = [
    "CachingPublisher",
    "Credentials",
    "DaemonPublisher",
    "ImageStore",
    "MultiPublisher",
    "Publisher",
    "RegistryPublisher",
    "TarballPublisher",
]
