from .cache import ComputeCache
from .naming import Namer, get_namer, normalize_identity
from .reference import Reference, new_tag, parse_reference
from .types import (
    BuildResult,
    Descriptor,
    ImageCollection,
    Platform,
    ResultKind,
    SingleImage,
)

__all__ = [
    "BuildResult",
    "ComputeCache",
    "Descriptor",
    "ImageCollection",
    "Namer",
    "Platform",
    "Reference",
    "ResultKind",
    "SingleImage",
    "get_namer",
    "new_tag",
    "normalize_identity",
    "parse_reference",
]
