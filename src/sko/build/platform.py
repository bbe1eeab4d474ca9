"""Resolve one platform-specific image out of a build result."""

import logging

from ..core.types import BuildResult, Platform, ResultKind, SingleImage
from ..exceptions import NoMatchingPlatform, UnsupportedBuildResult

log = logging.getLogger(__name__)


def select_image(result: BuildResult, want: Platform, identity: str = "") -> SingleImage:
    """
    Pick the image for ``want`` from a build result.

    A single image is returned unchanged. For a collection the descriptors are
    scanned in stored order and the first whose os and architecture both match
    wins; descriptors without a platform are skipped.

    Raises:
        NoMatchingPlatform: If no descriptor matches
        UnsupportedBuildResult: If ``result`` is neither variant
    """
    kind = getattr(result, "kind", None)

    if kind is ResultKind.IMAGE:
        return result

    if kind is ResultKind.COLLECTION:
        for descriptor in result.manifests:
            if descriptor.platform is None:
                continue
            if descriptor.platform == want:
                log.debug(f"Selected {descriptor.digest} for {want}")
                return result.image(descriptor.digest)
        raise NoMatchingPlatform(want, identity)

    raise UnsupportedBuildResult(identity, result)
