"""Custom exceptions for sko.

Every error the build and publish pipeline can surface derives from SkoError,
so the CLI can report them uniformly and exit non-zero.
"""

from typing import List, Optional, Sequence


class SkoError(Exception):
    """Base exception for sko errors."""

    pass


class UnsupportedBuildResult(SkoError):
    """Raised when a build result is neither an image nor an image collection."""

    def __init__(self, identity: str, result: object):
        self.identity = identity
        self.result = result
        super().__init__(f"failed to interpret {identity} result as image: {result!r}")


class NoMatchingPlatform(SkoError):
    """Raised when an image collection has no entry for the requested platform."""

    def __init__(self, platform: object, identity: str):
        self.platform = platform
        self.identity = identity
        super().__init__(
            f"failed to find {platform} image in index for image: {identity}"
        )


class InvalidReference(SkoError):
    """Raised when an image reference does not follow the reference grammar."""

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"invalid reference {value!r}: {reason}")


class DaemonLoadFailed(SkoError):
    """Raised when an image could not be loaded into the local image store."""

    def __init__(self, reference: object):
        self.reference = reference
        super().__init__(f"failed to load {reference} into the local daemon")


class DaemonTagFailed(SkoError):
    """Raised when adding a tag alias fails part way through the tag list.

    ``applied`` lists the tags that were already in place when the failure
    happened. They are not rolled back.
    """

    def __init__(self, tag: str, applied: Sequence[str]):
        self.tag = tag
        self.applied: List[str] = list(applied)
        applied_text = ", ".join(self.applied) if self.applied else "none"
        super().__init__(f"failed to add tag {tag!r} (already applied: {applied_text})")


class PublisherFailed(SkoError):
    """Raised by the multi publisher when one of its publishers fails."""

    def __init__(self, index: int, cause: BaseException):
        self.index = index
        self.cause = cause
        super().__init__(f"publisher #{index} failed: {cause}")


class PublisherCloseError(SkoError):
    """Raised when one or more publishers fail to close."""

    def __init__(self, errors: Sequence[BaseException]):
        self.errors = list(errors)
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{len(self.errors)} publisher(s) failed to close: {details}")


class DockerUnavailableError(SkoError):
    """Raised when the docker CLI cannot be found or the daemon is unreachable."""

    pass


class DockerCommandError(SkoError):
    """Raised when a docker command exits with a non-zero status code."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"command {' '.join(self.command)} failed with exit code {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)


class BaseImageError(SkoError):
    """Raised when the configured base image cannot be resolved or used."""

    def __init__(self, reference: object, reason: Optional[str] = None):
        self.reference = reference
        message = f"failed to resolve base image {reference}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class BuildFailed(SkoError):
    """Raised when building the program at an import path fails."""

    def __init__(self, import_path: str, reason: Optional[str] = None):
        self.import_path = import_path
        message = f"failed to build {import_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
