"""
Image reference parsing.

Validates repository names, tags and digests against the distribution
reference grammar so malformed destinations fail before any image is moved.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..exceptions import InvalidReference

DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"
MAX_NAME_LENGTH = 255

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN_RE = re.compile(rf"^{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?$")
_PATH_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|[-]+)[a-z0-9]+)*$")
TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^sha256:[a-f0-9]{64}$")


@dataclass(frozen=True)
class Reference:
    """A repository plus a tag and/or a digest."""

    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    def __str__(self) -> str:
        value = self.repository
        if self.tag:
            value += f":{self.tag}"
        if self.digest:
            value += f"@{self.digest}"
        return value

    @property
    def registry(self) -> str:
        """Registry host serving this repository."""
        domain, _ = _split_domain(self.repository)
        return domain or DEFAULT_REGISTRY

    def with_tag(self, tag: str) -> "Reference":
        return new_tag(f"{self.repository}:{tag}")

    def with_digest(self, digest: str) -> "Reference":
        _check_digest(str(self), digest)
        return Reference(repository=self.repository, digest=digest)


def _split_domain(repository: str) -> Tuple[Optional[str], str]:
    first, sep, rest = repository.partition("/")
    if not sep:
        return None, repository
    if "." in first or ":" in first or first == "localhost" or first.lower() != first:
        return first, rest
    return None, repository


def _split(value: str) -> Tuple[str, Optional[str], Optional[str]]:
    name, at, digest = value.partition("@")
    tag = None
    colon = name.rfind(":")
    if colon > name.rfind("/"):
        name, tag = name[:colon], name[colon + 1 :]
    return name, tag, (digest if at else None)


def _check_repository(value: str, repository: str) -> None:
    if not repository:
        raise InvalidReference(value, "repository name is empty")
    if len(repository) > MAX_NAME_LENGTH:
        raise InvalidReference(
            value, f"repository name must not exceed {MAX_NAME_LENGTH} characters"
        )

    domain, path = _split_domain(repository)
    if domain is not None and not _DOMAIN_RE.match(domain):
        raise InvalidReference(value, f"invalid registry domain {domain!r}")

    for component in path.split("/"):
        if not _PATH_COMPONENT_RE.match(component):
            raise InvalidReference(
                value,
                f"repository component {component!r} must be lowercase alphanumerics "
                "separated by '.', '_', '__' or '-'",
            )


def _check_tag(value: str, tag: str) -> None:
    if not TAG_RE.match(tag):
        raise InvalidReference(value, f"invalid tag {tag!r}")


def _check_digest(value: str, digest: str) -> None:
    if not _DIGEST_RE.match(digest):
        raise InvalidReference(value, f"invalid digest {digest!r}")


def new_tag(value: str) -> Reference:
    """
    Parse a strict ``repository:tag`` reference.

    A missing tag defaults to ``latest``. Digests are rejected.

    Raises:
        InvalidReference: If any part of the reference is malformed
    """
    repository, tag, digest = _split(value)
    if digest is not None:
        raise InvalidReference(value, "a tag reference must not carry a digest")
    _check_repository(value, repository)
    tag = DEFAULT_TAG if tag is None else tag
    _check_tag(value, tag)
    return Reference(repository=repository, tag=tag)


def parse_reference(value: str) -> Reference:
    """
    Parse ``repository[:tag][@digest]``.

    A reference with neither a tag nor a digest gets the ``latest`` tag.

    Raises:
        InvalidReference: If any part of the reference is malformed
    """
    repository, tag, digest = _split(value)
    _check_repository(value, repository)
    if tag is not None:
        _check_tag(value, tag)
    if digest is not None:
        _check_digest(value, digest)
    if tag is None and digest is None:
        tag = DEFAULT_TAG
    return Reference(repository=repository, tag=tag, digest=digest)
