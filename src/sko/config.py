"""Run configuration for sko."""

import os
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from .build.builder import DEFAULT_GO_IMAGE
from .core.naming import NAMERS
from .core.reference import TAG_RE
from .core.types import DEFAULT_ARCHITECTURE, DEFAULT_OS, Platform
from .publish.registry import Credentials

DEFAULT_BASE_IMAGE = "gcr.io/distroless/static:nonroot"
DEFAULT_PLATFORM = f"{DEFAULT_OS}/{DEFAULT_ARCHITECTURE}"
DEFAULT_TAG = "latest"


def _parse_platform(value):
    if isinstance(value, str):
        return Platform.parse(value)
    return value


class Options(BaseModel):
    """Everything one build-and-publish run needs."""

    image_name: str = Field(min_length=1)
    import_path: str = Field(min_length=1)
    base_image: str = DEFAULT_BASE_IMAGE
    platforms: List[Platform] = Field(default_factory=lambda: [Platform.default()])
    # Platform loaded into the local daemon when the build is multi-platform.
    daemon_platform: Optional[Platform] = None
    local: bool = False
    tar: Optional[Path] = None
    tags: List[str] = Field(default_factory=lambda: [DEFAULT_TAG])
    user: Optional[str] = None
    password: Optional[SecretStr] = None
    naming: str = "bare"
    go_image: str = DEFAULT_GO_IMAGE
    disable_optimizations: bool = True
    context_dir: Path = Path(".")

    @field_validator("platforms", mode="before")
    @classmethod
    def parse_platforms(cls, value):
        if value is None:
            return [Platform.default()]
        if isinstance(value, str):
            value = [part for part in value.split(",") if part.strip()]
        platforms = [_parse_platform(v) for v in value]
        if not platforms:
            raise ValueError("at least one platform is required")
        return platforms

    @field_validator("daemon_platform", mode="before")
    @classmethod
    def parse_daemon_platform(cls, value):
        return _parse_platform(value) if value else None

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, value):
        if not value:
            return [DEFAULT_TAG]
        return value

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value: List[str]) -> List[str]:
        if any(not tag.strip() for tag in value):
            raise ValueError("tags must be non-empty")
        invalid = [tag for tag in value if not TAG_RE.match(tag)]
        if invalid:
            raise ValueError(f"invalid tag(s): {', '.join(invalid)}")
        return value

    @field_validator("naming")
    @classmethod
    def check_naming(cls, value: str) -> str:
        if value not in NAMERS:
            raise ValueError(f"must be one of: {', '.join(NAMERS)}")
        return value

    @field_validator("tar")
    @classmethod
    def check_tar(cls, value: Optional[Path]) -> Optional[Path]:
        if value is not None and value.is_dir():
            raise ValueError(f"{value} is a directory")
        return value

    @property
    def credentials(self) -> Optional[Credentials]:
        """Explicit push credentials, only when both user and password are set."""
        if self.user and self.password and self.password.get_secret_value():
            return Credentials(self.user, self.password.get_secret_value())
        return None


def resolve_daemon_platform(
    explicit: Optional[Platform] = None, environ: Optional[Mapping[str, str]] = None
) -> Platform:
    """
    Decide which platform the local daemon receives.

    An explicit choice wins; otherwise GOOS and GOARCH are read from the
    environment, defaulting to linux/amd64.
    """
    if explicit is not None:
        return explicit
    environ = os.environ if environ is None else environ
    return Platform(
        os=environ.get("GOOS") or DEFAULT_OS,
        architecture=environ.get("GOARCH") or DEFAULT_ARCHITECTURE,
    )
