"""Repository naming strategies for published images."""

import posixpath
from typing import Callable, Dict

# Prefix marking an import path that must be built rather than passed through.
STRICT_SCHEME = "ko://"

Namer = Callable[[str, str], str]


def normalize_identity(identity: str) -> str:
    """Strip the strict build scheme and lowercase the identity."""
    if identity.startswith(STRICT_SCHEME):
        identity = identity[len(STRICT_SCHEME) :]
    return identity.lower()


def _clean_path(identity: str) -> str:
    parts = posixpath.normpath(identity).split("/")
    return "/".join(p for p in parts if p not in ("", ".", ".."))


def ignore_import_path(base: str, identity: str) -> str:
    """Publish every build under the repository base itself."""
    return base


def base_import_path(base: str, identity: str) -> str:
    """Append the last element of the import path to the repository base."""
    path = _clean_path(identity)
    if not path:
        return base
    return f"{base}/{posixpath.basename(path)}"


def preserve_import_path(base: str, identity: str) -> str:
    """Append the full import path to the repository base."""
    path = _clean_path(identity)
    if not path:
        return base
    return f"{base}/{path}"


NAMERS: Dict[str, Namer] = {
    "bare": ignore_import_path,
    "base": base_import_path,
    "preserve": preserve_import_path,
}


def get_namer(name: str) -> Namer:
    """Look up a naming strategy by name."""
    try:
        return NAMERS[name]
    except KeyError:
        raise ValueError(
            f"unknown naming strategy {name!r}, expected one of: {', '.join(NAMERS)}"
        ) from None
