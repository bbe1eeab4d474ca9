"""
Docker-archive helpers.

Builds are exported as docker-archive tarballs (``docker save`` layout). These
helpers read the image digest out of an archive and write new archives whose
``manifest.json`` names the references an image should be loaded under.
"""

import io
import json
import logging
import os
import tarfile
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from .reference import Reference
from .types import SingleImage

log = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"

# Index files that would re-apply the build-time names on load.
_REWRITTEN_FILES = {MANIFEST_FILE, "repositories", "index.json", "oci-layout"}


def read_manifest(archive: Path) -> List[Dict[str, Any]]:
    """
    Read ``manifest.json`` from a docker-archive tarball.

    Raises:
        ValueError: If the file is not a tarball or has no usable manifest
    """
    try:
        with tarfile.open(archive) as tar:
            member = tar.extractfile(MANIFEST_FILE)
            if member is None:
                raise ValueError(f"{archive} has no regular {MANIFEST_FILE}")
            manifest = json.load(member)
    except KeyError as e:
        raise ValueError(f"{archive} has no {MANIFEST_FILE}") from e
    except tarfile.TarError as e:
        raise ValueError(f"{archive} is not a readable tarball: {e}") from e

    if not isinstance(manifest, list) or not manifest:
        raise ValueError(f"{archive} has an empty or malformed {MANIFEST_FILE}")
    return manifest


def image_digest(archive: Path) -> str:
    """
    Return the config digest (image ID) of the first image in an archive.

    Handles both the legacy ``<hex>.json`` and the OCI ``blobs/sha256/<hex>``
    config paths.
    """
    config = read_manifest(archive)[0].get("Config", "")
    name = config.rsplit("/", 1)[-1]
    if name.endswith(".json"):
        name = name[: -len(".json")]
    if len(name) != 64:
        raise ValueError(f"{archive} has an unrecognised config path {config!r}")
    return f"sha256:{name}"


def write_archive(
    dest: Path, entries: Sequence[Tuple[SingleImage, Sequence[Reference]]]
) -> Path:
    """
    Write a docker-archive holding each image under its references.

    Blobs shared between images are stored once. The file is written next to
    ``dest`` and moved into place, so readers never see a partial archive.

    Args:
        dest: Output tarball path
        entries: Images with the references they should be tagged as

    Returns:
        The destination path
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    manifest: List[Dict[str, Any]] = []
    seen = set()

    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", dir=dest.parent)
    os.close(fd)
    try:
        with tarfile.open(tmp_name, "w") as out:
            for image, references in entries:
                with tarfile.open(image.archive) as src:
                    entry = dict(read_manifest(image.archive)[0])
                    entry["RepoTags"] = [str(ref) for ref in references]
                    manifest.append(entry)

                    for member in src.getmembers():
                        if member.name in _REWRITTEN_FILES or member.name in seen:
                            continue
                        seen.add(member.name)
                        fileobj = src.extractfile(member) if member.isfile() else None
                        out.addfile(member, fileobj)

            data = json.dumps(manifest).encode()
            info = tarfile.TarInfo(MANIFEST_FILE)
            info.size = len(data)
            out.addfile(info, io.BytesIO(data))

        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    log.debug(f"Wrote {dest} with {len(manifest)} image(s)")
    return dest
