"""
Docker CLI access.

Thin async wrapper around the ``docker`` binary. Commands run as child
processes; cancelling the awaiting task kills the child so an interrupt never
leaves a transfer hanging.
"""

import asyncio
import json
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..exceptions import DockerCommandError, DockerUnavailableError
from .archive import write_archive
from .reference import Reference
from .types import Platform, SingleImage

log = logging.getLogger(__name__)

_PUSH_DIGEST_RE = re.compile(r"digest: (sha256:[a-f0-9]{64})")


@dataclass
class CommandResult:
    """Output of a finished docker command."""

    args: list
    returncode: int
    stdout: str
    stderr: str


class DockerClient:
    """Run docker commands against the local daemon."""

    def __init__(self, binary: str = "docker", config_dir: Optional[Path] = None):
        """
        Initialize docker client.

        Args:
            binary: Name or path of the docker executable
            config_dir: Alternate DOCKER_CONFIG directory (credentials store)
        """
        self.binary = binary
        self.config_dir = config_dir

    def with_config_dir(self, config_dir: Path) -> "DockerClient":
        """Return a client that reads credentials from ``config_dir``."""
        return DockerClient(binary=self.binary, config_dir=config_dir)

    def _env(self) -> Optional[Dict[str, str]]:
        if self.config_dir is None:
            return None
        env = os.environ.copy()
        env["DOCKER_CONFIG"] = str(self.config_dir)
        return env

    async def run(self, *args: str, input: Optional[str] = None) -> CommandResult:
        """
        Run ``docker <args>``.

        Raises:
            DockerUnavailableError: If the docker binary cannot be executed
            DockerCommandError: If the command exits non-zero
        """
        command = [self.binary, *args]
        log.debug(f"Running: {' '.join(command)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env(),
            )
        except FileNotFoundError as e:
            raise DockerUnavailableError(
                f"{self.binary} is not installed or not in PATH"
            ) from e

        try:
            stdout, stderr = await proc.communicate(
                input.encode() if input is not None else None
            )
        except asyncio.CancelledError:
            if proc.returncode is None:
                log.debug(f"Killing cancelled command: {' '.join(command)}")
                proc.kill()
                await proc.wait()
            raise

        result = CommandResult(
            args=command,
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        if result.returncode != 0:
            raise DockerCommandError(
                command, result.returncode, result.stdout, result.stderr
            )
        return result

    async def ensure_available(self) -> None:
        """Verify docker is installed and the daemon is reachable."""
        if shutil.which(self.binary) is None:
            raise DockerUnavailableError(f"{self.binary} is not installed or not in PATH")
        try:
            await self.run("info", "--format", "{{.ServerVersion}}")
        except DockerCommandError as e:
            raise DockerUnavailableError("Docker daemon is not running") from e

    async def build(
        self, dockerfile: Path, context: Path, platform: Platform, dest: Path
    ) -> None:
        """Build one platform and export it as a docker-archive at ``dest``."""
        await self.run(
            "buildx",
            "build",
            "--platform",
            str(platform),
            "--file",
            str(dockerfile),
            "--output",
            f"type=docker,dest={dest}",
            str(context),
        )

    async def load(self, image: SingleImage, reference: Reference) -> None:
        """Load ``image`` into the daemon under ``reference``."""
        with tempfile.TemporaryDirectory(prefix="sko-load-") as tmpdir:
            archive = await asyncio.to_thread(
                write_archive, Path(tmpdir) / "image.tar", [(image, [reference])]
            )
            await self.run("load", "--input", str(archive))

    async def tag(self, source: Reference, target: Reference) -> None:
        await self.run("tag", str(source), str(target))

    async def push(self, reference: Reference) -> Optional[str]:
        """Push a tag and return the manifest digest the registry reported."""
        result = await self.run("push", str(reference))
        match = _PUSH_DIGEST_RE.search(result.stdout)
        return match.group(1) if match else None

    async def login(self, registry: str, username: str, password: str) -> None:
        await self.run(
            "login", "--username", username, "--password-stdin", registry, input=password
        )

    async def inspect_manifest(self, reference: Reference) -> Dict[str, Any]:
        """Read the manifest or index of a remote image without pulling it."""
        result = await self.run(
            "buildx", "imagetools", "inspect", "--format", "{{json .Manifest}}", str(reference)
        )
        return json.loads(result.stdout)

    async def create_index(
        self, tags: Iterable[Reference], sources: Iterable[Reference]
    ) -> None:
        """Assemble a multi-platform index from already pushed manifests."""
        args = ["buildx", "imagetools", "create"]
        for tag in tags:
            args += ["--tag", str(tag)]
        args += [str(source) for source in sources]
        await self.run(*args)
