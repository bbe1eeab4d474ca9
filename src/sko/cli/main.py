"""Main CLI entry point for sko."""

import asyncio
import logging
from importlib import metadata
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from .. import __commit__
from ..build.builder import DEFAULT_GO_IMAGE
from ..config import DEFAULT_BASE_IMAGE, DEFAULT_PLATFORM, Options, resolve_daemon_platform
from ..exceptions import SkoError
from ..logger import setup_logging
from ..orchestrator import build_and_publish

log = logging.getLogger(__name__)


def get_version() -> str:
    """Get the package version from metadata."""
    try:
        return metadata.version("sko")
    except metadata.PackageNotFoundError:
        return "n/a"


console = Console(stderr=True)

# command: sko <image> <path>
app = typer.Typer(
    name="sko",
    help="Build a Go program into a container image and publish it.",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool):
    if value:
        typer.echo(f"version: {get_version()} commit: {__commit__}")
        raise typer.Exit()


@app.command()
def main(
    image: str = typer.Argument(..., help="Image name, e.g. quay.io/foo/bar"),
    import_path: str = typer.Argument(..., help="Path of the program to build, e.g. ./cmd/bar"),
    tags: Optional[List[str]] = typer.Option(
        None,
        "--tag",
        "-tag",
        envvar="SKO_TAG",
        help="Tag to publish. Can be used multiple times. Defaults to latest.",
    ),
    local: bool = typer.Option(
        False,
        "--local",
        "-local",
        envvar="SKO_LOCAL",
        help="Load image into the local docker daemon instead of pushing it.",
    ),
    tar: Optional[Path] = typer.Option(
        None, "--tar", "-tar", envvar="SKO_TAR", help="Save image to a tar file."
    ),
    base: str = typer.Option(
        DEFAULT_BASE_IMAGE, "--base", "-base", envvar="SKO_BASE", help="Base image."
    ),
    platform: str = typer.Option(
        DEFAULT_PLATFORM,
        "--platform",
        "-platform",
        envvar="SKO_PLATFORM",
        help="Platform(s) to build, comma separated os/arch[/variant].",
    ),
    daemon_platform: Optional[str] = typer.Option(
        None,
        "--daemon-platform",
        envvar="SKO_DAEMON_PLATFORM",
        help="Platform loaded by --local for multi-platform builds (default: $GOOS/$GOARCH or linux/amd64).",
    ),
    user: Optional[str] = typer.Option(
        None, "--user", "-user", envvar="SKO_USER", help="Registry user used for push."
    ),
    password: Optional[str] = typer.Option(
        None,
        "--password",
        "-password",
        envvar="SKO_PASSWORD",
        help="Registry password used for push.",
    ),
    naming: str = typer.Option(
        "bare",
        "--naming",
        envvar="SKO_NAMING",
        help="Repository naming: bare, base (append last path element) or preserve (append full path).",
    ),
    go_image: str = typer.Option(
        DEFAULT_GO_IMAGE, "--go-image", envvar="SKO_GO_IMAGE", help="Image providing the Go toolchain."
    ),
    context: Path = typer.Option(
        Path("."),
        "--context",
        envvar="SKO_CONTEXT",
        exists=True,
        file_okay=False,
        help="Go module root used as the build context.",
    ),
    disable_optimizations: bool = typer.Option(
        True,
        "--disable-optimizations/--enable-optimizations",
        envvar="SKO_DISABLE_OPTIMIZATIONS",
        help="Compile with optimizations and inlining disabled.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: bool = typer.Option(
        False,
        "--version",
        "-version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    Build the program at IMPORT_PATH and publish it as IMAGE.

    Examples:
      sko dvob/http-server .
      sko --tag v0.0.4 quay.io/foo/bar ./cmd/bar
      sko --local --platform linux/arm64 example.com/app ./cmd/app
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        options = Options(
            image_name=image,
            import_path=import_path,
            base_image=base,
            platforms=platform,
            daemon_platform=daemon_platform,
            local=local,
            tar=tar,
            tags=tags or [],
            user=user,
            password=password,
            naming=naming,
            go_image=go_image,
            disable_optimizations=disable_optimizations,
            context_dir=context,
        )
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    # GOOS/GOARCH are only consulted here, once, at the process boundary.
    options.daemon_platform = resolve_daemon_platform(options.daemon_platform)

    try:
        reference = asyncio.run(build_and_publish(options))
    except SkoError as e:
        log.debug("Run failed", exc_info=True)
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)

    typer.echo(str(reference))


if __name__ == "__main__":
    app()
