"""
Dockerfile generation for Go programs.

The generated file cross-compiles the program in a builder stage and copies
the static binary onto the base image, following the ko image layout:
binary at ``/ko-app/<name>``, optional ``kodata`` at ``/var/run/ko``.
"""

from dataclasses import dataclass
from typing import Optional

APP_DIR = "/ko-app"
KODATA_PATH = "/var/run/ko"

_TEMPLATE = """\
# syntax=docker/dockerfile:1
FROM --platform=$BUILDPLATFORM {go_image} AS build
ARG TARGETOS
ARG TARGETARCH
ARG TARGETVARIANT
WORKDIR /src
COPY . .
RUN --mount=type=cache,target=/go/pkg/mod \\
    --mount=type=cache,target=/root/.cache/go-build \\
    CGO_ENABLED=0 GOOS=$TARGETOS GOARCH=$TARGETARCH GOARM=${{TARGETVARIANT#v}} \\
    go build -trimpath{gcflags} -o {app_dir}/{binary} {import_path}

FROM {base_image}
COPY --from=build {app_dir}/{binary} {app_dir}/{binary}
{kodata}ENV PATH="{app_dir}:${{PATH}}"
ENTRYPOINT ["{app_dir}/{binary}"]
"""


@dataclass
class DockerfileConfig:
    """Inputs for a generated Dockerfile."""

    base_image: str
    import_path: str
    binary_name: str
    go_image: str = "golang:1.22"
    disable_optimizations: bool = False
    # Path of the kodata directory relative to the build context, if any.
    kodata_dir: Optional[str] = None


class DockerfileGenerator:
    """Render Dockerfiles for Go program builds."""

    def generate(self, config: DockerfileConfig) -> str:
        gcflags = " -gcflags='all=-N -l'" if config.disable_optimizations else ""

        kodata = ""
        if config.kodata_dir:
            kodata = (
                f"COPY {config.kodata_dir} {KODATA_PATH}\n"
                f"ENV KO_DATA_PATH={KODATA_PATH}\n"
            )

        return _TEMPLATE.format(
            go_image=config.go_image,
            gcflags=gcflags,
            app_dir=APP_DIR,
            binary=config.binary_name,
            import_path=config.import_path,
            base_image=config.base_image,
            kodata=kodata,
        )
