"""Containerized toolchain execution environment.

Every toolchain stage runs as a single ``<runtime> run --rm`` against a
prebuilt image, with the working tree mounted at ``/workspace`` and the
bare-metal assets mounted read-only.  The image identity is checked before
each use but only ever created by :meth:`ContainerEnvironment.build_image`.
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Protocol

from rv.baremetal import ASSETS_DIR
from rv.config import GUEST_ASSETS, GUEST_WORKSPACE, Settings
from rv.errors import EnvironmentNotFound, IOFailure
from rv.models import InvocationResult


@dataclass(frozen=True, slots=True)
class MountSpec:
    source: Path
    target: str
    read_only: bool = False

    def as_volume(self) -> str:
        suffix = ":ro" if self.read_only else ""
        return f"{self.source}:{self.target}{suffix}"


class Environment(Protocol):
    image: str
    workspace: Path

    def exists(self) -> bool:
        """Return True when the toolchain image is present."""

    def require(self) -> None:
        """Raise EnvironmentNotFound unless the toolchain image is present."""

    def run(self, argv: Sequence[str], *, interactive: bool = False) -> InvocationResult:
        """Run *argv* inside the environment and return its captured result."""

    def build_image(self, context: Path) -> InvocationResult:
        """Construct the toolchain image from *context*."""


@dataclass(slots=True)
class ContainerEnvironment:
    image: str
    workspace: Path
    runtime: str = "docker"
    extra_run_args: list[str] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings) -> ContainerEnvironment:
        return cls(image=settings.image, workspace=settings.workspace, runtime=settings.runtime)

    def mount_plan(self) -> tuple[MountSpec, ...]:
        return (
            MountSpec(source=self.workspace, target=GUEST_WORKSPACE),
            MountSpec(source=ASSETS_DIR, target=GUEST_ASSETS, read_only=True),
        )

    def exists(self) -> bool:
        self._ensure_runtime_available()
        result = subprocess.run(
            [self.runtime, "image", "inspect", self.image],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
        return result.returncode == 0

    def require(self) -> None:
        if not self.exists():
            raise EnvironmentNotFound(
                f"Toolchain image '{self.image}' not found.",
                hint=f"Build it first with `rv build-image` or `{self.runtime} build -t {self.image} .`.",
                context={"image": self.image, "runtime": self.runtime},
            )

    def run(self, argv: Sequence[str], *, interactive: bool = False) -> InvocationResult:
        self._ensure_runtime_available()
        cmd = [self.runtime, "run", "--rm"]
        if interactive:
            cmd.append("-it")
        for mount in self.mount_plan():
            cmd.extend(["-v", mount.as_volume()])
        cmd.extend(["-w", GUEST_WORKSPACE, *self.extra_run_args, self.image, *argv])

        if interactive:
            completed = subprocess.run(cmd, check=False)
            return InvocationResult(command=tuple(argv), returncode=completed.returncode)

        completed = subprocess.run(cmd, capture_output=True, text=True, check=False)
        return InvocationResult(
            command=tuple(argv),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def build_image(self, context: Path) -> InvocationResult:
        self._ensure_runtime_available()
        if not (context / "Dockerfile").is_file():
            raise IOFailure(
                f"No Dockerfile found in build context {context}.",
                hint="Pass --context pointing at the directory holding the toolchain Dockerfile.",
                context={"context": str(context)},
            )
        cmd = (self.runtime, "build", "-t", self.image, str(context))
        # Build output streams straight to the terminal.
        completed = subprocess.run(cmd, check=False)
        return InvocationResult(command=cmd, returncode=completed.returncode)

    def _ensure_runtime_available(self) -> None:
        if shutil.which(self.runtime) is None:
            raise EnvironmentNotFound(
                f"Container runtime `{self.runtime}` not found in PATH.",
                hint="Install Docker (or set RV_CONTAINER_RUNTIME) before running toolchain commands.",
                context={"runtime": self.runtime, "image": self.image},
            )


def host_path(workspace: Path, path: Path) -> Path:
    return path if path.is_absolute() else workspace / path


def guest_path(workspace: Path, path: Path) -> str:
    """Map a host path inside *workspace* to its relative path inside the container."""
    try:
        relative = host_path(workspace, path).resolve().relative_to(workspace.resolve())
    except ValueError:
        raise IOFailure(
            f"{path} is outside the mounted working tree.",
            hint="Run rv from a directory that contains both sources and outputs.",
            context={"path": str(path), "workspace": str(workspace)},
        ) from None
    return str(PurePosixPath(*relative.parts)) if relative.parts else "."
