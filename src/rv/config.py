"""Runtime settings resolved from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

VERSION = "0.1.0"

DEFAULT_IMAGE = "riscv-toolchain:multilib"
DEFAULT_RUNTIME = "docker"
DEFAULT_TOOL_PREFIX = "riscv-none-elf-"
GUEST_WORKSPACE = "/workspace"
GUEST_ASSETS = "/opt/rv/assets"


@dataclass(frozen=True, slots=True)
class Settings:
    image: str = DEFAULT_IMAGE
    runtime: str = DEFAULT_RUNTIME
    tool_prefix: str = DEFAULT_TOOL_PREFIX
    build_dir: Path = Path("build")
    workspace: Path = field(default_factory=Path.cwd)

    @property
    def compiler(self) -> str:
        return f"{self.tool_prefix}gcc"

    @property
    def disassembler(self) -> str:
        return f"{self.tool_prefix}objdump"

    @property
    def flattener(self) -> str:
        return f"{self.tool_prefix}objcopy"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        workspace = env.get("RV_WORKSPACE")
        return cls(
            image=env.get("RV_IMAGE") or DEFAULT_IMAGE,
            runtime=env.get("RV_CONTAINER_RUNTIME") or DEFAULT_RUNTIME,
            tool_prefix=env.get("RV_TOOL_PREFIX") or DEFAULT_TOOL_PREFIX,
            build_dir=Path(env.get("RV_BUILD_DIR") or "build"),
            workspace=Path(workspace).resolve() if workspace else Path.cwd(),
        )
