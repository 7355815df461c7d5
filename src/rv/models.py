"""Core typed dataclasses for build, dump and flatten requests."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

Width = Literal[32, 64]
OptLevel = Literal["O0", "O1", "O2", "O3", "Os", "Oz"]

OPT_LEVELS: tuple[OptLevel, ...] = ("O0", "O1", "O2", "O3", "Os", "Oz")
DEFAULT_OPT_LEVEL: OptLevel = "O2"
DEFAULT_BUILD_DIR = Path("build")
ARTIFACT_SUFFIX = ".elf"
FLAT_SUFFIX = ".bin"


@dataclass(frozen=True, slots=True)
class ResolvedArchitecture:
    """Canonical ``-march``/``-mabi`` pair for one architecture token."""

    isa: str
    abi: str
    width: Width
    extensions: tuple[str, ...] = ()

    @property
    def march_flag(self) -> str:
        return f"-march={self.isa}"

    @property
    def mabi_flag(self) -> str:
        return f"-mabi={self.abi}"


@dataclass(frozen=True, slots=True)
class BareMetalAssets:
    linker_script: str
    startup_code: str
    code_model: str | None = None


@dataclass(frozen=True, slots=True)
class BuildRequest:
    source: Path
    arch: ResolvedArchitecture
    output: Path | None = None
    opt_level: OptLevel = DEFAULT_OPT_LEVEL
    bare_metal: bool = False
    extra_flags: tuple[str, ...] = ()
    build_dir: Path = DEFAULT_BUILD_DIR

    @property
    def output_path(self) -> Path:
        if self.output is not None:
            return self.output
        return self.build_dir / f"{self.source.stem}{ARTIFACT_SUFFIX}"


@dataclass(frozen=True, slots=True)
class DumpRequest:
    artifact: Path
    pattern: str | None = None


@dataclass(frozen=True, slots=True)
class BinRequest:
    artifact: Path
    output: Path | None = None

    @property
    def output_path(self) -> Path:
        if self.output is not None:
            return self.output
        return self.artifact.with_suffix(FLAT_SUFFIX)


@dataclass(frozen=True, slots=True)
class InvocationResult:
    """Exit status and captured streams of one external tool run."""

    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    artifact: Path | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True, slots=True)
class Outcome:
    """What a dispatched command produced for the caller to print."""

    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    result: InvocationResult | None = None
