"""Toolchain stages run inside the execution environment.

Each stage builds one argv, runs it once through the environment and hands
back the :class:`InvocationResult` untouched; deciding whether a non-zero
status is fatal is left to the caller.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

from rv import baremetal
from rv.config import Settings
from rv.environment import Environment, guest_path, host_path
from rv.errors import IOFailure
from rv.manifest import write_manifest
from rv.models import BinRequest, BuildRequest, DumpRequest, InvocationResult
from rv.observability import StructuredLogger

SHELL_COMMAND = ("/bin/bash",)
MAKE_COMMAND = "make"


@dataclass(slots=True)
class ToolInvoker:
    env: Environment
    settings: Settings = field(default_factory=Settings)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def compile_command(self, request: BuildRequest) -> tuple[str, ...]:
        """Compiler argv in fixed order: arch, abi, optimization, link mode, extras, paths."""
        if request.bare_metal:
            link_mode = baremetal.link_flags(baremetal.select(request.arch.width))
        else:
            link_mode = baremetal.HOSTED_LINK_FLAGS
        return (
            self.settings.compiler,
            request.arch.march_flag,
            request.arch.mabi_flag,
            f"-{request.opt_level}",
            "-g",
            *link_mode,
            *request.extra_flags,
            guest_path(self.env.workspace, request.source),
            "-o",
            guest_path(self.env.workspace, request.output_path),
        )

    def build(self, request: BuildRequest) -> InvocationResult:
        self._require_file(request.source, operation="build")
        argv = self.compile_command(request)
        output = host_path(self.env.workspace, request.output_path)
        self._ensure_parent(output, operation="build")

        self._log("build", "compile", f"Compiling {request.source} for {request.arch.isa}", argv)
        result = self.env.run(argv)
        if not result.ok:
            return result

        if output.is_file():
            try:
                manifest = write_manifest(request, output, argv)
            except OSError as exc:
                raise IOFailure(
                    f"Cannot write build manifest next to {request.output_path}.",
                    context={"operation": "build", "error": str(exc)},
                ) from exc
            self._log("build", "manifest", f"Wrote {manifest.path.name}", (), build_key=manifest.key)
        return dataclasses.replace(result, artifact=output)

    def disassemble(self, request: DumpRequest) -> InvocationResult:
        self._require_file(request.artifact, operation="dump")
        argv = (self.settings.disassembler, "-d", guest_path(self.env.workspace, request.artifact))
        self._log("dump", "disassemble", f"Disassembling {request.artifact}", argv)
        return self.env.run(argv)

    def flatten(self, request: BinRequest) -> InvocationResult:
        self._require_file(request.artifact, operation="bin")
        argv = (
            self.settings.flattener,
            "-O",
            "binary",
            guest_path(self.env.workspace, request.artifact),
            guest_path(self.env.workspace, request.output_path),
        )
        output = host_path(self.env.workspace, request.output_path)
        self._ensure_parent(output, operation="bin")

        self._log("bin", "flatten", f"Flattening {request.artifact}", argv)
        result = self.env.run(argv)
        if not result.ok:
            return result
        return dataclasses.replace(result, artifact=output)

    def shell(self) -> InvocationResult:
        self._log("shell", "session", f"Starting shell in {self.env.image}", SHELL_COMMAND)
        return self.env.run(SHELL_COMMAND, interactive=True)

    def make(self, args: tuple[str, ...] = ()) -> InvocationResult:
        argv = (MAKE_COMMAND, *args)
        self._log("make", "run", "Running make in the toolchain environment", argv)
        return self.env.run(argv)

    def tool_versions(self) -> tuple[InvocationResult, ...]:
        results = []
        for tool in (self.settings.compiler, self.settings.disassembler, self.settings.flattener):
            argv = (tool, "--version")
            self._log("version", "probe", f"Querying {tool}", argv)
            results.append(self.env.run(argv))
        return tuple(results)

    def _require_file(self, path: Path, *, operation: str) -> None:
        if not host_path(self.env.workspace, path).is_file():
            raise IOFailure(
                f"Input file {path} does not exist.",
                context={"operation": operation, "path": str(path)},
            )

    def _ensure_parent(self, output: Path, *, operation: str) -> None:
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailure(
                f"Cannot create output directory {output.parent}.",
                context={"operation": operation, "error": str(exc)},
            ) from exc

    def _log(self, command: str, stage: str, message: str, argv: tuple[str, ...], **extra: str) -> None:
        payload: dict[str, object] = dict(extra)
        if argv:
            payload["argv"] = list(argv)
        self.logger.log(
            operation="invoke",
            command=command,
            stage=stage,
            message=message,
            extra=payload or None,
        )
