"""Command dispatch.

Commands are a closed table mapping each name to a :class:`CommandSpec`.
Dispatch validates the option mapping and builds the typed request first,
then checks the execution environment, and only then runs a toolchain stage,
so malformed input never reaches the container.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rv import arch as arch_resolver
from rv.config import VERSION, Settings
from rv.errors import ExternalToolFailure, InvalidOption, MissingRequiredOption, RvError
from rv.models import (
    DEFAULT_OPT_LEVEL,
    OPT_LEVELS,
    BinRequest,
    BuildRequest,
    DumpRequest,
    InvocationResult,
    Outcome,
)
from rv.observability import StructuredLogger
from rv.output_filter import filter_text
from rv.toolchain import ToolInvoker


@dataclass(frozen=True, slots=True)
class VersionRequest:
    tools: bool = False


@dataclass(frozen=True, slots=True)
class ImageRequest:
    context: Path
    force: bool = False


@dataclass(frozen=True, slots=True)
class MakeRequest:
    args: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class HelpRequest:
    topic: str | None = None


@dataclass(frozen=True, slots=True)
class CommandSpec:
    name: str
    usage: str
    summary: str
    options: frozenset[str]
    prepare: Callable[[CommandDispatcher, Mapping[str, Any]], Any]
    execute: Callable[[CommandDispatcher, Any], Outcome]
    needs_environment: bool = False


@dataclass(slots=True)
class CommandDispatcher:
    invoker: ToolInvoker
    settings: Settings = field(default_factory=Settings)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def dispatch(self, command: str, options: Mapping[str, Any] | None = None) -> Outcome:
        spec = COMMANDS.get(command)
        if spec is None:
            raise InvalidOption(
                f"Unknown command {command!r}.",
                hint=f"Available commands: {', '.join(COMMANDS)}.",
                context={"command": str(command)},
            )
        options = dict(options or {})
        unknown = sorted(set(options) - spec.options)
        if unknown:
            raise InvalidOption(
                f"Unknown option(s) for {command}: {', '.join(unknown)}.",
                hint=f"Usage: rv {spec.usage}",
                context={"command": command},
            )

        request = spec.prepare(self, options)
        if spec.needs_environment:
            self.invoker.env.require()
        self.logger.log(operation="dispatch", command=command, stage="execute", message=f"Running {command}")
        return spec.execute(self, request)

    # ------------------------------------------------------------------
    # build
    # ------------------------------------------------------------------

    def _prepare_build(self, options: Mapping[str, Any]) -> BuildRequest:
        source = _required(options, "source", "build", "a source file")
        token = _required(options, "arch", "build", "--arch")
        opt_level = options.get("opt", DEFAULT_OPT_LEVEL)
        if opt_level not in OPT_LEVELS:
            raise InvalidOption(
                f"Invalid optimization level {opt_level!r}.",
                hint=f"Choose one of: {', '.join(OPT_LEVELS)}.",
                context={"command": "build"},
            )
        output = options.get("output")
        return BuildRequest(
            source=_path(source, "source"),
            arch=arch_resolver.resolve(token),
            output=_path(output, "output") if output is not None else None,
            opt_level=opt_level,
            bare_metal=_flag(options, "bare"),
            extra_flags=_split_flags(options.get("cflags")),
            build_dir=self.settings.build_dir,
        )

    def _execute_build(self, request: BuildRequest) -> Outcome:
        result = self.invoker.build(request)
        _raise_for_status(result, f"Compilation of {request.source} failed.")
        return Outcome(
            stdout=f"Built {request.output_path} ({request.arch.isa}, {request.arch.abi})\n" + result.stdout,
            stderr=result.stderr,
            result=result,
        )

    # ------------------------------------------------------------------
    # dump / bin
    # ------------------------------------------------------------------

    def _prepare_dump(self, options: Mapping[str, Any]) -> DumpRequest:
        artifact = _required(options, "artifact", "dump", "an artifact path")
        pattern = options.get("grep")
        if pattern is not None and not isinstance(pattern, str):
            raise InvalidOption("--grep expects a text pattern.", context={"command": "dump"})
        return DumpRequest(artifact=_path(artifact, "artifact"), pattern=pattern)

    def _execute_dump(self, request: DumpRequest) -> Outcome:
        result = self.invoker.disassemble(request)
        _raise_for_status(result, f"Disassembly of {request.artifact} failed.")
        return Outcome(stdout=filter_text(result.stdout, request.pattern), stderr=result.stderr, result=result)

    def _prepare_bin(self, options: Mapping[str, Any]) -> BinRequest:
        artifact = _required(options, "artifact", "bin", "an artifact path")
        output = options.get("output")
        return BinRequest(
            artifact=_path(artifact, "artifact"),
            output=_path(output, "output") if output is not None else None,
        )

    def _execute_bin(self, request: BinRequest) -> Outcome:
        result = self.invoker.flatten(request)
        _raise_for_status(result, f"Conversion of {request.artifact} failed.")
        return Outcome(stdout=f"Wrote {request.output_path}\n", stderr=result.stderr, result=result)

    # ------------------------------------------------------------------
    # local commands
    # ------------------------------------------------------------------

    def _execute_archs(self, _: None) -> Outcome:
        presets = arch_resolver.list_presets()
        name_width = max(len(p.name) for p in presets)
        isa_width = max(len(p.isa) for p in presets)
        lines = [f"{'ARCH':<{name_width}}  {'-march':<{isa_width}}  {'-mabi':<6}  DESCRIPTION"]
        for preset in presets:
            lines.append(
                f"{preset.name:<{name_width}}  {preset.isa:<{isa_width}}  {preset.abi:<6}  {preset.description}"
            )
        lines.append("")
        lines.append("Custom: <32|64><letters>[_<ext>...], e.g. 32imc_zba_zbb")
        return Outcome(stdout="\n".join(lines) + "\n")

    def _prepare_version(self, options: Mapping[str, Any]) -> VersionRequest:
        return VersionRequest(tools=_flag(options, "tools"))

    def _execute_version(self, request: VersionRequest) -> Outcome:
        lines = [
            f"rv {VERSION}",
            f"image: {self.settings.image} ({self.settings.runtime})",
            f"compiler: {self.settings.compiler}",
            f"disassembler: {self.settings.disassembler}",
            f"flattener: {self.settings.flattener}",
        ]
        if request.tools:
            self.invoker.env.require()
            for result in self.invoker.tool_versions():
                _raise_for_status(result, f"{result.command[0]} --version failed.")
                first = result.stdout.splitlines()[0] if result.stdout else "(no output)"
                lines.append(f"  {first}")
        return Outcome(stdout="\n".join(lines) + "\n")

    def _prepare_help(self, options: Mapping[str, Any]) -> HelpRequest:
        topic = options.get("topic")
        if topic is not None and topic not in COMMANDS:
            raise InvalidOption(f"No help for unknown command {topic!r}.", context={"command": "help"})
        return HelpRequest(topic=topic)

    def _execute_help(self, request: HelpRequest) -> Outcome:
        specs = [COMMANDS[request.topic]] if request.topic else list(COMMANDS.values())
        lines = [] if request.topic else ["usage: rv [-v] [--log-file PATH] <command> [options]", ""]
        lines.extend(f"  rv {spec.usage:<58} {spec.summary}" for spec in specs)
        if not request.topic:
            lines.append("")
            lines.append("Run rv with no command to start an interactive session.")
        return Outcome(stdout="\n".join(lines) + "\n")

    # ------------------------------------------------------------------
    # environment commands
    # ------------------------------------------------------------------

    def _execute_shell(self, _: None) -> Outcome:
        result = self.invoker.shell()
        return Outcome(exit_code=result.returncode, result=result)

    def _prepare_make(self, options: Mapping[str, Any]) -> MakeRequest:
        args = options.get("args", ())
        if not isinstance(args, (list, tuple)) or not all(isinstance(arg, str) for arg in args):
            raise InvalidOption("make expects a list of arguments.", context={"command": "make"})
        return MakeRequest(args=tuple(args))

    def _execute_make(self, request: MakeRequest) -> Outcome:
        result = self.invoker.make(request.args)
        _raise_for_status(result, "make failed inside the toolchain environment.")
        return Outcome(stdout=result.stdout, stderr=result.stderr, result=result)

    def _prepare_image(self, options: Mapping[str, Any]) -> ImageRequest:
        context = options.get("context")
        return ImageRequest(
            context=_path(context, "context") if context is not None else self.settings.workspace,
            force=_flag(options, "force"),
        )

    def _execute_image(self, request: ImageRequest) -> Outcome:
        env = self.invoker.env
        if not request.force and env.exists():
            return Outcome(stdout=f"Image {env.image} already present.\n")
        self.logger.log(
            operation="dispatch",
            command="build-image",
            stage="construct",
            message=f"Building {env.image} from {request.context}",
        )
        result = env.build_image(request.context)
        _raise_for_status(result, f"Building image {env.image} failed.")
        return Outcome(stdout=f"Image {env.image} built.\n", result=result)


def _no_options(_: CommandDispatcher, __: Mapping[str, Any]) -> None:
    return None


COMMANDS: dict[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec(
            name="build",
            usage="build <source> --arch ARCH [-o OUT] [--opt LEVEL] [--bare] [--cflags FLAGS]",
            summary="Compile a C/assembly source",
            options=frozenset({"source", "arch", "output", "opt", "bare", "cflags"}),
            prepare=CommandDispatcher._prepare_build,
            execute=CommandDispatcher._execute_build,
            needs_environment=True,
        ),
        CommandSpec(
            name="dump",
            usage="dump <artifact> [--grep PATTERN]",
            summary="Disassemble an artifact",
            options=frozenset({"artifact", "grep"}),
            prepare=CommandDispatcher._prepare_dump,
            execute=CommandDispatcher._execute_dump,
            needs_environment=True,
        ),
        CommandSpec(
            name="bin",
            usage="bin <artifact> [-o OUT]",
            summary="Flatten an ELF artifact to raw bytes",
            options=frozenset({"artifact", "output"}),
            prepare=CommandDispatcher._prepare_bin,
            execute=CommandDispatcher._execute_bin,
            needs_environment=True,
        ),
        CommandSpec(
            name="archs",
            usage="archs",
            summary="List architecture presets",
            options=frozenset(),
            prepare=_no_options,
            execute=CommandDispatcher._execute_archs,
        ),
        CommandSpec(
            name="version",
            usage="version [--tools]",
            summary="Show rv and toolchain versions",
            options=frozenset({"tools"}),
            prepare=CommandDispatcher._prepare_version,
            execute=CommandDispatcher._execute_version,
        ),
        CommandSpec(
            name="shell",
            usage="shell",
            summary="Open a shell inside the toolchain container",
            options=frozenset(),
            prepare=_no_options,
            execute=CommandDispatcher._execute_shell,
            needs_environment=True,
        ),
        CommandSpec(
            name="make",
            usage="make [ARGS...]",
            summary="Run make in the toolchain container, forwarding ARGS",
            options=frozenset({"args"}),
            prepare=CommandDispatcher._prepare_make,
            execute=CommandDispatcher._execute_make,
            needs_environment=True,
        ),
        CommandSpec(
            name="build-image",
            usage="build-image [--force] [--context DIR]",
            summary="Build the toolchain image if absent",
            options=frozenset({"force", "context"}),
            prepare=CommandDispatcher._prepare_image,
            execute=CommandDispatcher._execute_image,
        ),
        CommandSpec(
            name="help",
            usage="help [command]",
            summary="Show this help",
            options=frozenset({"topic"}),
            prepare=CommandDispatcher._prepare_help,
            execute=CommandDispatcher._execute_help,
        ),
    )
}


def failure_output(error: RvError) -> str:
    """Standard output a failed tool produced before exiting, if any."""
    if isinstance(error, ExternalToolFailure) and error.result is not None:
        return error.result.stdout
    return ""


def format_failure(error: RvError) -> str:
    """Render *error* for the terminal, tool stderr first and verbatim."""
    parts: list[str] = []
    if isinstance(error, ExternalToolFailure) and error.result is not None and error.result.stderr:
        parts.append(error.result.stderr.rstrip("\n"))
    parts.append(f"error[{error.code}]: {error}")
    return "\n".join(parts) + "\n"


def _required(options: Mapping[str, Any], key: str, command: str, label: str) -> Any:
    value = options.get(key)
    if value is None or value == "":
        raise MissingRequiredOption(
            f"{command} requires {label}.",
            hint=f"Usage: rv {COMMANDS[command].usage}",
            context={"command": command, "option": key},
        )
    return value


def _path(value: Any, key: str) -> Path:
    if isinstance(value, Path):
        return value
    if isinstance(value, str) and value:
        return Path(value)
    raise InvalidOption(f"Option {key!r} expects a path.", context={"option": key})


def _flag(options: Mapping[str, Any], key: str) -> bool:
    value = options.get(key, False)
    if not isinstance(value, bool):
        raise InvalidOption(f"Option {key!r} is a flag and takes no value.", context={"option": key})
    return value


def _split_flags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        try:
            return tuple(shlex.split(value))
        except ValueError as exc:
            raise InvalidOption(f"Cannot parse --cflags: {exc}.", context={"option": "cflags"}) from exc
    if isinstance(value, Sequence) and all(isinstance(flag, str) for flag in value):
        return tuple(value)
    raise InvalidOption("--cflags expects a string of compiler flags.", context={"option": "cflags"})


def _raise_for_status(result: InvocationResult, message: str) -> None:
    if result.ok:
        return
    raise ExternalToolFailure(
        message,
        result=result,
        context={"command": " ".join(result.command), "returncode": str(result.returncode)},
    )
