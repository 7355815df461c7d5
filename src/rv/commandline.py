"""Argument parsing shared by the one-shot entry point and the interactive loop."""

from __future__ import annotations

import argparse
import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, NoReturn

from rv.errors import InvalidOption
from rv.models import OPT_LEVELS

GLOBAL_VALUE_OPTIONS = frozenset({"--log-file"})
OPAQUE_VALUE_OPTIONS = frozenset({"--cflags"})
PASSTHROUGH_COMMANDS = frozenset({"make"})


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that raises InvalidOption instead of exiting the process."""

    def error(self, message: str) -> NoReturn:
        raise InvalidOption(message, hint="Run `rv help` for usage.")


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    command: str | None
    options: dict[str, Any] = field(default_factory=dict)
    verbose: bool = False
    log_file: str | None = None


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="rv", add_help=False, description="RISC-V cross-build front end")
    parser.add_argument("-h", "--help", action="store_true", dest="help")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--log-file", default=None)
    sub = parser.add_subparsers(dest="command", parser_class=_Parser)

    def add(name: str) -> argparse.ArgumentParser:
        command = sub.add_parser(name, add_help=False, argument_default=argparse.SUPPRESS)
        command.add_argument("-h", "--help", action="store_true", dest="help_topic")
        return command

    build = add("build")
    build.add_argument("source", nargs="?")
    build.add_argument("--arch")
    build.add_argument("-o", "--output", dest="output")
    build.add_argument("--opt", choices=OPT_LEVELS)
    build.add_argument("--bare", action="store_true")
    build.add_argument("--cflags")

    dump = add("dump")
    dump.add_argument("artifact", nargs="?")
    dump.add_argument("--grep")

    flat = add("bin")
    flat.add_argument("artifact", nargs="?")
    flat.add_argument("-o", "--output", dest="output")

    add("archs")

    version = add("version")
    version.add_argument("--tools", action="store_true")

    add("shell")
    add("make")

    image = add("build-image")
    image.add_argument("--force", action="store_true")
    image.add_argument("--context")

    help_command = add("help")
    help_command.add_argument("topic", nargs="?")

    return parser


def parse_argv(argv: Sequence[str]) -> ParsedCommand:
    """Turn argv tokens into a command name and the options the user supplied."""
    head, passthrough = _split_passthrough(list(argv))
    namespace = vars(build_parser().parse_args(_join_opaque_values(head)))
    if passthrough is not None:
        namespace["args"] = passthrough
    verbose = namespace.pop("verbose")
    log_file = namespace.pop("log_file")
    command = namespace.pop("command")

    if namespace.pop("help") or namespace.pop("help_topic", False):
        topic = command if command not in (None, "help") else namespace.get("topic")
        options = {"topic": topic} if topic else {}
        return ParsedCommand(command="help", options=options, verbose=verbose, log_file=log_file)

    return ParsedCommand(command=command, options=namespace, verbose=verbose, log_file=log_file)


def tokenize(line: str) -> list[str]:
    """Split one interactive line exactly as a shell would split argv."""
    try:
        return shlex.split(line)
    except ValueError as exc:
        raise InvalidOption(f"Cannot parse command line: {exc}.") from exc


def _split_passthrough(argv: list[str]) -> tuple[list[str], list[str] | None]:
    """Cut argv after a passthrough command; everything following it is forwarded verbatim."""
    index = 0
    while index < len(argv):
        token = argv[index]
        if token in GLOBAL_VALUE_OPTIONS:
            index += 2
            continue
        if token.startswith("-"):
            index += 1
            continue
        if token in PASSTHROUGH_COMMANDS:
            return argv[: index + 1], argv[index + 1 :]
        break
    return argv, None


def _join_opaque_values(argv: list[str]) -> list[str]:
    """Fold ``--cflags -Wall`` into ``--cflags=-Wall`` so dash-led values are not taken for options."""
    joined: list[str] = []
    tokens = iter(argv)
    for token in tokens:
        if token in OPAQUE_VALUE_OPTIONS:
            value = next(tokens, None)
            joined.append(token if value is None else f"{token}={value}")
        else:
            joined.append(token)
    return joined
