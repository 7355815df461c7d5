"""``rv`` command-line entry point.

Usage:
    rv build examples/blink.c --arch 32imac
    rv dump build/blink.elf --grep nop
    rv bin build/blink.elf
    rv make verify
    rv                       # interactive session
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import TextIO

from rv.commandline import parse_argv
from rv.config import Settings
from rv.dispatch import CommandDispatcher, failure_output, format_failure
from rv.environment import ContainerEnvironment, Environment
from rv.errors import RvError
from rv.observability import StructuredLogger
from rv.repl import InteractiveLoop
from rv.toolchain import ToolInvoker


def make_dispatcher(
    settings: Settings,
    *,
    env: Environment | None = None,
    logger: StructuredLogger | None = None,
) -> CommandDispatcher:
    logger = logger or StructuredLogger()
    invoker = ToolInvoker(
        env=env or ContainerEnvironment.from_settings(settings),
        settings=settings,
        logger=logger,
    )
    return CommandDispatcher(invoker=invoker, settings=settings, logger=logger)


def run(
    argv: Sequence[str],
    *,
    settings: Settings | None = None,
    env: Environment | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    settings = settings or Settings.from_env()
    logger = StructuredLogger()

    try:
        parsed = parse_argv(argv)
    except RvError as exc:
        err.write(format_failure(exc))
        return int(exc.exit_code)

    if parsed.verbose:
        logger.echo = err
    dispatcher = make_dispatcher(settings, env=env, logger=logger)

    try:
        if parsed.command is None:
            InteractiveLoop(dispatcher, out=out, err=err).run()
            return 0
        outcome = dispatcher.dispatch(parsed.command, parsed.options)
    except RvError as exc:
        logger.log(
            operation="cli",
            command=parsed.command,
            stage="failure",
            message=str(exc),
            level="error",
            extra=exc.to_dict(),
        )
        out.write(failure_output(exc))
        err.write(format_failure(exc))
        return int(exc.exit_code)
    finally:
        if parsed.log_file:
            logger.to_json_lines(parsed.log_file)

    out.write(outcome.stdout)
    err.write(outcome.stderr)
    return outcome.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    try:
        return run(sys.argv[1:] if argv is None else argv)
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
