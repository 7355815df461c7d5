"""Interactive command loop."""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TextIO

from rv.commandline import parse_argv, tokenize
from rv.dispatch import CommandDispatcher, failure_output, format_failure
from rv.errors import InvalidOption, RvError

PROMPT = "rv> "
EXIT_DIRECTIVES = frozenset({"exit", "quit"})


@dataclass(slots=True)
class InteractiveLoop:
    """Read a line, dispatch it like a one-shot invocation, repeat.

    A failing line is reported and the session keeps going; only an exit
    directive or end of input ends it.
    """

    dispatcher: CommandDispatcher
    reader: Callable[[str], str] = input
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err: TextIO = field(default_factory=lambda: sys.stderr)
    failures: int = 0

    def run(self) -> int:
        self.out.write("rv interactive session. Type 'help' for commands, 'exit' to quit.\n")
        while True:
            try:
                line = self.reader(PROMPT)
            except EOFError:
                self.out.write("\n")
                break
            stripped = line.strip()
            if not stripped:
                continue
            if stripped in EXIT_DIRECTIVES:
                break
            self.run_line(line)
        return self.failures

    def run_line(self, line: str) -> bool:
        try:
            parsed = parse_argv(tokenize(line))
            if parsed.verbose or parsed.log_file is not None:
                raise InvalidOption(
                    "-v and --log-file apply to the whole session, not to a single line.",
                    hint="Start the session with `rv -v` or `rv --log-file PATH`.",
                )
            if parsed.command is None:
                return True
            outcome = self.dispatcher.dispatch(parsed.command, parsed.options)
        except RvError as exc:
            self.failures += 1
            self.dispatcher.logger.log(
                operation="repl",
                command=None,
                stage="line",
                message=str(exc),
                level="error",
                extra={"code": exc.code, "line": line},
            )
            self.out.write(failure_output(exc))
            self.err.write(format_failure(exc))
            return False
        self.out.write(outcome.stdout)
        self.err.write(outcome.stderr)
        return outcome.exit_code == 0
