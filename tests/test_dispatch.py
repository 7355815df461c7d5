from pathlib import Path
from typing import Any

import pytest
from fakes import FakeEnvironment

from rv.config import VERSION, Settings
from rv.dispatch import COMMANDS, CommandDispatcher, format_failure
from rv.errors import (
    EnvironmentNotFound,
    ExternalToolFailure,
    InvalidArchitecture,
    InvalidOption,
    MissingRequiredOption,
)
from rv.models import InvocationResult


class RecordingInvoker:
    """Stand-in for ToolInvoker that records every call it receives."""

    def __init__(self, env: FakeEnvironment) -> None:
        self.env = env
        self.calls: list[tuple[str, Any]] = []

    def build(self, request: Any) -> InvocationResult:
        self.calls.append(("build", request))
        return InvocationResult(command=("gcc",), returncode=0)

    def disassemble(self, request: Any) -> InvocationResult:
        self.calls.append(("disassemble", request))
        return InvocationResult(command=("objdump",), returncode=0)

    def flatten(self, request: Any) -> InvocationResult:
        self.calls.append(("flatten", request))
        return InvocationResult(command=("objcopy",), returncode=0)

    def shell(self) -> InvocationResult:
        self.calls.append(("shell", None))
        return InvocationResult(command=("/bin/bash",), returncode=0)

    def make(self, args: tuple[str, ...] = ()) -> InvocationResult:
        self.calls.append(("make", args))
        return InvocationResult(command=("make", *args), returncode=0)


@pytest.fixture
def recording(fake_env: FakeEnvironment) -> RecordingInvoker:
    return RecordingInvoker(fake_env)


def _dispatcher(invoker: RecordingInvoker, settings: Settings) -> CommandDispatcher:
    return CommandDispatcher(invoker=invoker, settings=settings)  # type: ignore[arg-type]


def test_command_table_is_closed() -> None:
    assert set(COMMANDS) == {"build", "dump", "bin", "archs", "version", "shell", "make", "build-image", "help"}


def test_build_without_arch_fails_before_any_invocation(
    recording: RecordingInvoker, settings: Settings
) -> None:
    dispatcher = _dispatcher(recording, settings)

    with pytest.raises(MissingRequiredOption):
        dispatcher.dispatch("build", {})
    with pytest.raises(MissingRequiredOption) as excinfo:
        dispatcher.dispatch("build", {"source": "examples/blink.c"})

    assert excinfo.value.context["option"] == "arch"
    assert recording.calls == []
    assert recording.env.runs == []


def test_build_without_arch_does_not_need_environment(
    recording: RecordingInvoker, settings: Settings
) -> None:
    recording.env.present = False
    dispatcher = _dispatcher(recording, settings)

    with pytest.raises(MissingRequiredOption):
        dispatcher.dispatch("build", {"source": "examples/blink.c"})


def test_invalid_architecture_is_reported_before_environment_check(
    recording: RecordingInvoker, settings: Settings
) -> None:
    recording.env.present = False
    dispatcher = _dispatcher(recording, settings)

    with pytest.raises(InvalidArchitecture):
        dispatcher.dispatch("build", {"source": "nosuch.c", "arch": "bogus"})

    assert recording.calls == []


@pytest.mark.parametrize(
    ("command", "options"),
    [
        ("build", {"source": "a.c", "arch": "32imac", "bogus": True}),
        ("build", {"source": "a.c", "arch": "32imac", "opt": "O9"}),
        ("build", {"source": "a.c", "arch": "32imac", "bare": "yes"}),
        ("build", {"source": "a.c", "arch": "32imac", "cflags": "-D'X"}),
        ("dump", {"artifact": "a.elf", "grep": 3}),
        ("archs", {"verbose": True}),
        ("frobnicate", {}),
    ],
)
def test_unknown_or_malformed_options_are_rejected(
    recording: RecordingInvoker,
    settings: Settings,
    command: str,
    options: dict[str, Any],
) -> None:
    dispatcher = _dispatcher(recording, settings)

    with pytest.raises(InvalidOption):
        dispatcher.dispatch(command, options)

    assert recording.calls == []


@pytest.mark.parametrize("command", ["dump", "bin"])
def test_artifact_commands_require_artifact(
    recording: RecordingInvoker, settings: Settings, command: str
) -> None:
    with pytest.raises(MissingRequiredOption):
        _dispatcher(recording, settings).dispatch(command, {})


@pytest.mark.parametrize(
    ("command", "options"),
    [
        ("build", {"source": "examples/blink.c", "arch": "32imac"}),
        ("dump", {"artifact": "build/blink.elf"}),
        ("bin", {"artifact": "build/blink.elf"}),
        ("shell", {}),
        ("make", {"args": ["verify"]}),
    ],
)
def test_environment_commands_fail_fast_without_image(
    recording: RecordingInvoker,
    settings: Settings,
    command: str,
    options: dict[str, Any],
) -> None:
    recording.env.present = False

    with pytest.raises(EnvironmentNotFound):
        _dispatcher(recording, settings).dispatch(command, options)

    assert recording.calls == []


@pytest.mark.parametrize("command", ["archs", "version", "help"])
def test_informational_commands_need_no_environment(
    recording: RecordingInvoker, settings: Settings, command: str
) -> None:
    recording.env.present = False

    outcome = _dispatcher(recording, settings).dispatch(command, {})

    assert outcome.exit_code == 0
    assert outcome.stdout
    assert recording.calls == []


def test_archs_lists_every_preset(dispatcher: CommandDispatcher) -> None:
    outcome = dispatcher.dispatch("archs", {})

    assert "32imac" in outcome.stdout
    assert "rv64imafdc" in outcome.stdout
    assert "lp64d" in outcome.stdout


def test_version_reports_components(dispatcher: CommandDispatcher, fake_env: FakeEnvironment) -> None:
    plain = dispatcher.dispatch("version", {})
    probed = dispatcher.dispatch("version", {"tools": True})

    assert f"rv {VERSION}" in plain.stdout
    assert "riscv-none-elf-gcc" in plain.stdout
    assert "riscv-none-elf-gcc (fake) 13.2.0" in probed.stdout
    assert len(fake_env.runs) == 3


def test_build_dump_bin_end_to_end(dispatcher: CommandDispatcher, settings: Settings) -> None:
    built = dispatcher.dispatch("build", {"source": "examples/blink.c", "arch": "32imac"})

    artifact = settings.workspace / "build" / "blink.elf"
    assert built.exit_code == 0
    assert built.result is not None
    assert built.result.artifact == artifact
    assert artifact.is_file()

    dumped = dispatcher.dispatch("dump", {"artifact": "build/blink.elf", "grep": "nop"})
    lines = dumped.stdout.splitlines()
    assert len(lines) == 2
    assert all("nop" in line for line in lines)

    flat = dispatcher.dispatch("bin", {"artifact": "build/blink.elf"})
    assert flat.result is not None
    assert flat.result.artifact == artifact.with_suffix(".bin")
    assert flat.result.artifact.is_file()


def test_custom_extension_build_flags(dispatcher: CommandDispatcher, fake_env: FakeEnvironment) -> None:
    dispatcher.dispatch(
        "build",
        {
            "source": "examples/blink.c",
            "arch": "32imc_zba_zbb",
            "output": "build/zba.elf",
            "opt": "O3",
            "cflags": "-DLED=5 -Wall",
        },
    )

    argv = fake_env.runs[0]
    assert argv[1:4] == ("-march=rv32imc_zba_zbb", "-mabi=ilp32", "-O3")
    assert argv[-5:] == ("-DLED=5", "-Wall", "examples/blink.c", "-o", "build/zba.elf")


def test_tool_failure_surfaces_stderr_and_status(
    dispatcher: CommandDispatcher, fake_env: FakeEnvironment
) -> None:
    fake_env.returncodes["riscv-none-elf-gcc"] = 7
    fake_env.stderr = "examples/blink.c:1:1: error: unknown type name 'itn'\n"

    with pytest.raises(ExternalToolFailure) as excinfo:
        dispatcher.dispatch("build", {"source": "examples/blink.c", "arch": "32imac"})

    error = excinfo.value
    assert error.exit_code == 7
    assert error.result is not None
    rendered = format_failure(error)
    assert rendered.startswith("examples/blink.c:1:1: error: unknown type name 'itn'\n")
    assert "E_EXTERNAL_TOOL" in rendered
    assert len(fake_env.runs) == 1


def test_build_image_only_when_absent(
    dispatcher: CommandDispatcher, fake_env: FakeEnvironment, settings: Settings
) -> None:
    already = dispatcher.dispatch("build-image", {})
    assert "already present" in already.stdout
    assert fake_env.images_built == []

    fake_env.present = False
    built = dispatcher.dispatch("build-image", {"context": "docker"})
    assert "built" in built.stdout
    assert fake_env.images_built == [Path("docker")]

    dispatcher.dispatch("build-image", {"force": True})
    assert fake_env.images_built[-1] == settings.workspace


def test_help_for_single_command(dispatcher: CommandDispatcher) -> None:
    outcome = dispatcher.dispatch("help", {"topic": "dump"})

    assert "dump <artifact>" in outcome.stdout
    assert "build <source>" not in outcome.stdout

    with pytest.raises(InvalidOption):
        dispatcher.dispatch("help", {"topic": "nope"})


def test_make_forwards_arguments_verbatim(dispatcher: CommandDispatcher, fake_env: FakeEnvironment) -> None:
    outcome = dispatcher.dispatch("make", {"args": ["-j4", "verify", "CFLAGS=-O2 -g"]})

    assert fake_env.runs == [("make", "-j4", "verify", "CFLAGS=-O2 -g")]
    assert outcome.stdout == "make: running -j4 verify CFLAGS=-O2 -g\n"


def test_make_without_arguments_runs_default_target(
    recording: RecordingInvoker, settings: Settings
) -> None:
    _dispatcher(recording, settings).dispatch("make", {})

    assert recording.calls == [("make", ())]


@pytest.mark.parametrize("args", ["clean", [1, 2], 3])
def test_make_rejects_malformed_argument_lists(
    recording: RecordingInvoker, settings: Settings, args: Any
) -> None:
    with pytest.raises(InvalidOption):
        _dispatcher(recording, settings).dispatch("make", {"args": args})

    assert recording.calls == []


def test_make_failure_keeps_status_and_stdout(dispatcher: CommandDispatcher, fake_env: FakeEnvironment) -> None:
    fake_env.returncodes["make"] = 2
    fake_env.stderr = "make: *** No rule to make target 'flash'.  Stop.\n"

    with pytest.raises(ExternalToolFailure) as excinfo:
        dispatcher.dispatch("make", {"args": ["flash"]})

    assert excinfo.value.exit_code == 1
    assert format_failure(excinfo.value).startswith("make: *** No rule to make target 'flash'.  Stop.\n")
