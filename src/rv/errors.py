"""Typed error model with stable, machine-readable error codes and exit statuses."""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum, StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rv.models import InvocationResult


class ErrorCode(StrEnum):
    """Stable error identifiers used across the CLI and the interactive loop."""

    INVALID_ARCH = "E_INVALID_ARCH"
    MISSING_OPTION = "E_MISSING_OPTION"
    INVALID_OPTION = "E_INVALID_OPTION"
    ENVIRONMENT = "E_ENVIRONMENT"
    EXTERNAL_TOOL = "E_EXTERNAL_TOOL"
    IO = "E_IO"


class ExitCode(IntEnum):
    """Process exit statuses for one-shot invocations."""

    OK = 0
    TOOL_FAILURE = 1
    USAGE = 2
    INVALID_ARCH = 3
    IO = 4
    ENVIRONMENT = 5


# Exit statuses owned by rv failure categories; tools exiting with one map to TOOL_FAILURE.
RESERVED_EXIT_CODES = frozenset(code.value for code in ExitCode if code > ExitCode.TOOL_FAILURE)


class RvError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]
    exit_code: int = ExitCode.USAGE

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
            "exit_code": int(self.exit_code),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class InvalidArchitecture(RvError):
    exit_code = ExitCode.INVALID_ARCH

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_ARCH, hint=hint, context=context)


class MissingRequiredOption(RvError):
    exit_code = ExitCode.USAGE

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_OPTION, hint=hint, context=context)


class InvalidOption(RvError):
    exit_code = ExitCode.USAGE

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_OPTION, hint=hint, context=context)


class EnvironmentNotFound(RvError):
    exit_code = ExitCode.ENVIRONMENT

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ENVIRONMENT, hint=hint, context=context)


class ExternalToolFailure(RvError):
    """A toolchain stage exited non-zero; ``result`` holds its captured streams."""

    exit_code = ExitCode.TOOL_FAILURE

    def __init__(
        self,
        message: str,
        *,
        result: InvocationResult | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.EXTERNAL_TOOL, hint=hint, context=context)
        self.result = result
        if result is not None and result.returncode > 0 and result.returncode not in RESERVED_EXIT_CODES:
            self.exit_code = result.returncode


class IOFailure(RvError):
    exit_code = ExitCode.IO

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.IO, hint=hint, context=context)


__all__ = [
    "EnvironmentNotFound",
    "ErrorCode",
    "ExitCode",
    "ExternalToolFailure",
    "IOFailure",
    "InvalidArchitecture",
    "InvalidOption",
    "MissingRequiredOption",
    "RESERVED_EXIT_CODES",
    "RvError",
]
