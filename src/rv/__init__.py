"""Public package entrypoint for the rv RISC-V cross-build front end."""

from .arch import ArchPreset, list_presets, resolve
from .baremetal import select as select_bare_metal_assets
from .config import VERSION, Settings
from .dispatch import COMMANDS, CommandDispatcher
from .environment import ContainerEnvironment, Environment
from .errors import (
    EnvironmentNotFound,
    ErrorCode,
    ExitCode,
    ExternalToolFailure,
    InvalidArchitecture,
    InvalidOption,
    IOFailure,
    MissingRequiredOption,
    RvError,
)
from .models import (
    BareMetalAssets,
    BinRequest,
    BuildRequest,
    DumpRequest,
    InvocationResult,
    Outcome,
    ResolvedArchitecture,
)
from .output_filter import filter_text
from .repl import InteractiveLoop
from .toolchain import ToolInvoker

__version__ = VERSION

__all__ = [
    "COMMANDS",
    "ArchPreset",
    "BareMetalAssets",
    "BinRequest",
    "BuildRequest",
    "CommandDispatcher",
    "ContainerEnvironment",
    "DumpRequest",
    "Environment",
    "EnvironmentNotFound",
    "ErrorCode",
    "ExitCode",
    "ExternalToolFailure",
    "IOFailure",
    "InteractiveLoop",
    "InvalidArchitecture",
    "InvalidOption",
    "InvocationResult",
    "MissingRequiredOption",
    "Outcome",
    "ResolvedArchitecture",
    "RvError",
    "Settings",
    "ToolInvoker",
    "filter_text",
    "list_presets",
    "resolve",
    "select_bare_metal_assets",
]
