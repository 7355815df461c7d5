"""Architecture token resolution.

A token is either a curated preset name (``32imac``) or a free-form
``<width><letters>[_<ext>]*`` descriptor (``32imc_zba_zbb``).  Letters are
normalized into canonical extension order so that semantically identical
tokens produce byte-identical ``-march`` strings, and the ABI is inferred
from the width and the floating-point extensions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from rv.errors import InvalidArchitecture
from rv.models import ResolvedArchitecture, Width

# Canonical single-letter order accepted after the width.
CANONICAL_LETTERS = "imafdqcbv"
BASE_LETTER = "i"

_TOKEN_RE = re.compile(r"^(?:rv)?(?P<width>\d+)(?P<letters>[a-z]*)(?P<suffix>(?:_.*)?)$")
_EXTENSION_RE = re.compile(r"^[a-z][a-z0-9]*$")

BASE_ABI: dict[int, str] = {32: "ilp32", 64: "lp64"}


@dataclass(frozen=True, slots=True)
class ArchPreset:
    name: str
    isa: str
    abi: str
    description: str

    @property
    def width(self) -> Width:
        return 64 if self.isa.startswith("rv64") else 32


PRESETS: tuple[ArchPreset, ...] = (
    ArchPreset("32i", "rv32i", "ilp32", "RV32 base integer only"),
    ArchPreset("32im", "rv32im", "ilp32", "RV32 + multiply/divide"),
    ArchPreset("32imc", "rv32imc", "ilp32", "RV32 + multiply + compressed"),
    ArchPreset("32ima", "rv32ima", "ilp32", "RV32 + multiply + atomics"),
    ArchPreset("32imac", "rv32imac", "ilp32", "RV32 microcontroller default"),
    ArchPreset("32imafc", "rv32imafc", "ilp32f", "RV32 + single-precision float"),
    ArchPreset("32imafdc", "rv32imafdc", "ilp32d", "RV32 + single and double float"),
    ArchPreset("64i", "rv64i", "lp64", "RV64 base integer only"),
    ArchPreset("64im", "rv64im", "lp64", "RV64 + multiply/divide"),
    ArchPreset("64imc", "rv64imc", "lp64", "RV64 + multiply + compressed"),
    ArchPreset("64imac", "rv64imac", "lp64", "RV64 integer application core"),
    ArchPreset("64imafc", "rv64imafc", "lp64f", "RV64 + single-precision float"),
    ArchPreset("64imafdc", "rv64imafdc", "lp64d", "RV64 general purpose (GC)"),
)

_PRESETS_BY_NAME: dict[str, ArchPreset] = {preset.name: preset for preset in PRESETS}


def list_presets() -> tuple[ArchPreset, ...]:
    return PRESETS


def resolve(token: str) -> ResolvedArchitecture:
    """Resolve *token* into a canonical instruction set, ABI and word width."""
    if not isinstance(token, str) or not token.strip():
        raise _invalid(token, "Architecture token is empty.")
    token = token.strip()

    preset = _PRESETS_BY_NAME.get(token)
    if preset is not None:
        return ResolvedArchitecture(isa=preset.isa, abi=preset.abi, width=preset.width)

    match = _TOKEN_RE.match(token)
    if match is None:
        raise _invalid(token, "Architecture token is not of the form <width><letters>[_<ext>]*.")

    width = int(match.group("width"))
    if width not in BASE_ABI:
        raise _invalid(token, f"Unsupported word width {width}; expected 32 or 64.")

    letters = normalize_letters(token, match.group("letters"))
    extensions = _parse_extensions(token, match.group("suffix"))

    isa = f"rv{width}{letters}" + "".join(f"_{ext}" for ext in extensions)
    return ResolvedArchitecture(
        isa=isa,
        abi=infer_abi(width, letters),
        width=64 if width == 64 else 32,
        extensions=extensions,
    )


def normalize_letters(token: str, letters: str) -> str:
    """Return *letters* deduplicated and in canonical extension order."""
    if not letters:
        raise _invalid(token, "Architecture token has no base instruction set letters.")
    unknown = sorted({letter for letter in letters if letter not in CANONICAL_LETTERS})
    if unknown:
        raise _invalid(
            token,
            f"Unsupported extension letter(s): {', '.join(unknown)}.",
            hint=(
                f"Single-letter extensions must be drawn from '{CANONICAL_LETTERS}'; "
                "add multi-letter extensions as underscore suffixes, e.g. 32imc_zba_zbb."
            ),
        )
    if BASE_LETTER not in letters:
        raise _invalid(token, "Architecture token is missing the base integer set 'i'.")
    present = set(letters)
    return "".join(letter for letter in CANONICAL_LETTERS if letter in present)


def infer_abi(width: int, letters: str) -> str:
    """Pick the ABI that matches the float extensions in *letters*."""
    abi = BASE_ABI[width]
    if "d" in letters or "q" in letters:
        return f"{abi}d"
    if "f" in letters:
        return f"{abi}f"
    return abi


def _parse_extensions(token: str, suffix: str) -> tuple[str, ...]:
    if not suffix:
        return ()
    extensions = tuple(suffix[1:].split("_"))
    for ext in extensions:
        if not _EXTENSION_RE.match(ext):
            raise _invalid(token, f"Invalid extension suffix {ext!r}.")
    return extensions


def _invalid(token: object, message: str, *, hint: str | None = None) -> InvalidArchitecture:
    return InvalidArchitecture(
        message,
        hint=hint or f"Use a preset ({', '.join(p.name for p in PRESETS)}) or a form like 32imc_zba_zbb.",
        context={"token": str(token)},
    )
