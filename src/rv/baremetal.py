"""Bare-metal linker script and startup code selection by word width."""

from __future__ import annotations

from pathlib import Path

from rv.config import GUEST_ASSETS
from rv.models import BareMetalAssets

ASSETS_DIR = Path(__file__).resolve().parent / "assets"

# RV64 RAM sits at 0x80000000, outside the +/-2 GiB reach of medlow.
BARE_METAL_ASSETS: dict[int, BareMetalAssets] = {
    32: BareMetalAssets(linker_script="link32.ld", startup_code="crt0_32.S"),
    64: BareMetalAssets(linker_script="link64.ld", startup_code="crt0_64.S", code_model="medany"),
}

# Linked in place of the assets when a build keeps the C library.
HOSTED_LINK_FLAGS: tuple[str, ...] = ("--specs=nosys.specs",)


def select(width: int) -> BareMetalAssets:
    return BARE_METAL_ASSETS[width]


def link_flags(assets: BareMetalAssets, *, guest_root: str = GUEST_ASSETS) -> tuple[str, ...]:
    """Flags that drop libc and link *assets* as seen inside the container.

    libgcc stays on the link line so integer and soft-float helpers resolve.
    """
    code_model = (f"-mcmodel={assets.code_model}",) if assets.code_model else ()
    return (
        *code_model,
        "-nolibc",
        "-nostartfiles",
        "-T",
        f"{guest_root}/{assets.linker_script}",
        f"{guest_root}/{assets.startup_code}",
    )
