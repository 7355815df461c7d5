from pathlib import Path

from rv.arch import resolve
from rv.manifest import build_key, write_manifest
from rv.models import BuildRequest


def _request(token: str, **overrides) -> BuildRequest:
    return BuildRequest(source=Path("examples/blink.c"), arch=resolve(token), **overrides)


def test_equivalent_architecture_tokens_share_a_key() -> None:
    assert build_key(_request("32aimc")) == build_key(_request("32imac"))
    assert build_key(_request("rv64imafdc")) == build_key(_request("64imafdc"))


def test_key_changes_with_build_inputs() -> None:
    base = build_key(_request("32imac"))

    assert build_key(_request("32imac", extra_flags=("-DLED=5",))) != base
    assert build_key(_request("32imac", opt_level="Os")) != base
    assert build_key(_request("32imac", bare_metal=True)) != base
    assert build_key(_request("64imac")) != base


def test_output_location_does_not_affect_key() -> None:
    assert build_key(_request("32imac", output=Path("out/a.elf"))) == build_key(_request("32imac"))


def test_write_manifest_next_to_artifact(tmp_path: Path) -> None:
    artifact = tmp_path / "blink.elf"
    artifact.write_bytes(b"\x7fELF")
    request = _request("32imc_zba_zbb")

    manifest = write_manifest(request, artifact, ("riscv-none-elf-gcc", "-march=rv32imc_zba_zbb"))

    assert manifest.path == tmp_path / "blink.elf.json"
    assert manifest.payload["isa"] == "rv32imc_zba_zbb"
    assert manifest.payload["build_key"] == manifest.key == build_key(request)
    assert manifest.path.read_text(encoding="utf-8").endswith("}\n")
