"""Build manifest sidecars and canonical build keys."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import cbor2

from rv.models import BuildRequest

MANIFEST_SUFFIX = ".json"


def build_key(request: BuildRequest) -> str:
    """Digest of the semantic build inputs; equal for equivalent architecture tokens."""
    encoded = cbor2.dumps(_key_payload(request), canonical=True)
    return hashlib.sha256(encoded).hexdigest()


def _key_payload(request: BuildRequest) -> dict[str, Any]:
    return {
        "source": request.source.as_posix(),
        "isa": request.arch.isa,
        "abi": request.arch.abi,
        "opt_level": request.opt_level,
        "bare_metal": request.bare_metal,
        "extra_flags": list(request.extra_flags),
    }


@dataclass(frozen=True, slots=True)
class BuildManifest:
    artifact: Path
    key: str
    payload: dict[str, Any]

    @property
    def path(self) -> Path:
        return self.artifact.with_name(self.artifact.name + MANIFEST_SUFFIX)


def write_manifest(request: BuildRequest, artifact: Path, command: tuple[str, ...]) -> BuildManifest:
    key = build_key(request)
    payload = {
        **_key_payload(request),
        "build_key": key,
        "artifact": request.output_path.as_posix(),
        "command": list(command),
    }
    manifest = BuildManifest(artifact=artifact, key=key, payload=payload)
    manifest.path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return manifest
