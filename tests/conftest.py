"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeEnvironment

from rv.cli import make_dispatcher
from rv.config import Settings
from rv.dispatch import CommandDispatcher


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "work"
    (root / "examples").mkdir(parents=True)
    (root / "examples" / "blink.c").write_text("int main(void) { return 0; }\n", encoding="utf-8")
    return root


@pytest.fixture
def settings(workspace: Path) -> Settings:
    return Settings(image="riscv-toolchain:test", workspace=workspace)


@pytest.fixture
def fake_env(workspace: Path) -> FakeEnvironment:
    return FakeEnvironment(workspace=workspace)


@pytest.fixture
def dispatcher(settings: Settings, fake_env: FakeEnvironment) -> CommandDispatcher:
    return make_dispatcher(settings, env=fake_env)
