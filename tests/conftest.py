"""Shared test fixtures."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

import common
from dependency import prefix_registry
from errors import CommandFailed
from platform_quirk import build_environment, host_info


class FakeRunner:
    """Records every command instead of spawning it."""

    def __init__(self, fail_on: str | None = None, returncode: int = 2, events: list[str] | None = None) -> None:
        self.fail_on = fail_on
        self.returncode = returncode
        self.commands: list[str] = []
        self.calls: list[dict] = []
        self.events = events if events is not None else []

    def __call__(self, command: str, ignore_error: bool = False, cwd: str | None = None, env=None):
        self.commands.append(command)
        self.calls.append({"command": command, "ignore_error": ignore_error, "cwd": cwd, "env": env})
        self.events.append(command)
        if self.fail_on is not None and command.startswith(self.fail_on):
            if ignore_error:
                return None
            raise CommandFailed(command, self.returncode)
        return subprocess.CompletedProcess(command, 0)


@pytest.fixture(autouse=True)
def reset_dry_run():
    common.command_dry_run.set(False)
    yield
    common.command_dry_run.set(False)


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "gcc"
    path.mkdir()
    return path


@pytest.fixture
def registry_root(tmp_path: Path) -> Path:
    root = tmp_path / "brew"
    for name in ("gmp", "mpfr", "libmpc"):
        (root / "opt" / name).mkdir(parents=True)
    return root


@pytest.fixture
def registry(registry_root: Path) -> prefix_registry:
    return prefix_registry(str(registry_root))


@pytest.fixture
def host() -> host_info:
    return host_info(prefer_64_bit=True, clt_installed=True, compiler="gcc")


@pytest.fixture
def base_env() -> build_environment:
    return build_environment({"PATH": "/usr/bin:/bin", "LD": "/usr/bin/ld.gold", "CXXFLAGS": "-O2"})


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()
