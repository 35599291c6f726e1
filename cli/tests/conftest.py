from __future__ import annotations

import subprocess

import pytest

from humhub_provision.errors import CommandError
from humhub_provision.runner import CommandRunner


class FakeRunner(CommandRunner):
    """Records argv lists; answers from a table keyed by the argv tuple."""

    def __init__(self, responses=None, binaries=()) -> None:
        self.responses: dict[tuple[str, ...], tuple[int, str]] = dict(responses or {})
        self.binaries = set(binaries)
        self.calls: list[list[str]] = []

    def run(self, argv, *, check=True, input=None, env=None):
        self.calls.append(list(argv))
        returncode, stdout = self.responses.get(tuple(argv), (0, ""))
        if check and returncode != 0:
            raise CommandError(argv, returncode, "boom")
        return subprocess.CompletedProcess(argv, returncode, stdout, "")

    def exists(self, name: str) -> bool:
        return name in self.binaries

    def called(self, *argv: str) -> bool:
        return list(argv) in self.calls


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    from rich.console import Console

    from humhub_cli import console

    monkeypatch.setattr(console, "console", Console(width=200))


@pytest.fixture
def settings_dir(tmp_path, monkeypatch):
    from humhub_cli import config

    path = tmp_path / "settings"
    monkeypatch.setattr(config, "user_config_dir", lambda _: str(path))
    monkeypatch.delenv(config.ENV_REPO_BASE, raising=False)
    return path
