"""Pytest fixtures and utilities for afx tests."""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from afx.packages.models import Status


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def afx_env(temp_dir: Path, monkeypatch) -> Path:
    """Point HOME and every AFX_* location into a temporary directory."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("AFX_ROOT", str(home / ".afx"))
    monkeypatch.setenv("AFX_CONFIG_ROOT", str(home / ".config" / "afx"))
    monkeypatch.setenv("AFX_COMMAND_PATH", str(home / "bin"))
    for name in ("GITHUB_TOKEN", "AFX_SUDO_PASSWORD", "AFX_LOG", "AFX_LOG_PATH"):
        monkeypatch.delenv(name, raising=False)
    (home / ".config" / "afx").mkdir(parents=True)
    return home


@pytest.fixture
def config_dir(afx_env: Path) -> Path:
    return afx_env / ".config" / "afx"


@pytest.fixture
def runner():
    """Create a CliRunner for testing."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _keep_environ() -> Generator[None, None, None]:
    """Env.add exports into os.environ; undo it after every test."""
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


class StatusRecorder:
    """Collects status events the way the executor's queue would."""

    def __init__(self):
        self.events: list[Status] = []

    async def put(self, status: Status) -> None:
        self.events.append(status)


@pytest.fixture
def recorder() -> StatusRecorder:
    return StatusRecorder()

