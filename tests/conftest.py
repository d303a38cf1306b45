"""Shared pytest fixtures for the execvars test suite."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from execvars.config import Settings, override_settings
from execvars.executor import CommandExecutor
from execvars.registry import CommandRegistry
from execvars.varserver.local import LocalVarServer


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    settings = Settings(
        varserver={"socket_path": str(tmp_path / "execvars.sock")},
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Core components
# ---------------------------------------------------------------------------


@pytest.fixture
def executor() -> CommandExecutor:
    return CommandExecutor()


@pytest.fixture
def registry() -> CommandRegistry:
    return CommandRegistry()


@pytest.fixture
async def varserver() -> LocalVarServer:
    server = LocalVarServer(["/sys/info/uptime", "/sys/test/echo", "/sys/test/slow"])
    await server.open()
    yield server
    await server.close()


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


@pytest.fixture
def short_tmp() -> Generator[Path, None, None]:
    """A short temporary directory — Unix socket paths are limited to ~100 bytes."""
    path = Path(tempfile.mkdtemp(prefix="ev"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def command_file(tmp_path: Path) -> Path:
    f = tmp_path / "commands.json"
    f.write_text(
        '{"commands": ['
        '{"var": "/sys/info/uptime", "exec": "uptime"},'
        '{"var": "/sys/test/echo", "exec": "echo hello"}'
        "]}",
        encoding="utf-8",
    )
    return f
