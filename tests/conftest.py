"""Pytest configuration and fixtures for Tollgate tests."""

import pytest
from pathlib import Path

from tollgate.config import Settings
from tollgate.tools.base import ToolContext
from tollgate.tools.scope import PathScope


@pytest.fixture
def workspace(tmp_path):
    """Working directory for file tools, isolated per test."""
    work = tmp_path / "work"
    work.mkdir()
    return work


@pytest.fixture
def test_settings(workspace, monkeypatch):
    """Settings rooted at the test workspace, ignoring any local .env."""
    monkeypatch.setattr("tollgate.config.Settings.model_config", {
        **Settings.model_config,
        "env_file": None,
    })
    return Settings(
        working_dir=workspace,
        tollgate_log_level="DEBUG",
        shell_timeout=10,
    )


@pytest.fixture
def scope(workspace):
    """Scope holding only the test workspace."""
    return PathScope(workspace)


@pytest.fixture
def context(test_settings, scope):
    """Tool context for calling tools directly."""
    return ToolContext(settings=test_settings, scope=scope)


@pytest.fixture
def sample_file(workspace) -> Path:
    """A small Python file inside the workspace."""
    path = workspace / "app.py"
    path.write_text(
        "def greet(name):\n"
        "    message = 'Hello, ' + name\n"
        "    return message\n"
    )
    return path
