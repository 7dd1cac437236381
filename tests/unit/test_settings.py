"""Tests for CLI environment settings."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from promptpack.settings import CLISettings


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run each test away from any local .env file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PROMPTPACK_CONFIG", raising=False)
    monkeypatch.delenv("PROMPTPACK_LOG_LEVEL", raising=False)


def test_defaults() -> None:
    settings = CLISettings()

    assert settings.config_path is None
    assert settings.log_level == "INFO"
    assert settings.log_level_number == logging.INFO


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROMPTPACK_CONFIG", "/etc/promptpack.yaml")
    monkeypatch.setenv("PROMPTPACK_LOG_LEVEL", "debug")

    settings = CLISettings()

    assert settings.config_path == Path("/etc/promptpack.yaml")
    assert settings.log_level == "DEBUG"
    assert settings.log_level_number == logging.DEBUG


def test_reads_dotenv_file(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("PROMPTPACK_LOG_LEVEL=warning\n")

    assert CLISettings().log_level == "WARNING"


def test_rejects_unknown_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROMPTPACK_LOG_LEVEL", "chatty")

    with pytest.raises(ValidationError):
        CLISettings()
