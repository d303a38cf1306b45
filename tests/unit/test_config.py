"""Unit tests — Settings.load, get_settings, override_settings."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from execvars.config import Settings, get_settings, override_settings


@pytest.mark.unit
class TestSettingsLoad:
    def test_defaults_when_no_files(self) -> None:
        with patch.object(Path, "exists", return_value=False):
            settings = Settings.load()
        assert settings.exec.timeout_seconds == 0
        assert settings.exec.chunk_size == 8192
        assert settings.exec.shell == "/bin/sh"
        assert settings.bounded is False

    def test_load_from_custom_config_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("exec:\n  timeout_seconds: 5\nlogging:\n  format: json\n")

        settings = Settings.load(config_file=config_file)
        assert settings.exec.timeout_seconds == 5
        assert settings.logging.format == "json"
        assert settings.bounded is True

    def test_empty_config_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        settings = Settings.load(config_file=config_file)
        assert isinstance(settings, Settings)

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXECVARS_EXEC__TIMEOUT_SECONDS", "7")
        monkeypatch.setenv("EXECVARS_VARSERVER__SOCKET_PATH", "/tmp/other.sock")
        with patch.object(Path, "exists", return_value=False):
            settings = Settings.load()
        assert settings.exec.timeout_seconds == 7
        assert settings.varserver.socket_path == Path("/tmp/other.sock")

    def test_negative_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(exec={"timeout_seconds": -1})


@pytest.mark.unit
class TestGetSettings:
    def test_get_settings_returns_singleton(self) -> None:
        import execvars.config as cfg_module

        original = cfg_module._settings
        try:
            cfg_module._settings = None
            with patch.object(Path, "exists", return_value=False):
                first = get_settings()
            assert get_settings() is first
        finally:
            cfg_module._settings = original

    def test_override_settings(self, test_settings: Settings) -> None:
        assert get_settings() is test_settings
        replacement = Settings(exec={"timeout_seconds": 3})
        override_settings(replacement)
        assert get_settings() is replacement
