"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from termrelay.config.settings import (
    ServerConfig,
    Settings,
    SshConfig,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run each test from an empty directory with the deployment variables blank."""
    monkeypatch.chdir(tmp_path)
    for name in ("PORT", "FRONTEND_ORIGIN", "SSH_READY_TIMEOUT"):
        monkeypatch.setenv(name, "")


class TestSettings:
    def test_default_settings(self) -> None:
        """Default Settings should be valid."""
        settings = Settings()
        assert settings.server.port == 4000
        assert settings.server.path == "/terminal"
        assert settings.server.allowed_origin is None
        assert settings.ssh.ready_timeout == 20.0
        assert settings.ssh.term == "xterm-color"
        assert settings.logging.level == "INFO"

    def test_invalid_port_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ServerConfig(port=0)

    def test_ready_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SshConfig(ready_timeout=0)

    def test_prefixed_nested_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TERMRELAY_SERVER__PATH", "/ws")
        assert Settings().server.path == "/ws"


class TestLoadSettings:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.server.port == 4000

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "termrelay.yaml"
        path.write_text(
            "server:\n"
            "  port: 5000\n"
            "  allowed_origin: http://localhost:5173\n"
            "ssh:\n"
            "  term: xterm-256color\n"
            "logging:\n"
            "  level: DEBUG\n"
        )
        settings = load_settings(path)
        assert settings.server.port == 5000
        assert settings.server.allowed_origin == "http://localhost:5173"
        assert settings.ssh.term == "xterm-256color"
        assert settings.logging.level == "DEBUG"

    def test_empty_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path).server.port == 4000

    def test_deployment_env_overrides_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "termrelay.yaml"
        path.write_text("server:\n  port: 5000\n  path: /term\n")
        monkeypatch.setenv("PORT", "8081")
        monkeypatch.setenv("FRONTEND_ORIGIN", "https://app.example.com")
        monkeypatch.setenv("SSH_READY_TIMEOUT", "5000")

        settings = load_settings(path)
        assert settings.server.port == 8081
        assert settings.server.path == "/term"
        assert settings.server.allowed_origin == "https://app.example.com"
        assert settings.ssh.ready_timeout == 5.0

    def test_dotenv_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text("# relay\nPORT=9000\n")
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.server.port == 9000
