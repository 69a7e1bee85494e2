"""Configuration management for termrelay.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files and the un-prefixed variables used by
existing deployments (PORT, FRONTEND_ORIGIN, SSH_READY_TIMEOUT).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/termrelay.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4000, ge=1, le=65535)
    path: str = Field(default="/terminal", description="WebSocket route for terminal sessions")
    allowed_origin: str | None = Field(
        default=None, description="Browser origin allowed to connect; None allows any"
    )


class SshConfig(BaseModel):
    ready_timeout: float = Field(default=20.0, gt=0, description="Seconds allowed for connect + auth")
    term: str = Field(default="xterm-color")
    keepalive_interval: int = Field(default=30, ge=0)
    look_for_keys: bool = Field(default=False)
    allow_agent: bool = Field(default=False)
    auto_add_host_keys: bool = Field(default=True)
    known_hosts_file: str | None = Field(default=None)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the termrelay server.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "TERMRELAY_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    ssh: SshConfig = Field(default_factory=SshConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Build ``Settings`` for the relay.

    Sections present in the YAML file take precedence over ``TERMRELAY_*``
    variables for that section. PORT, FRONTEND_ORIGIN and SSH_READY_TIMEOUT
    (from the environment or .env) override both.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data: dict = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv(env_path: Path = Path(".env")) -> None:
    """Copy KEY=VALUE pairs from a .env file into os.environ.

    Variables already set to a non-empty value win over the file.
    """
    if not env_path.exists():
        return
    for raw in env_path.read_text().splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):]
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip().strip("\"'")
        if not os.environ.get(key):
            os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    port = os.environ.get("PORT", "")
    origin = os.environ.get("FRONTEND_ORIGIN", "")
    ready_timeout_ms = os.environ.get("SSH_READY_TIMEOUT", "")

    if port:
        yaml_data.setdefault("server", {})["port"] = int(port)
    if origin:
        yaml_data.setdefault("server", {})["allowed_origin"] = origin
    if ready_timeout_ms:
        yaml_data.setdefault("ssh", {})["ready_timeout"] = float(ready_timeout_ms) / 1000.0
