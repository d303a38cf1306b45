"""execvars — Daemon configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. Environment variables prefixed with EXECVARS_
    3. System config: /etc/execvars/config.yaml
    4. User config:   ~/.execvars/config.yaml
    5. An explicit config file passed with ``--config``

The command definitions themselves (``{"commands": [...]}``) live in a
separate JSON file given with ``-f``; see ``execvars.loader``.

Call ``Settings.load()`` once at daemon startup and pass the instance down.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class ExecConfig(BaseModel):
    timeout_seconds: Annotated[int, Field(ge=0, le=86_400)] = Field(
        default=0,
        description=(
            "Hard time budget for one command, in seconds. "
            "0 runs commands without a deadline."
        ),
    )
    chunk_size: Annotated[int, Field(ge=512, le=1_048_576)] = Field(
        default=8192,
        description="Bytes read from the command output per chunk.",
    )
    shell: str = Field(
        default="/bin/sh",
        description="Shell used to run command strings (invoked as '<shell> -c <command>').",
    )


class VarServerConfig(BaseModel):
    socket_path: Path = Field(
        default=Path("/tmp/execvars.sock"),
        description="Unix socket on which read requests are accepted.",
    )
    backlog: Annotated[int, Field(ge=1, le=1024)] = 16


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EXECVARS_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    exec: ExecConfig = Field(default_factory=ExecConfig)
    varserver: VarServerConfig = Field(default_factory=VarServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from YAML files + environment variables."""
        data: dict[str, object] = {}

        candidates = [
            Path("/etc/execvars/config.yaml"),
            Path.home() / ".execvars" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml  # lazy import: only needed when a file exists

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        return cls(**data)

    @property
    def bounded(self) -> bool:
        return self.exec.timeout_seconds > 0


# Module-level singleton, replaced by ``Settings.load()`` at daemon startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
