"""Configuration management for the PartnerHub service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service and the CLI."""

    database_path: Path
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    @staticmethod
    def from_dict(
        data: Mapping[str, object],
        base_path: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "Settings":
        """Create :class:`Settings` from raw YAML data and environment overrides."""

        env = os.environ if env is None else env
        database_raw = data.get("database") or {}
        server_raw = data.get("server") or {}
        logging_raw = data.get("logging") or {}
        for section, value in (("database", database_raw), ("server", server_raw), ("logging", logging_raw)):
            if not isinstance(value, dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping")

        raw_db_path: Optional[str] = env.get("PARTNERHUB_DB_PATH")
        if not raw_db_path and database_raw.get("path"):
            configured = Path(str(database_raw["path"])).expanduser()
            if base_path is not None and not configured.is_absolute():
                configured = base_path / configured
            raw_db_path = str(configured)
        database_path = resolve_database_path(raw_db_path)

        try:
            port = int(server_raw.get("port", 8000))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid port value {server_raw.get('port')!r}") from exc
        if not 1 <= port <= 65535:
            raise ValueError(f"Port {port} is out of range")

        log_level = str(env.get("PARTNERHUB_LOG_LEVEL") or logging_raw.get("level", "INFO")).upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level {log_level!r}")

        return Settings(
            database_path=database_path,
            host=str(server_raw.get("host", "127.0.0.1")),
            port=port,
            log_level=log_level,
        )


def load_settings(config_path: Optional[Path] = None, env: Mapping[str, str] | None = None) -> Settings:
    """Load settings from a YAML file, falling back to defaults when it is absent."""

    env = os.environ if env is None else env
    path = config_path or resolve_config_path(env.get("PARTNERHUB_CONFIG"))
    raw: Dict[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
    return Settings.from_dict(raw, base_path=path.parent, env=env)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "partnerhub.yaml").resolve(strict=False)
    return candidate


__all__ = ["Settings", "load_settings", "resolve_config_path"]
