"""Configuration loading (JSON or YAML)."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

import pandas as pd
import yaml

from roster.errors import ConfigError


LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class RosterConfig:
    """Runtime settings for the availability engine and CLI."""

    db_url: str = "sqlite:///roster.db"
    echo_sql: bool = False
    timezone: str = "America/Sao_Paulo"
    default_days_before_next_month: int = 10
    max_commit_retries: int = 3
    lock_timeout_seconds: float = 5.0
    log_level: str = "INFO"

    def validate(self) -> None:
        """
        Check field values.

        Raises:
            ConfigError: If any value is out of range
        """
        if self.default_days_before_next_month < 1:
            raise ConfigError(
                f"default_days_before_next_month must be >= 1, got {self.default_days_before_next_month}"
            )
        if self.max_commit_retries < 1:
            raise ConfigError(f"max_commit_retries must be >= 1, got {self.max_commit_retries}")
        if self.lock_timeout_seconds <= 0:
            raise ConfigError(f"lock_timeout_seconds must be > 0, got {self.lock_timeout_seconds}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Unknown log_level: {self.log_level}")
        try:
            pd.Timestamp("2000-01-01").tz_localize(self.timezone)
        except Exception as e:
            raise ConfigError(f"Unknown timezone: {self.timezone}") from e


def _read_raw(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    elif path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        raise ConfigError(f"Unsupported config format: {path.suffix or path.name}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def load_config(path: str | Path | None = None) -> RosterConfig:
    """
    Load configuration from a YAML or JSON file.

    Args:
        path: Config file path, or None for defaults

    Returns:
        Validated RosterConfig

    Raises:
        ConfigError: If the file is missing, unreadable or holds invalid values
    """
    if path is None:
        cfg = RosterConfig()
        cfg.validate()
        return cfg

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = _read_raw(path)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e

    known = {f.name: f for f in fields(RosterConfig)}
    kwargs: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            continue  # unknown keys are ignored
        default = getattr(RosterConfig, key)
        try:
            if isinstance(default, bool):
                kwargs[key] = value if isinstance(value, bool) else str(value).lower() in ("1", "true", "yes")
            elif isinstance(default, int):
                kwargs[key] = int(value)
            elif isinstance(default, float):
                kwargs[key] = float(value)
            else:
                kwargs[key] = str(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {key}: {value!r}") from e

    cfg = RosterConfig(**kwargs)
    cfg.validate()
    return cfg
