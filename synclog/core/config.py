"""Configuration for synclog."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = "~/.synclog/db/synclog.db"
_DEFAULT_CONFIG_PATH = "~/.synclog/config.yaml"

ATTRIBUTION_MODES = ("heuristic", "tagged")

# Keys accepted by set_config, with the type each is stored as
_KEY_TYPES = {
    "db_path": str,
    "user_id": str,
    "run_limit": int,
    "attribution": str,
    "max_workers": int,
}


def config_path(path: Optional[str] = None) -> Path:
    return Path(path or os.getenv("SYNCLOG_CONFIG", _DEFAULT_CONFIG_PATH)).expanduser()


@dataclass
class Config:
    # Database
    db_path: str = _DEFAULT_DB_PATH

    # Owner of the event log when none is given explicitly
    user_id: str = "local"

    # Run list
    run_limit: int = 50

    # Source attribution for URL outcomes: "heuristic" | "tagged"
    attribution: str = "heuristic"

    # Window fetch pool for the run browser
    max_workers: int = 2

    @classmethod
    def load(cls, path: Optional[str] = None) -> Config:
        """Load config from YAML file, falling back to defaults."""
        cfg_path = config_path(path)

        data: dict = {}
        if cfg_path.exists():
            try:
                with open(cfg_path) as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                data = {}
            if not isinstance(data, dict):
                logger.warning(f"Ignoring config {cfg_path}: not a mapping")
                data = {}

        cfg = cls()

        if "db_path" in data:
            cfg.db_path = str(data["db_path"])
        if "user_id" in data and data["user_id"]:
            cfg.user_id = str(data["user_id"])
        if "run_limit" in data:
            cfg.run_limit = _as_int(data["run_limit"], cfg.run_limit)
        if "attribution" in data:
            mode = str(data["attribution"]).strip().lower()
            if mode in ATTRIBUTION_MODES:
                cfg.attribution = mode
            else:
                logger.warning(f"Unknown attribution mode '{mode}', using '{cfg.attribution}'")
        if "max_workers" in data:
            cfg.max_workers = max(1, _as_int(data["max_workers"], cfg.max_workers))

        # Environment overrides
        if env_db := os.getenv("SYNCLOG_DB_PATH"):
            cfg.db_path = env_db
        if env_user := os.getenv("SYNCLOG_USER_ID"):
            cfg.user_id = env_user

        return cfg

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()

    @staticmethod
    def set_config(key: str, value: Any, path: Optional[str] = None) -> None:
        """Write a single key to the YAML config, preserving the others."""
        if key not in _KEY_TYPES:
            raise KeyError(f"Unknown config key: {key}")
        if key == "attribution" and value not in ATTRIBUTION_MODES:
            raise ValueError(f"attribution must be one of {', '.join(ATTRIBUTION_MODES)}")

        cfg_path = config_path(path)
        data: dict = {}
        if cfg_path.exists():
            with open(cfg_path) as f:
                data = yaml.safe_load(f) or {}

        data[key] = _KEY_TYPES[key](value)
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
        with open(cfg_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
