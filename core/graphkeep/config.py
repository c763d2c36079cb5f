"""Shared graphkeep configuration utilities.

Reads ~/.graphkeep/configuration.json (or the file named by GRAPHKEEP_CONFIG)
so the saver, the CLI and tests share one implementation. Environment
variables override the file:

    GRAPHKEEP_SUMMARY_ENABLED       "true"/"false"
    GRAPHKEEP_SUMMARY_INTERVAL      integer, floored at 1
    GRAPHKEEP_SUMMARY_AS_SYSTEM     "true"/"false"
    GRAPHKEEP_DATABASE              SQLite file path
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_INTERVAL = 20

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

GRAPHKEEP_HOME = Path.home() / ".graphkeep"
GRAPHKEEP_CONFIG_FILE = GRAPHKEEP_HOME / "configuration.json"


def get_config_path() -> Path:
    override = os.environ.get("GRAPHKEEP_CONFIG")
    return Path(override).expanduser() if override else GRAPHKEEP_CONFIG_FILE


def get_graphkeep_config() -> dict[str, Any]:
    """Load configuration from disk. Missing or malformed files yield {}."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        logger.warning(f"Ignoring unreadable configuration file {path}")
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _env_bool(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    return _as_bool(raw)


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return None


def get_database_path() -> str:
    env = os.environ.get("GRAPHKEEP_DATABASE")
    if env:
        return env
    return get_graphkeep_config().get("database", {}).get(
        "path", str(GRAPHKEEP_HOME / "graphkeep.db")
    )


# ---------------------------------------------------------------------------
# SaverConfig
# ---------------------------------------------------------------------------


@dataclass
class SaverConfig:
    """Checkpoint saver and compaction settings."""

    summary_enabled: bool = True
    summary_interval: int = DEFAULT_SUMMARY_INTERVAL
    insert_summary_as_system_message: bool = True
    # Callable(messages) -> str, or an object exposing chat(messages)
    summary_model: Any = None
    database_path: str = field(default_factory=get_database_path)

    def __post_init__(self) -> None:
        try:
            self.summary_interval = max(1, int(self.summary_interval))
        except (TypeError, ValueError):
            self.summary_interval = DEFAULT_SUMMARY_INTERVAL

    def should_compact(self, rounds: int) -> bool:
        """True when *rounds* assistant turns sit exactly on a compaction boundary."""
        return self.summary_enabled and rounds > 0 and rounds % self.summary_interval == 0


def load_config(**overrides: Any) -> SaverConfig:
    """
    Build a SaverConfig from file, environment and explicit overrides (in
    increasing precedence).
    """
    summary = get_graphkeep_config().get("summary", {})
    values: dict[str, Any] = {}
    if "enabled" in summary:
        values["summary_enabled"] = _as_bool(summary["enabled"])
    if "interval" in summary:
        values["summary_interval"] = summary["interval"]
    if "insert_as_system_message" in summary:
        values["insert_summary_as_system_message"] = _as_bool(summary["insert_as_system_message"])

    env_values = {
        "summary_enabled": _env_bool("GRAPHKEEP_SUMMARY_ENABLED"),
        "summary_interval": _env_int("GRAPHKEEP_SUMMARY_INTERVAL"),
        "insert_summary_as_system_message": _env_bool("GRAPHKEEP_SUMMARY_AS_SYSTEM"),
    }
    values.update({k: v for k, v in env_values.items() if v is not None})
    values.update(overrides)
    return SaverConfig(**values)
