"""
Runtime configuration.

Looked up in this order: an explicit path, ``$WO_VIEWER_CONFIG``, then
``wo-viewer.json`` in the working directory. No file means defaults.
``$WO_VIEWER_PREFS`` always wins for the preferences path.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from wo_viewer.dates import DATE_ORDERS, MONTH_FIRST
from wo_viewer.fields import DEFAULT_DATE_FIELD, require_date_field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "wo-viewer.json"
CONFIG_ENV = "WO_VIEWER_CONFIG"
PREFS_ENV = "WO_VIEWER_PREFS"
DEFAULT_STORAGE_ID = "wo_viewer_v1"
SUPPORTED_CONFIG_SUFFIXES = {".json", ".yml", ".yaml"}


def default_preferences_path() -> Path:
    return Path.home() / ".wo-viewer" / "preferences.json"


class ConfigError(ValueError):
    pass


@dataclass
class ViewerConfig:
    date_order: str = MONTH_FIRST
    default_date_field: str = DEFAULT_DATE_FIELD
    storage_id: str = DEFAULT_STORAGE_ID
    preferences_path: Path = field(default_factory=default_preferences_path)

    def validate(self) -> None:
        if self.date_order not in DATE_ORDERS:
            raise ConfigError(
                f"date_order must be one of {', '.join(DATE_ORDERS)}, got '{self.date_order}'"
            )
        try:
            require_date_field(self.default_date_field)
        except ValueError as exc:
            raise ConfigError(f"default_date_field: {exc}") from None
        if not self.storage_id or not str(self.storage_id).strip():
            raise ConfigError("storage_id must be a non-empty string")

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["preferences_path"] = str(self.preferences_path)
        return payload


def _read_config_file(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigError("Config must be .json, .yml, or .yaml")
    if suffix in {".yml", ".yaml"}:
        raise ConfigError("YAML configs are not supported yet. Use JSON for now.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a JSON object.")
    return payload


def config_from_mapping(payload: Mapping[str, Any]) -> ViewerConfig:
    known = {"date_order", "default_date_field", "storage_id", "preferences_path"}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    config = ViewerConfig()
    for key in ("date_order", "default_date_field", "storage_id"):
        if key in payload:
            setattr(config, key, payload[key])
    if payload.get("preferences_path"):
        config.preferences_path = Path(str(payload["preferences_path"])).expanduser()
    config.validate()
    return config


def resolve_config_path(explicit: "str | Path | None" = None, env: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    env = os.environ if env is None else env
    if explicit:
        return Path(explicit)
    if env.get(CONFIG_ENV):
        return Path(env[CONFIG_ENV])
    candidate = Path.cwd() / DEFAULT_CONFIG_NAME
    return candidate if candidate.exists() else None


def load_config(path: "str | Path | None" = None, env: Optional[Mapping[str, str]] = None) -> ViewerConfig:
    env = os.environ if env is None else env
    config_path = resolve_config_path(path, env)
    if config_path is None:
        config = ViewerConfig()
    else:
        if not config_path.exists():
            raise ConfigError(f"Config not found: {config_path}")
        config = config_from_mapping(_read_config_file(config_path))
        logger.info("Loaded config from %s", config_path)

    if env.get(PREFS_ENV):
        config.preferences_path = Path(env[PREFS_ENV]).expanduser()
    config.validate()
    return config


def starter_config_text() -> str:
    payload = {
        "date_order": MONTH_FIRST,
        "default_date_field": DEFAULT_DATE_FIELD,
        "storage_id": DEFAULT_STORAGE_ID,
    }
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"
