"""Process settings for the hightide service.

Settings come from a YAML file (HIGHTIDE_SETTINGS_PATH, default
config/hightide.yaml) and may be overridden by environment variables:

  HIGHTIDE_CONFIG_FILE              path to the XML policy file
  HIGHTIDE_CONFIG_RELOAD            enable the background reload thread
  HIGHTIDE_CONFIG_RELOAD_INTERVAL   seconds between reload checks
  HIGHTIDE_CONFIG_XINCLUDE          expand xi:include directives
  HIGHTIDE_RESCAN_INTERVAL          seconds between runs of all policies

The YAML file may nest keys (hightide: config: file: ...) or use the flat
dotted names (hightide.config.file, hightide.config.reload.interval).
"""

import os
from dataclasses import dataclass
from typing import Optional

import yaml

RELOAD_INTERVAL = 10.0
RESCAN_INTERVAL = 3600.0

DEFAULT_SETTINGS_PATH = "config/hightide.yaml"

_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


class SettingsError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    config_file: Optional[str] = None
    reload_enabled: bool = True
    reload_interval: float = RELOAD_INTERVAL
    rescan_interval: float = RESCAN_INTERVAL
    xinclude: bool = True

    def validate(self) -> list:
        """Return a list of validation errors (empty if valid)."""
        errors = []
        if self.reload_interval <= 0:
            errors.append("hightide.config.reload.interval must be positive")
        if self.rescan_interval <= 0:
            errors.append("hightide.rescan.interval must be positive")
        return errors


def _flatten(data, prefix: str = "") -> dict:
    flat = {}
    for key, value in (data or {}).items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        else:
            flat[name] = value
    return flat


def _to_bool(key: str, value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise SettingsError(f"{key} must be a boolean, got '{value}'")


def _to_seconds(key: str, value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"{key} must be a number of seconds, got '{value}'") from exc


def read_settings_file(path: str) -> dict:
    """Load a YAML settings file into a flat dict keyed by dotted names."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise SettingsError(f"Invalid settings file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping")
    flat = _flatten(data)
    # "reload: true" and "reload.interval: 10" both live under hightide.config
    if "hightide.config.reload_interval" in flat:
        flat.setdefault("hightide.config.reload.interval", flat.pop("hightide.config.reload_interval"))
    if "hightide.rescan_interval" in flat:
        flat.setdefault("hightide.rescan.interval", flat.pop("hightide.rescan_interval"))
    return flat


def load_settings(path: Optional[str] = None, environ=None) -> Settings:
    """Build Settings from the YAML file and environment overrides."""
    environ = os.environ if environ is None else environ
    path = path or environ.get("HIGHTIDE_SETTINGS_PATH", DEFAULT_SETTINGS_PATH)

    values = read_settings_file(path) if os.path.exists(path) else {}

    env_map = {
        "HIGHTIDE_CONFIG_FILE": "hightide.config.file",
        "HIGHTIDE_CONFIG_RELOAD": "hightide.config.reload",
        "HIGHTIDE_CONFIG_RELOAD_INTERVAL": "hightide.config.reload.interval",
        "HIGHTIDE_RESCAN_INTERVAL": "hightide.rescan.interval",
        "HIGHTIDE_CONFIG_XINCLUDE": "hightide.config.xinclude",
    }
    for env_key, key in env_map.items():
        if environ.get(env_key) not in (None, ""):
            values[key] = environ[env_key]

    config_file = values.get("hightide.config.file")
    settings = Settings(
        config_file=str(config_file) if config_file else None,
        reload_enabled=_to_bool("hightide.config.reload", values.get("hightide.config.reload", True)),
        reload_interval=_to_seconds(
            "hightide.config.reload.interval",
            values.get("hightide.config.reload.interval", RELOAD_INTERVAL),
        ),
        rescan_interval=_to_seconds(
            "hightide.rescan.interval",
            values.get("hightide.rescan.interval", RESCAN_INTERVAL),
        ),
        xinclude=_to_bool("hightide.config.xinclude", values.get("hightide.config.xinclude", True)),
    )
    errors = settings.validate()
    if errors:
        raise SettingsError("; ".join(errors))
    return settings
