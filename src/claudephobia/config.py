"""Load, save, and validate user configuration."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .models import DISPLAY_MODES, REFRESH_INTERVALS, EngineConfig

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".claudephobia"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
CREDENTIALS_FILE = CONFIG_DIR / "credentials"

DEFAULTS = EngineConfig()


def config_exists() -> bool:
    return CONFIG_FILE.exists()


def load_config() -> dict:
    """Load config from YAML file. Returns empty dict if not found."""
    if not CONFIG_FILE.exists():
        return {}
    with open(CONFIG_FILE, "r") as f:
        return yaml.safe_load(f) or {}


def save_config(config: dict) -> None:
    """Save config to YAML file, creating directory if needed."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def delete_config() -> None:
    CONFIG_FILE.unlink(missing_ok=True)


def is_setup_complete(config: dict) -> bool:
    return bool(config.get("setup_complete", False))


def get_refresh_interval(config: dict) -> int:
    """Refresh interval in seconds (60, 300 or 600). Defaults to 300."""
    value = config.get("refresh_interval", DEFAULTS.refresh_interval)
    if value not in REFRESH_INTERVALS:
        logger.warning("Ignoring refresh_interval %r, expected one of %s",
                       value, REFRESH_INTERVALS)
        return DEFAULTS.refresh_interval
    return int(value)


def _get_fraction(config: dict, key: str, default: float) -> float:
    value = config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
        logger.warning("Ignoring %s %r, expected a number between 0 and 1", key, value)
        return default
    return float(value)


def get_warning_threshold(config: dict) -> float:
    return _get_fraction(config, "warning_threshold", DEFAULTS.warning_threshold)


def get_critical_threshold(config: dict) -> float:
    return _get_fraction(config, "critical_threshold", DEFAULTS.critical_threshold)


def get_display_mode(config: dict) -> str:
    value = config.get("display_mode", DEFAULTS.display_mode)
    if value not in DISPLAY_MODES:
        logger.warning("Ignoring display_mode %r, expected one of %s", value, DISPLAY_MODES)
        return DEFAULTS.display_mode
    return value


def get_engine_config(config: dict) -> EngineConfig:
    """Build the EngineConfig from a config dict, falling back to defaults.

    Thresholds are not checked against each other here; ``configure`` in
    the CLI refuses ``warning >= critical``, but a hand-edited file is
    accepted as-is.
    """
    return EngineConfig(
        refresh_interval=get_refresh_interval(config),
        warning_threshold=get_warning_threshold(config),
        critical_threshold=get_critical_threshold(config),
        notifications_enabled=bool(config.get("notifications_enabled", DEFAULTS.notifications_enabled)),
        notify_on_reset=bool(config.get("notify_on_reset", DEFAULTS.notify_on_reset)),
        display_mode=get_display_mode(config),
    )


def engine_config_to_dict(engine: EngineConfig) -> dict:
    return {
        "refresh_interval": engine.refresh_interval,
        "warning_threshold": engine.warning_threshold,
        "critical_threshold": engine.critical_threshold,
        "notifications_enabled": engine.notifications_enabled,
        "notify_on_reset": engine.notify_on_reset,
        "display_mode": engine.display_mode,
    }


def build_default_config(refresh_interval: int = 300, warning_threshold: float = 0.75,
                         critical_threshold: float = 0.90) -> dict:
    """Build a default config dict."""
    engine = EngineConfig(
        refresh_interval=refresh_interval,
        warning_threshold=warning_threshold,
        critical_threshold=critical_threshold,
    )
    return {"setup_complete": False, **engine_config_to_dict(engine)}
