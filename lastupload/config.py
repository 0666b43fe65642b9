"""Load and validate .lastupload/config.yaml."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


# Default config values
DEFAULTS: dict[str, Any] = {
    "queue": {
        "load_interval": 1.5,
        "render_wait": 1.0,
        "navigation_timeout": 15.0,
    },
    "surface": {
        "url_template": "https://space.bilibili.com/{id}/upload/video",
    },
    "extract": {
        # Item subtitle spans on the space upload page carry the publish time
        "time_selector": (
            ".space-upload .bili-video-card__details "
            ".bili-video-card__subtitle span"
        ),
    },
    "listing": {
        "link_selector": "a.relation-card-info__uname",
        "debounce": 0.5,
    },
    "breaker": {
        # Risk-control code and the rejection notice in both site languages
        "markers": ["-352", "安全风控策略", "security control policy"],
    },
    "browser": {
        "headless": True,
        "storage_state": None,
        "user_agent": None,
    },
    "debug": True,
}

DURATION_KEYS = ("load_interval", "render_wait", "navigation_timeout")


class ConfigError(Exception):
    """Raised when config is invalid or missing."""


@dataclass(frozen=True)
class QueueSettings:
    """Timing and extraction knobs consumed by the resolution queue."""

    load_interval: float
    render_wait: float
    navigation_timeout: float
    url_template: str
    time_selector: str
    block_markers: tuple[str, ...]


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base recursively. Override wins on conflicts."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate(config: dict) -> None:
    """Validate timing, template and marker fields in config."""
    queue = config.get("queue")
    if not isinstance(queue, dict):
        raise ConfigError("'queue' must be a mapping")
    for key in DURATION_KEYS:
        val = queue.get(key)
        if isinstance(val, bool) or not isinstance(val, (int, float)) or val < 0:
            raise ConfigError(f"'queue.{key}' must be a non-negative number, got {val!r}")
    if queue["navigation_timeout"] == 0:
        raise ConfigError("'queue.navigation_timeout' must be greater than zero")

    template = config.get("surface", {}).get("url_template")
    if not isinstance(template, str) or "{id}" not in template:
        raise ConfigError("'surface.url_template' must be a string containing '{id}'")

    markers = config.get("breaker", {}).get("markers")
    if (
        not isinstance(markers, list)
        or not markers
        or not all(isinstance(m, str) and m for m in markers)
    ):
        raise ConfigError("'breaker.markers' must be a non-empty list of strings")

    debounce = config.get("listing", {}).get("debounce")
    if isinstance(debounce, bool) or not isinstance(debounce, (int, float)) or debounce < 0:
        raise ConfigError(f"'listing.debounce' must be a non-negative number, got {debounce!r}")


def default_config() -> dict:
    """Return a validated copy of DEFAULTS for callers without a config file."""
    config = copy.deepcopy(DEFAULTS)
    _validate(config)
    return config


def load_config(project_root: Path | None = None) -> dict:
    """Load config from .lastupload/config.yaml under project_root.

    Falls back to cwd if project_root is None. Merges with DEFAULTS
    so callers always get a full config dict.
    """
    root = Path(project_root) if project_root else Path.cwd()
    config_path = root / ".lastupload" / "config.yaml"

    if not config_path.exists():
        raise ConfigError(f"Config not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(raw).__name__}")

    config = _deep_merge(copy.deepcopy(DEFAULTS), raw)
    _validate(config)
    return config


def queue_settings(config: dict) -> QueueSettings:
    """Flatten the queue-related sections of *config* into QueueSettings."""
    queue = config["queue"]
    return QueueSettings(
        load_interval=float(queue["load_interval"]),
        render_wait=float(queue["render_wait"]),
        navigation_timeout=float(queue["navigation_timeout"]),
        url_template=config["surface"]["url_template"],
        time_selector=config["extract"]["time_selector"],
        block_markers=tuple(config["breaker"]["markers"]),
    )
