"""
Configuration loading for riverlevels.

Loads config.toml and resolves the feed URL, safety threshold, status policy,
display window and cache directory. Falls back to built-in defaults for
anything missing or invalid.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from riverlevels.constants import (
    CACHE_DIR_DEFAULT,
    DEFAULT_FEED_URL,
    DEFAULT_SAFE_LEVEL_M,
    DEFAULT_STATUS_POLICY,
    DEFAULT_TIMEOUT_SEC,
    DEFAULT_WINDOW,
    WINDOW_PRESETS,
)
from riverlevels.retention import parse_window
from riverlevels.types import StatusPolicy
from riverlevels.utils import coerce_float

# Config file path
CONFIG_PATH = Path(__file__).parent.parent / "config.toml"
CONFIG_ENV_VAR = "RIVERLEVELS_CONFIG"


def default_config_path() -> Path:
    """$RIVERLEVELS_CONFIG if set, else config.toml beside the package."""
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return CONFIG_PATH


def load_toml_config(path: Path) -> dict[str, Any]:
    """
    Read a TOML config file. Any read or parse error results in an empty
    config so the runtime can fall back to built-in defaults.
    """
    try:
        with Path(path).open("rb") as fh:
            return tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError):
        return {}


@dataclass
class Settings:
    """Resolved runtime settings."""
    feed_url: str = DEFAULT_FEED_URL
    timeout_sec: float | None = DEFAULT_TIMEOUT_SEC
    safe_level_m: float = DEFAULT_SAFE_LEVEL_M
    status_policy: StatusPolicy = StatusPolicy(DEFAULT_STATUS_POLICY)
    window_ms: int | None = WINDOW_PRESETS[DEFAULT_WINDOW]
    cache_dir: Path = field(default_factory=lambda: CACHE_DIR_DEFAULT)


def _section(cfg: dict[str, Any], name: str) -> dict[str, Any]:
    section = cfg.get(name)
    return section if isinstance(section, dict) else {}


def settings_from_config(cfg: dict[str, Any]) -> Settings:
    settings = Settings()

    feed = _section(cfg, "feed")
    url = feed.get("url")
    if isinstance(url, str) and url.strip():
        settings.feed_url = url.strip()
    if "timeout_sec" in feed:
        timeout = coerce_float(feed.get("timeout_sec"))
        if timeout is not None:
            settings.timeout_sec = timeout if timeout > 0 else None

    safety = _section(cfg, "safety")
    level = coerce_float(safety.get("safe_level_m"))
    if level is not None:
        settings.safe_level_m = level
    policy = safety.get("status_policy")
    if isinstance(policy, str):
        try:
            settings.status_policy = StatusPolicy(policy.strip().lower())
        except ValueError:
            pass

    display = _section(cfg, "display")
    window = display.get("window")
    if isinstance(window, str):
        try:
            settings.window_ms = parse_window(window)
        except ValueError:
            pass

    cache = _section(cfg, "cache")
    cache_dir = cache.get("dir")
    if isinstance(cache_dir, str) and cache_dir.strip():
        settings.cache_dir = Path(cache_dir.strip()).expanduser()

    return settings


def load_settings(path: Path | str | None = None) -> Settings:
    """Load settings from `path` (or the default config location)."""
    cfg_path = Path(path).expanduser() if path else default_config_path()
    return settings_from_config(load_toml_config(cfg_path))
