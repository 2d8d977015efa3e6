"""Application settings and config persistence for sdeck.

Config is stored at ~/.config/sdeck/config.json (XDG-compliant).

Usage:
    from sdeck.conf import settings

    settings.brightness       # last brightness set with --save (0-100)
    settings.cache_images     # image cache on/off
    settings.cache_ttl_s      # image cache time-to-live, seconds
    settings.min_up_time_s    # key debounce hold time, seconds

    # Low-level config access
    from sdeck.conf import load_config, save_config
"""
from __future__ import annotations

import json
import logging
import os

from .constants import CACHE_TTL_S, MIN_UP_TIME_S

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'sdeck')
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')

DEFAULT_BRIGHTNESS = 70


# =========================================================================
# Low-level config persistence
# =========================================================================

def load_config() -> dict:
    """Load user config from disk. Returns empty dict on missing/corrupt file."""
    try:
        with open(CONFIG_PATH, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}
    return config if isinstance(config, dict) else {}


def save_config(config: dict):
    """Save user config to disk."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, 'w') as f:
        json.dump(config, f, indent=2)


def _save_value(key: str, value):
    config = load_config()
    config[key] = value
    save_config(config)


# =========================================================================
# Typed accessors
# =========================================================================

def get_saved_brightness() -> int:
    """Saved brightness percentage, defaulting to 70."""
    try:
        value = int(load_config().get('brightness', DEFAULT_BRIGHTNESS))
    except (TypeError, ValueError):
        return DEFAULT_BRIGHTNESS
    return value if 0 <= value <= 100 else DEFAULT_BRIGHTNESS


def get_saved_cache_images() -> bool:
    return bool(load_config().get('cache_images', True))


def get_saved_cache_ttl() -> float:
    try:
        ttl = float(load_config().get('cache_ttl_s', CACHE_TTL_S))
    except (TypeError, ValueError):
        return float(CACHE_TTL_S)
    return ttl if ttl > 0 else float(CACHE_TTL_S)


def get_saved_min_up_time() -> float:
    """Debounce hold time in seconds (stored as milliseconds)."""
    default_ms = MIN_UP_TIME_S * 1000
    try:
        ms = float(load_config().get('min_up_time_ms', default_ms))
    except (TypeError, ValueError):
        ms = default_ms
    return (ms if ms >= 0 else default_ms) / 1000.0


# =========================================================================
# Settings singleton
# =========================================================================

class Settings:
    """Application-wide settings.

    Values are read from config once; setters update memory and persist.
    """

    def __init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        self._brightness = get_saved_brightness()
        self._cache_images = get_saved_cache_images()
        self._cache_ttl_s = get_saved_cache_ttl()
        self._min_up_time_s = get_saved_min_up_time()

    @property
    def brightness(self) -> int:
        return self._brightness

    @property
    def cache_images(self) -> bool:
        return self._cache_images

    @property
    def cache_ttl_s(self) -> float:
        return self._cache_ttl_s

    @property
    def min_up_time_s(self) -> float:
        return self._min_up_time_s

    def set_brightness(self, percent: int, persist: bool = True) -> None:
        if not 0 <= percent <= 100:
            raise ValueError('Expected brightness percentage to be between 0 and 100')
        self._brightness = percent
        if persist:
            log.info("Settings: brightness → %d%%", percent)
            _save_value('brightness', percent)

    def set_cache_images(self, enabled: bool, persist: bool = True) -> None:
        self._cache_images = bool(enabled)
        if persist:
            _save_value('cache_images', self._cache_images)


# Module-level singleton
settings = Settings()
