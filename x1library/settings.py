"""Persisted library settings for X1 Library front ends."""
from __future__ import annotations

import json
import logging
import os
from copy import deepcopy
from typing import Any, Dict

from .shared_config import (
    CATALOG_FILE, COVER_BASE_URL, DISPLAY_MODE_IDS, SETTINGS_FILE, STAGING_DIR,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = SETTINGS_FILE

DEFAULT_SETTINGS: Dict[str, Any] = {
    "games_folder": "",
    "display_mode": "list",
    "box_art_lookup": True,
    "dvd_path": "",
    "skip_game_picker": False,
    "catalog": {
        "source": CATALOG_FILE,
        "base_url": COVER_BASE_URL,
    },
    "converter": {
        "binary": "",
        "timeout": 0,
    },
    "staging_dir": STAGING_DIR,
}


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    out = deepcopy(base)
    for k, v in (updates or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = deepcopy(v)
    return out


def load_settings(path: str = DEFAULT_SETTINGS_PATH) -> Dict[str, Any]:
    if not os.path.exists(path):
        return deepcopy(DEFAULT_SETTINGS)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable settings %s: %s", path, e)
        return deepcopy(DEFAULT_SETTINGS)
    if not isinstance(data, dict):
        return deepcopy(DEFAULT_SETTINGS)
    settings = _deep_merge(DEFAULT_SETTINGS, data)
    if settings.get("display_mode") not in DISPLAY_MODE_IDS:
        settings["display_mode"] = "list"
    return settings


def save_settings(settings: Dict[str, Any], path: str = DEFAULT_SETTINGS_PATH) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, ensure_ascii=False, indent=2)


def update_settings(path: str = DEFAULT_SETTINGS_PATH, **changes: Any) -> Dict[str, Any]:
    """Load, apply top-level changes, persist, and return the new settings."""
    settings = load_settings(path)
    settings.update(changes)
    save_settings(settings, path)
    return settings
