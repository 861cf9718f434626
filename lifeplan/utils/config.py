# lifeplan/utils/config.py
from __future__ import annotations
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .paths import config_dir

log = logging.getLogger(__name__)

SETTINGS_NAME = "settings.json"

_DEFAULTS: Dict[str, Any] = {
    "timeline": {
        "default_zoom": "month",
        "day_widths": {"day": 40, "month": 8, "year": 2},
        "month_view_threshold": 35,
        "year_view_threshold": 10,
        "zoom_step": 1.2,
        "min_day_width": 1,
        "max_day_width": 200,
        "drag_throttle_ms": 50,
        "click_slop_px": 3,
        "range_buffers": {"day": [30, 90], "month": [180, 365], "year": [730, 1095]},
        "range_margin_days": 30,
    },
    "persistence": {
        "db_path": None,
    },
}


def settings_file() -> Path:
    return config_dir() / SETTINGS_NAME


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    path = path or settings_file()
    if path.exists():
        try:
            return _merge(_DEFAULTS, json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable settings file %s: %s", path, exc)
    return copy.deepcopy(_DEFAULTS)


def save_settings(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or settings_file()
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
