"""Application-wide settings, persisted to ``data/app_settings.json``.

Provides a thin get/set layer over a JSON file.  Settings survive
restarts and are shared by the desktop client and the headless service.
Deployment-sensitive values can be overridden with ``COSAIF_*``
environment variables.

Usage::

    from cosaif.config import get_setting, set_setting, get_api_base_url

    base = get_api_base_url()                 # env > saved setting > default
    set_setting("navigation_delay", 2.0)      # persists immediately
    get_setting("log_level", fallback="INFO")
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, List

_SETTINGS_PATH = Path(__file__).resolve().parents[1] / "data" / "app_settings.json"
_DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "data" / "cosaif.db"

DEFAULT_API_BASE_URL = "http://localhost:3000"
DEFAULT_NAVIGATION_DELAY = 1.5
DEFAULT_GATE_DURATION = 600
DEFAULT_GATE_RESOLVABLE_AT = 300
DEFAULT_HISTORY_LIMIT = 10


def _load() -> dict:
    """Load the settings file, returning {} on any error."""
    try:
        if _SETTINGS_PATH.exists():
            return json.loads(_SETTINGS_PATH.read_text(encoding="utf-8"))
    except Exception:
        pass
    return {}


def _save(data: dict) -> None:
    """Write settings to disk."""
    _SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_PATH.write_text(
        json.dumps(data, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def get_setting(key: str, fallback: Any = None) -> Any:
    """Read a single setting.  Returns *fallback* if not set."""
    return _load().get(key, fallback)


def set_setting(key: str, value: Any) -> None:
    """Write a single setting (persists immediately)."""
    data = _load()
    data[key] = value
    _save(data)


def get_all_settings() -> dict:
    """Return a copy of all saved settings."""
    return _load()


# ── Convenience helpers for common settings ──


def _env_or_setting(env_name: str, key: str, fallback: Any) -> Any:
    val = (os.getenv(env_name) or "").strip()
    if val:
        return val
    return get_setting(key, fallback)


def _as_float(val: Any, fallback: float, minimum: float = 0.0) -> float:
    try:
        return max(minimum, float(val))
    except (ValueError, TypeError):
        return fallback


def _as_int(val: Any, fallback: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(val))
    except (ValueError, TypeError):
        return fallback


def get_api_base_url() -> str:
    """Base URL of the Cosaif backend, without trailing slash."""
    url = _env_or_setting("COSAIF_API_BASE_URL", "api_base_url", DEFAULT_API_BASE_URL)
    return str(url).strip().rstrip("/") or DEFAULT_API_BASE_URL


def get_db_path() -> str:
    return str(_env_or_setting("COSAIF_DB_PATH", "db_path", str(_DEFAULT_DB_PATH)))


def get_log_level() -> str:
    return str(_env_or_setting("COSAIF_LOG_LEVEL", "log_level", "INFO")).upper()


def get_navigation_delay() -> float:
    """Seconds to wait before a forced navigation to the incident screen."""
    return _as_float(get_setting("navigation_delay"), DEFAULT_NAVIGATION_DELAY)


def get_gate_duration() -> int:
    return _as_int(get_setting("gate_duration"), DEFAULT_GATE_DURATION, minimum=1)


def get_gate_resolvable_at() -> int:
    """Remaining seconds at which the resolution buttons appear."""
    val = _as_int(get_setting("gate_resolvable_at"), DEFAULT_GATE_RESOLVABLE_AT)
    return min(val, get_gate_duration())


def get_history_limit() -> int:
    return _as_int(get_setting("history_limit"), DEFAULT_HISTORY_LIMIT, minimum=1)


def get_active_incident_policy() -> str:
    """``overwrite`` (default) or ``keep_existing``."""
    val = str(get_setting("active_incident_policy", "overwrite")).strip().lower()
    return val if val in ("overwrite", "keep_existing") else "overwrite"


def get_classifier_mode() -> str:
    """``substring`` (default) or ``word``."""
    val = str(get_setting("classifier_mode", "substring")).strip().lower()
    return val if val in ("substring", "word") else "substring"


def get_incident_keywords() -> List[str]:
    """Keyword list for the classifier; empty means the built-in set."""
    val = get_setting("incident_keywords")
    if isinstance(val, list):
        return [str(k) for k in val if str(k).strip()]
    return []


def local_os_notifications_enabled() -> bool:
    enabled = str(_env_or_setting("COSAIF_LOCAL_OS_NOTIFY", "local_os_notifications", "1"))
    return enabled.strip().lower() not in {"0", "false", "off", "no"}
