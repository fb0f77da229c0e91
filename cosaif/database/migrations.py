from __future__ import annotations

import logging

from .db import execute_script, fetch_all

logger = logging.getLogger(__name__)


SCHEMA = """
-- Key-value session state (user, token, active_incident, incident_history)
CREATE TABLE IF NOT EXISTS session_kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def init_db() -> None:
    """Create tables if missing.  Safe to call on every start."""
    execute_script(SCHEMA)
    tables = [r["name"] for r in fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")]
    logger.info("Session database ready (%s)", ", ".join(sorted(tables)))
