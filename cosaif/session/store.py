"""Persisted session state.

A string key-value store (the same contract a mobile async storage
offers) plus helpers for the keys every part of the app reads:
``user`` (JSON object with a ``rol`` field) and ``token``.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, List, Optional

from cosaif.database import db

logger = logging.getLogger(__name__)

USER_KEY = "user"
TOKEN_KEY = "token"
ACTIVE_INCIDENT_KEY = "active_incident"
INCIDENT_HISTORY_KEY = "incident_history"


class KeyValueStore:
    """String key-value storage port."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class SqliteKeyValueStore(KeyValueStore):
    """Rows of the ``session_kv`` table (see ``cosaif.database.migrations``)."""

    def get_item(self, key: str) -> Optional[str]:
        row = db.fetch_one("SELECT value FROM session_kv WHERE key = ?", (key,))
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        db.execute(
            """INSERT INTO session_kv (key, value, updated_at)
               VALUES (?, ?, datetime('now'))
               ON CONFLICT(key) DO UPDATE SET
                   value = excluded.value,
                   updated_at = excluded.updated_at""",
            (key, value),
        )

    def remove_item(self, key: str) -> None:
        db.execute("DELETE FROM session_kv WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        return [r["key"] for r in db.fetch_all("SELECT key FROM session_kv ORDER BY key")]


class SessionState:
    """Typed access to the logged-in user and token."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def get_user(self) -> Optional[Dict[str, Any]]:
        raw = self.kv.get_item(USER_KEY)
        if not raw:
            return None
        try:
            user = json.loads(raw)
        except ValueError:
            logger.warning("Stored user is not valid JSON")
            return None
        return user if isinstance(user, dict) else None

    def get_role(self) -> Optional[str]:
        user = self.get_user()
        if not user:
            return None
        role = user.get("rol")
        return str(role) if role else None

    def get_token(self) -> Optional[str]:
        return self.kv.get_item(TOKEN_KEY) or None

    def login(self, user: Dict[str, Any], token: str) -> None:
        self.kv.set_item(USER_KEY, json.dumps(user))
        self.kv.set_item(TOKEN_KEY, token)
        logger.info("Session started for role %s", user.get("rol"))

    def logout(self) -> None:
        """Forget user and token.

        The active incident and the history stay; only a resolution clears
        the active slot.
        """
        for key in (USER_KEY, TOKEN_KEY):
            self.kv.remove_item(key)
        logger.info("Session cleared")
