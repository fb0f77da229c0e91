"""Active-incident slot and incident history over the session store.

Storage errors propagate; callers that must never fail (the blocking
coordinator) catch and log them.
"""
from __future__ import annotations

import json
import logging
from typing import List, Optional

from cosaif.notifications.models import ActiveIncidentPolicy, IncidentNotification
from cosaif.session.store import ACTIVE_INCIDENT_KEY, INCIDENT_HISTORY_KEY, KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


class IncidentStore:
    def __init__(self, kv: KeyValueStore, history_limit: int = HISTORY_LIMIT) -> None:
        self.kv = kv
        self.history_limit = max(1, history_limit)

    # ── active slot ──

    def get_active(self) -> Optional[IncidentNotification]:
        raw = self.kv.get_item(ACTIVE_INCIDENT_KEY)
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Active incident is not valid JSON; ignoring it")
            return None
        if not isinstance(parsed, dict):
            return None
        return IncidentNotification.from_dict(parsed)

    def set_active(
        self,
        incident: IncidentNotification,
        policy: ActiveIncidentPolicy = ActiveIncidentPolicy.OVERWRITE,
    ) -> bool:
        """Store *incident* in the single active slot.

        Returns True when the slot holds *incident* afterwards.  With
        ``OVERWRITE`` the previous record is replaced whole, never merged.
        """
        if policy is ActiveIncidentPolicy.KEEP_EXISTING:
            current = self.get_active()
            if current is not None and current.id != incident.id:
                logger.warning(
                    "Incident %s kept active; %s recorded in history only",
                    current.id, incident.id,
                )
                return False
        elif self.kv.get_item(ACTIVE_INCIDENT_KEY):
            logger.info("Replacing active incident with %s", incident.id)
        self.kv.set_item(ACTIVE_INCIDENT_KEY, json.dumps(incident.to_dict()))
        return True

    def clear_active(self) -> None:
        self.kv.remove_item(ACTIVE_INCIDENT_KEY)

    # ── history ──

    def get_history(self) -> List[IncidentNotification]:
        raw = self.kv.get_item(INCIDENT_HISTORY_KEY)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Incident history is not valid JSON; starting over")
            return []
        if not isinstance(parsed, list):
            return []
        return [IncidentNotification.from_dict(item) for item in parsed if isinstance(item, dict)]

    def append_history(self, incident: IncidentNotification) -> List[IncidentNotification]:
        """Insert newest-first and drop overflow from the tail."""
        history = [incident] + self.get_history()
        history = history[: self.history_limit]
        self.kv.set_item(INCIDENT_HISTORY_KEY, json.dumps([i.to_dict() for i in history]))
        return history

    def clear_history(self) -> None:
        self.kv.remove_item(INCIDENT_HISTORY_KEY)
