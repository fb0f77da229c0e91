"""View-model for screens that must react to an active incident."""
from __future__ import annotations

import logging
from typing import Optional

from cosaif.notifications.coordinator import BlockingCoordinator
from cosaif.notifications.gate import GATE_DURATION, RESOLVABLE_AT, ResolutionGate
from cosaif.notifications.models import IncidentNotification, ResolutionOutcome

logger = logging.getLogger(__name__)


class IncidentHandler:
    def __init__(self, coordinator: BlockingCoordinator) -> None:
        self.coordinator = coordinator
        self.active_incident: Optional[IncidentNotification] = None
        self.is_blocked = False
        self.loading = False

    def refresh(self) -> bool:
        """Reload the blocked state; returns ``is_blocked``."""
        self.loading = True
        try:
            self.active_incident = self.coordinator.get_active_incident()
            self.is_blocked = self.active_incident is not None
        except Exception:
            logger.exception("Could not check for an active incident")
            self.active_incident = None
            self.is_blocked = False
        finally:
            self.loading = False
        return self.is_blocked

    def resolve(self, outcome: ResolutionOutcome = ResolutionOutcome.RESOLVED) -> bool:
        if self.active_incident is None:
            return False
        cleared = self.coordinator.resolve_incident(self.active_incident.id, outcome)
        if cleared:
            self.active_incident = None
            self.is_blocked = False
        return cleared

    def make_gate(self, duration: int = GATE_DURATION, resolvable_at: int = RESOLVABLE_AT) -> ResolutionGate:
        return ResolutionGate(self.resolve, duration=duration, resolvable_at=resolvable_at)
