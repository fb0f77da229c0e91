"""Incident resolution gate.

A countdown that starts at ten minutes.  Nothing can be done during the
first half; at five minutes remaining the "Resuelto" / "No se pudo
completar" choices appear and stay until the user confirms one.  When
the countdown reaches zero it stops at ``00:00``.  The gate does not
resolve or escalate by itself.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from cosaif.notifications.models import ResolutionOutcome
from cosaif.notifications.scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)

GATE_DURATION = 600
RESOLVABLE_AT = 300


class GatePhase(str, Enum):
    URGENT_WAIT = "urgent_wait"
    RESOLVABLE = "resolvable"
    EXPIRED = "expired"


class GateLocked(RuntimeError):
    """Resolution requested before the choices are available."""


@dataclass(frozen=True)
class Confirmation:
    title: str
    message: str
    confirm_label: str
    cancel_label: str = "Cancelar"
    destructive: bool = False


_CONFIRMATIONS = {
    ResolutionOutcome.RESOLVED: Confirmation(
        "Incidente Resuelto", "¿Confirmas que se resolvió el incidente?", "Sí, resuelto",
    ),
    ResolutionOutcome.NOT_COMPLETED: Confirmation(
        "No Completado", "¿Marcar como no completado?", "No se pudo completar",
        destructive=True,
    ),
}


def format_time(seconds: int) -> str:
    """``MM:SS``"""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class ResolutionGate:
    def __init__(
        self,
        on_resolve: Callable[[ResolutionOutcome], None],
        duration: int = GATE_DURATION,
        resolvable_at: int = RESOLVABLE_AT,
        on_expired: Optional[Callable[[], None]] = None,
    ) -> None:
        self.on_resolve = on_resolve
        self.on_expired = on_expired
        self.duration = max(1, duration)
        self.resolvable_at = min(max(0, resolvable_at), self.duration)
        self.remaining = self.duration
        self.buttons_visible = False
        self.closed = False
        self.outcome: Optional[ResolutionOutcome] = None
        self._lock = threading.Lock()
        self._task: Optional[ScheduledTask] = None
        if self.remaining <= self.resolvable_at:
            self.buttons_visible = True

    @property
    def phase(self) -> GatePhase:
        if self.remaining <= 0:
            return GatePhase.EXPIRED
        if self.buttons_visible:
            return GatePhase.RESOLVABLE
        return GatePhase.URGENT_WAIT

    @property
    def dismissible(self) -> bool:
        """Back gesture / outside tap never close an open gate."""
        return self.closed

    @property
    def display(self) -> str:
        return format_time(self.remaining)

    @property
    def urgent(self) -> bool:
        """Countdown is in the last stretch (shown in red)."""
        return self.remaining <= self.resolvable_at

    def tick(self) -> GatePhase:
        """Advance the countdown by one second."""
        expired_now = False
        with self._lock:
            if self.closed or self.remaining <= 0:
                return self.phase
            previous = self.remaining
            self.remaining = previous - 1
            if previous == self.resolvable_at + 1:
                self.buttons_visible = True
                logger.info("Resolution choices unlocked")
            if self.remaining <= 0:
                self.remaining = 0
                expired_now = True
        if expired_now:
            self._expire()
        return self.phase

    def _expire(self) -> None:
        self.stop()
        if self.on_expired is None:
            logger.warning("Incident countdown expired with no resolution; no action taken")
            return
        try:
            self.on_expired()
        except Exception:
            logger.exception("Expiry hook failed")

    def request_resolution(self, outcome: ResolutionOutcome) -> Confirmation:
        """Prompt to show before *outcome* is confirmed."""
        if not self.buttons_visible:
            raise GateLocked(f"resolution available at {format_time(self.resolvable_at)}")
        return _CONFIRMATIONS[outcome]

    def confirm(self, outcome: ResolutionOutcome) -> bool:
        """Resolve with *outcome* and close.  False if already closed."""
        with self._lock:
            if self.closed:
                return False
            if not self.buttons_visible:
                raise GateLocked(f"resolution available at {format_time(self.resolvable_at)}")
            self.closed = True
            self.outcome = outcome
        self.stop()
        self.on_resolve(outcome)
        return True

    def start(self, scheduler: Scheduler, interval: float = 1.0) -> None:
        if self._task is not None and self._task.active:
            return
        self._task = scheduler.call_repeating(interval, self.tick)

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
