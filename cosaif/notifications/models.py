"""Incident notification model and constants."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


INCIDENT_ROUTE = "Incidente"


class Role(str, Enum):
    CLIENTE = "CLIENTE"
    SUPERVISOR = "SUPERVISOR"
    ADMINISTRADOR = "ADMINISTRADOR"
    MAQUINISTA = "MAQUINISTA"
    OPERADOR = "OPERADOR"


class DeliveryContext(str, Enum):
    FOREGROUND = "foreground"
    BACKGROUND_TAP = "background_tap"
    COLD_START = "cold_start"


class AppState(str, Enum):
    ACTIVE = "active"
    BACKGROUND = "background"
    INACTIVE = "inactive"


class ResolutionOutcome(str, Enum):
    RESOLVED = "resolved"
    NOT_COMPLETED = "not_completed"

    @property
    def label(self) -> str:
        return "Resuelto" if self is ResolutionOutcome.RESOLVED else "No se pudo completar"


class ActiveIncidentPolicy(str, Enum):
    """What happens when an incident arrives while another one is active."""

    OVERWRITE = "overwrite"          # newest replaces the active slot
    KEEP_EXISTING = "keep_existing"  # newest only goes to history


def now_ms() -> int:
    return int(time.time() * 1000)


def _text(val: Any) -> str:
    return val if isinstance(val, str) else ("" if val is None else str(val))


@dataclass
class IncidentNotification:
    id: str = ""
    title: str = ""
    body: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0

    @property
    def incidente_id(self) -> str:
        """Backend incident id, falling back to the notification id."""
        return _text(self.data.get("incidenteId")) or self.id

    @property
    def tipo(self) -> str:
        return _text(self.data.get("tipo"))

    @property
    def prioridad(self) -> str:
        return _text(self.data.get("prioridad"))

    @classmethod
    def from_envelope(
        cls, envelope: Optional[Mapping[str, Any]], received_at: Optional[int] = None,
    ) -> "IncidentNotification":
        """Normalise a push envelope.

        Shape: ``{messageId?, notification?: {title, body}, data?: {...}}``.
        Missing or null fields become empty strings / an empty dict.
        """
        envelope = envelope or {}
        ts = received_at if received_at is not None else now_ms()
        notification = envelope.get("notification") or {}
        data = envelope.get("data") or {}
        if not isinstance(notification, Mapping):
            notification = {}
        if not isinstance(data, Mapping):
            data = {}
        return cls(
            id=_text(envelope.get("messageId")) or str(ts),
            title=_text(notification.get("title")),
            body=_text(notification.get("body")),
            data=dict(data),
            timestamp=ts,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "data": dict(self.data),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "IncidentNotification":
        data = raw.get("data") or {}
        try:
            ts = int(raw.get("timestamp") or 0)
        except (ValueError, TypeError):
            ts = 0
        return cls(
            id=_text(raw.get("id")),
            title=_text(raw.get("title")),
            body=_text(raw.get("body")),
            data=dict(data) if isinstance(data, Mapping) else {},
            timestamp=ts,
        )
