"""Decide whether a push notification describes an incident.

The default policy is the field-proven one: case-insensitive substring
search for a fixed Spanish keyword set across title, body and
``data.tipo``, or ``tipo`` equal to ``incidente``.  No negation handling,
so "sin incidente" still matches.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence, Tuple

from cosaif.notifications.models import IncidentNotification

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS: Tuple[str, ...] = (
    "incidente",
    "emergencia",
    "alerta",
    "urgente",
    "problema",
    "accidente",
    "falla",
    "avería",
)

_INCIDENT_TYPES = ("incidente", "INCIDENTE")


def _match_keyword(fields: Sequence[str], keywords: Iterable[str]) -> Optional[str]:
    for keyword in keywords:
        if any(keyword in f for f in fields):
            return keyword
    return None


def classify(title: Optional[str], body: Optional[str], tipo: Optional[str]) -> bool:
    """Pure keyword/type heuristic with the built-in keyword set."""
    fields = [(title or "").lower(), (body or "").lower(), (tipo or "").lower()]
    if _match_keyword(fields, DEFAULT_KEYWORDS):
        return True
    return (tipo or "") in _INCIDENT_TYPES


class IncidentClassifier:
    """Strategy interface: ``is_incident(notification) -> bool``."""

    def is_incident(self, notification: IncidentNotification) -> bool:
        raise NotImplementedError


class KeywordClassifier(IncidentClassifier):
    """Substring matching (the default policy)."""

    def __init__(self, keywords: Optional[Iterable[str]] = None) -> None:
        self.keywords = tuple(k.lower() for k in (keywords or DEFAULT_KEYWORDS))

    def _fields(self, notification: IncidentNotification) -> Sequence[str]:
        return [
            notification.title.lower(),
            notification.body.lower(),
            notification.tipo.lower(),
        ]

    def _find(self, fields: Sequence[str]) -> Optional[str]:
        return _match_keyword(fields, self.keywords)

    def is_incident(self, notification: IncidentNotification) -> bool:
        keyword = self._find(self._fields(notification))
        if keyword:
            logger.debug("Incident keyword %r found in %r", keyword, notification.title)
            return True
        if notification.tipo in _INCIDENT_TYPES:
            logger.debug("Incident type detected for %r", notification.id)
            return True
        return False


class WholeWordClassifier(KeywordClassifier):
    """Keywords must appear as whole words ("alertas" does not match "alerta")."""

    def __init__(self, keywords: Optional[Iterable[str]] = None) -> None:
        super().__init__(keywords)
        self._patterns = [
            (k, re.compile(rf"(?<!\w){re.escape(k)}(?!\w)")) for k in self.keywords
        ]

    def _find(self, fields: Sequence[str]) -> Optional[str]:
        for keyword, pattern in self._patterns:
            if any(pattern.search(f) for f in fields):
                return keyword
        return None


def build_classifier(mode: str = "substring", keywords: Optional[Iterable[str]] = None) -> IncidentClassifier:
    """Classifier for a config mode (``substring`` or ``word``)."""
    keywords = list(keywords or []) or None
    if mode == "word":
        return WholeWordClassifier(keywords)
    return KeywordClassifier(keywords)
