"""Blocking coordinator.

Wires push deliveries and foreground transitions to the classifier and the
incident store, and forces a ``CLIENTE`` session onto the incident screen
while an incident is active.

Everything the coordinator touches outside itself (storage, navigation,
network, alerts) is wrapped: failures are logged and degrade to "no
incident" rather than propagating into the push or UI callbacks.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from cosaif.notifications.backend import IncidentBackend
from cosaif.notifications.classifier import IncidentClassifier, KeywordClassifier
from cosaif.notifications.models import (
    INCIDENT_ROUTE,
    ActiveIncidentPolicy,
    AppState,
    DeliveryContext,
    IncidentNotification,
    ResolutionOutcome,
    Role,
    now_ms,
)
from cosaif.notifications.navigation import AlertPresenter, NavigationNotReady, Navigator
from cosaif.notifications.scheduler import ScheduledTask, Scheduler
from cosaif.notifications.store import HISTORY_LIMIT, IncidentStore
from cosaif.notifications.transport import AppLifecycle, PushTransport
from cosaif.session.store import KeyValueStore, SessionState

logger = logging.getLogger(__name__)

ALERT_TITLE = "\U0001F6A8 INCIDENTE DETECTADO"
ALERT_ACTION = "Ir a Incidentes"
ALERT_FOOTER = "La aplicación será bloqueada hasta que se atienda el incidente."


class BlockingCoordinator:
    def __init__(
        self,
        kv: KeyValueStore,
        transport: PushTransport,
        lifecycle: AppLifecycle,
        navigator: Navigator,
        alerts: AlertPresenter,
        backend: Optional[IncidentBackend],
        scheduler: Scheduler,
        classifier: Optional[IncidentClassifier] = None,
        policy: ActiveIncidentPolicy = ActiveIncidentPolicy.OVERWRITE,
        navigation_delay: float = 1.5,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.session = SessionState(kv)
        self.store = IncidentStore(kv, history_limit=history_limit)
        self.transport = transport
        self.lifecycle = lifecycle
        self.navigator = navigator
        self.alerts = alerts
        self.backend = backend
        self.scheduler = scheduler
        self.classifier = classifier or KeywordClassifier()
        self.policy = policy
        self.navigation_delay = navigation_delay

        self._lock = threading.Lock()
        self._initialized = False
        self._unsubscribers: List[Callable[[], None]] = []
        self._pending_nav: Optional[ScheduledTask] = None

    # ──────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Subscribe to pushes and foreground transitions, then check once."""
        with self._lock:
            if self._initialized:
                logger.warning("Blocking coordinator already initialized")
                return
            self._initialized = True

        logger.info("Initializing blocking coordinator...")
        self._unsubscribers = [
            self.transport.on_message(self._on_foreground_message),
            self.transport.on_notification_opened(self._on_opened_message),
            self.lifecycle.add_listener(self._on_app_state),
        ]

        try:
            initial = self.transport.get_initial_notification()
        except Exception:
            logger.exception("Could not read the cold-start notification")
            initial = None
        if initial:
            logger.info("App opened from a notification")
            self.handle_envelope(initial, DeliveryContext.COLD_START)

        self.check_pending_incident()
        logger.info("Blocking coordinator initialized")

    def cleanup(self) -> None:
        """Unsubscribe everything and cancel a pending forced navigation."""
        with self._lock:
            unsubscribers, self._unsubscribers = self._unsubscribers, []
            task, self._pending_nav = self._pending_nav, None
            self._initialized = False
        for unsubscribe in unsubscribers:
            try:
                unsubscribe()
            except Exception:
                logger.exception("Unsubscribe failed")
        if task is not None:
            task.cancel()
        logger.info("Blocking coordinator cleaned up")

    # ──────────────────────────────────────────────────────────────────────
    # Push handling
    # ──────────────────────────────────────────────────────────────────────

    def _on_foreground_message(self, envelope: Mapping[str, Any]) -> None:
        self.handle_envelope(envelope, DeliveryContext.FOREGROUND)

    def _on_opened_message(self, envelope: Mapping[str, Any]) -> None:
        self.handle_envelope(envelope, DeliveryContext.BACKGROUND_TAP)

    def handle_envelope(
        self,
        envelope: Optional[Mapping[str, Any]],
        context: DeliveryContext = DeliveryContext.FOREGROUND,
    ) -> Optional[IncidentNotification]:
        """Normalise, classify and (for incidents) record a push message.

        Returns the normalised notification when it is an incident.
        """
        if not envelope:
            logger.warning("Empty push envelope (%s) ignored", context.value)
            return None
        try:
            notification = IncidentNotification.from_envelope(envelope)
            is_incident = self.classifier.is_incident(notification)
        except Exception:
            logger.exception("Could not process push envelope")
            return None

        if not is_incident:
            logger.info("Push %s is not an incident, ignoring", notification.id)
            return None

        logger.warning("Incident received (%s): %s", context.value, notification.title)
        self._process_incident(notification)
        return notification

    def _process_incident(self, incident: IncidentNotification) -> None:
        role = self._current_role()
        try:
            self.store.append_history(incident)
        except Exception:
            logger.exception("Could not record incident %s in history", incident.id)

        if role != Role.CLIENTE.value:
            logger.info("Role %s is not blocked by incidents", role)
            return

        try:
            now_active = self.store.set_active(incident, self.policy)
        except Exception:
            logger.exception("Could not store active incident %s", incident.id)
            return
        if now_active:
            self._present_alert(incident)

    def _present_alert(self, incident: IncidentNotification) -> None:
        message = f"{incident.title}\n\n{incident.body}\n\n{ALERT_FOOTER}"
        try:
            self.alerts.show_blocking_alert(
                ALERT_TITLE,
                message,
                ALERT_ACTION,
                lambda: self.navigate_to_incident(incident),
            )
        except Exception:
            logger.exception("Could not show incident alert")

    # ──────────────────────────────────────────────────────────────────────
    # Forced navigation
    # ──────────────────────────────────────────────────────────────────────

    def _on_app_state(self, state: AppState) -> None:
        if state is AppState.ACTIVE:
            self.check_pending_incident()

    def check_pending_incident(self) -> bool:
        """Schedule a forced navigation if a client has an open incident.

        Returns True when a navigation was scheduled.
        """
        if not self.has_active_incident():
            logger.debug("No pending incident for this session")
            return False
        if self._current_route() == INCIDENT_ROUTE:
            logger.info("Already on the incident screen")
            return False
        with self._lock:
            if self._pending_nav is not None and self._pending_nav.active:
                logger.debug("Forced navigation already pending")
                return False
            self._pending_nav = self.scheduler.call_later(
                self.navigation_delay, self._forced_navigation,
            )
        logger.info("Redirecting to the incident screen in %.1fs", self.navigation_delay)
        return True

    def _forced_navigation(self) -> None:
        with self._lock:
            self._pending_nav = None
        incident = self.get_active_incident()
        if incident is None:
            logger.info("Incident resolved before the forced navigation fired")
            return
        if self._current_route() == INCIDENT_ROUTE:
            return
        self.navigate_to_incident(incident)

    def _cancel_pending_navigation(self) -> None:
        with self._lock:
            task, self._pending_nav = self._pending_nav, None
        if task is not None:
            task.cancel()

    def navigate_to_incident(self, incident: IncidentNotification) -> bool:
        params: Dict[str, Any] = {
            "incidenteId": incident.incidente_id,
            "fromNotification": True,
            "notificationData": incident.to_dict(),
        }
        try:
            if not self.navigator.is_ready():
                raise NavigationNotReady("navigator not mounted")
            self.navigator.navigate(INCIDENT_ROUTE, params)
        except NavigationNotReady as exc:
            logger.error("Cannot open the incident screen: %s", exc)
            return False
        except Exception:
            logger.exception("Navigation to the incident screen failed")
            return False
        return True

    def _current_route(self) -> Optional[str]:
        try:
            return self.navigator.current_route()
        except Exception:
            logger.exception("Could not read the current route")
            return None

    # ──────────────────────────────────────────────────────────────────────
    # Resolution and queries
    # ──────────────────────────────────────────────────────────────────────

    def resolve_incident(
        self,
        incident_id: Optional[str] = None,
        outcome: ResolutionOutcome = ResolutionOutcome.RESOLVED,
    ) -> bool:
        """Clear the active slot, then tell the backend (best effort).

        Returns True when the slot was cleared locally, whatever the
        backend says.
        """
        try:
            active = self.store.get_active()
        except Exception:
            logger.exception("Could not read the active incident")
            active = None
        backend_id = self._backend_id(active, incident_id)

        cleared = False
        try:
            self.store.clear_active()
            cleared = True
        except Exception:
            logger.exception("Could not clear the active incident")
        self._cancel_pending_navigation()
        logger.info("Incident %s closed locally (%s)", backend_id or "?", outcome.label)

        if backend_id:
            self._notify_backend(backend_id)
        return cleared

    @staticmethod
    def _backend_id(active: Optional[IncidentNotification], incident_id: Optional[str]) -> str:
        if active is not None and (
            incident_id is None or incident_id in (active.id, active.incidente_id)
        ):
            return active.incidente_id
        return incident_id or ""

    def _notify_backend(self, incidente_id: str) -> bool:
        if self.backend is None:
            return False
        try:
            token = self.session.get_token()
        except Exception:
            logger.exception("Could not read session token")
            token = None
        if not token:
            logger.warning("No session token; backend not told about %s", incidente_id)
            return False
        try:
            return self.backend.resolve_incident(incidente_id, token)
        except Exception:
            logger.exception("Resolution notification for %s failed", incidente_id)
            return False

    def _current_role(self) -> Optional[str]:
        try:
            return self.session.get_role()
        except Exception:
            logger.exception("Could not read the session role")
            return None

    def has_active_incident(self) -> bool:
        return self.get_active_incident() is not None

    def get_active_incident(self) -> Optional[IncidentNotification]:
        """Active incident of a ``CLIENTE`` session, else None."""
        if self._current_role() != Role.CLIENTE.value:
            return None
        try:
            return self.store.get_active()
        except Exception:
            logger.exception("Could not read the active incident")
            return None

    def get_history(self) -> List[IncidentNotification]:
        try:
            return self.store.get_history()
        except Exception:
            logger.exception("Could not read incident history")
            return []

    def simulate_incident(self) -> IncidentNotification:
        """Inject a test incident as if it had just been pushed."""
        ts = now_ms()
        incident = IncidentNotification(
            id=f"test-{ts}",
            title="Incidente de Prueba",
            body="Este es un incidente simulado para testing del sistema de bloqueo.",
            data={"tipo": "incidente", "incidenteId": "INC-TEST-001", "prioridad": "ALTA"},
            timestamp=ts,
        )
        logger.warning("Simulating incident %s", incident.id)
        self._process_incident(incident)
        return incident
