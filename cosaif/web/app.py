"""Headless HTTP surface.

Receives push envelopes (e.g. from a relay that subscribes to the push
service on the device's behalf), forwards lifecycle transitions, and
exposes the incident state for inspection and resolution.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from cosaif.bootstrap import Services, bootstrap, shutdown
from cosaif.notifications.models import (
    AppState,
    DeliveryContext,
    IncidentNotification,
    ResolutionOutcome,
)
from cosaif.notifications.navigation import PendingAlertPresenter, RecordingNavigator
from cosaif.session.store import SessionState

logger = logging.getLogger(__name__)


class PushIn(BaseModel):
    messageId: Optional[str] = None
    notification: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    context: DeliveryContext = DeliveryContext.FOREGROUND


class AppStateIn(BaseModel):
    state: AppState


class ResolveIn(BaseModel):
    incidentId: Optional[str] = None
    outcome: ResolutionOutcome = ResolutionOutcome.RESOLVED


class SessionIn(BaseModel):
    user: Dict[str, Any]
    token: str


def _services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="service not started")
    return services


def _incident_json(incident: Optional[IncidentNotification]) -> Optional[Dict[str, Any]]:
    return incident.to_dict() if incident is not None else None


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app.  Without *services* the startup hook bootstraps them."""
    app = FastAPI(title="Cosaif incident service")
    app.state.services = services

    @app.on_event("startup")
    def startup() -> None:
        if app.state.services is None:
            app.state.services = bootstrap()
            app.state.owns_services = True
        else:
            app.state.services.coordinator.initialize()
            app.state.owns_services = False

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        svc = app.state.services
        if svc is None:
            return
        if getattr(app.state, "owns_services", False):
            shutdown()
        else:
            svc.coordinator.cleanup()
            svc.scheduler.cancel_all()

    @app.post("/api/push")
    def receive_push(body: PushIn, request: Request) -> dict:
        svc = _services(request)
        envelope = {
            "messageId": body.messageId,
            "notification": body.notification,
            "data": body.data,
        }
        notification = IncidentNotification.from_envelope(envelope)
        is_incident = svc.coordinator.classifier.is_incident(notification)
        if body.context is DeliveryContext.COLD_START and svc.coordinator.initialized:
            # The initial notification is only read by initialize().
            svc.coordinator.handle_envelope(envelope, DeliveryContext.COLD_START)
            delivered = 1
        else:
            delivered = svc.transport.deliver(envelope, body.context)
        return {
            "context": body.context.value,
            "delivered": delivered,
            "incident": is_incident,
            "notification": notification.to_dict(),
        }

    @app.post("/api/app-state")
    def set_app_state(body: AppStateIn, request: Request) -> dict:
        svc = _services(request)
        changed = svc.lifecycle.set_state(body.state)
        return {"state": svc.lifecycle.state.value, "changed": changed}

    @app.get("/api/incidents/active")
    def active_incident(request: Request) -> dict:
        incident = _services(request).coordinator.get_active_incident()
        return {"blocked": incident is not None, "incident": _incident_json(incident)}

    @app.get("/api/incidents/history")
    def incident_history(request: Request) -> dict:
        history = _services(request).coordinator.get_history()
        return {"incidents": [i.to_dict() for i in history]}

    @app.post("/api/incidents/resolve")
    def resolve_incident(body: ResolveIn, request: Request) -> dict:
        coordinator = _services(request).coordinator
        if not coordinator.has_active_incident():
            raise HTTPException(status_code=404, detail="no active incident")
        cleared = coordinator.resolve_incident(body.incidentId, body.outcome)
        return {"resolved": cleared, "outcome": body.outcome.value}

    @app.post("/api/incidents/simulate")
    def simulate_incident(request: Request) -> dict:
        incident = _services(request).coordinator.simulate_incident()
        return {"incident": incident.to_dict()}

    @app.post("/api/session")
    def login(body: SessionIn, request: Request) -> dict:
        svc = _services(request)
        SessionState(svc.kv).login(body.user, body.token)
        svc.coordinator.check_pending_incident()
        return {"role": body.user.get("rol")}

    @app.delete("/api/session")
    def logout(request: Request) -> dict:
        SessionState(_services(request).kv).logout()
        return {"status": "logged_out"}

    @app.get("/api/navigation")
    def navigation(request: Request) -> dict:
        navigator = _services(request).navigator
        result: Dict[str, Any] = {
            "ready": navigator.is_ready(),
            "current_route": navigator.current_route(),
        }
        if isinstance(navigator, RecordingNavigator):
            result["history"] = [
                {"route": e.route, "params": e.params} for e in navigator.history
            ]
        return result

    @app.get("/api/alerts/pending")
    def pending_alert(request: Request) -> dict:
        alerts = _services(request).alerts
        pending = alerts.pending if isinstance(alerts, PendingAlertPresenter) else None
        if pending is None:
            return {"pending": False}
        return {
            "pending": True,
            "title": pending.title,
            "message": pending.message,
            "action": pending.action_label,
        }

    @app.post("/api/alerts/confirm")
    def confirm_alert(request: Request) -> dict:
        alerts = _services(request).alerts
        if not isinstance(alerts, PendingAlertPresenter) or not alerts.confirm():
            raise HTTPException(status_code=404, detail="no pending alert")
        return {"confirmed": True}

    return app


app = create_app()
