import json

from conftest import FakeBackend, ManualScheduler, incident_envelope, login

from cosaif.notifications.coordinator import BlockingCoordinator
from cosaif.notifications.models import (
    ActiveIncidentPolicy,
    AppState,
    DeliveryContext,
    ResolutionOutcome,
)
from cosaif.notifications.navigation import PendingAlertPresenter, RecordingNavigator
from cosaif.notifications.transport import AppLifecycle, LocalPushTransport
from cosaif.session.store import KeyValueStore, MemoryKeyValueStore, SessionState


def test_initialize_is_idempotent(coordinator, transport, caplog):
    coordinator.initialize()
    coordinator.initialize()
    assert transport.subscriber_count() == {"foreground": 1, "background_tap": 1}
    assert "already initialized" in caplog.text


def test_cleanup_unsubscribes_and_resets(coordinator, transport, lifecycle, kv, navigator, scheduler):
    login(kv, "CLIENTE")
    coordinator.initialize()
    coordinator.cleanup()
    assert not coordinator.initialized
    assert transport.subscriber_count() == {"foreground": 0, "background_tap": 0}
    transport.deliver(incident_envelope())
    assert kv.get_item("active_incident") is None
    lifecycle.set_state(AppState.BACKGROUND)
    lifecycle.set_state(AppState.ACTIVE)
    assert scheduler.pending() == []


def test_non_incident_push_is_ignored(coordinator, transport, kv, alerts):
    login(kv, "CLIENTE")
    coordinator.initialize()
    transport.deliver({"notification": {"title": "Hola", "body": "buen día"}})
    assert kv.get_item("active_incident") is None
    assert kv.get_item("incident_history") is None
    assert alerts.pending is None


def test_client_incident_sets_active_and_alerts(coordinator, transport, kv, alerts, navigator):
    login(kv, "CLIENTE")
    coordinator.initialize()
    transport.deliver(incident_envelope(1))
    active = coordinator.get_active_incident()
    assert active.incidente_id == "INC-1"
    assert alerts.pending.action_label == "Ir a Incidentes"
    assert "Incidente en vía 1" in alerts.pending.message

    assert alerts.confirm()
    assert navigator.current_route() == "Incidente"
    params = navigator.history[-1].params
    assert params["incidenteId"] == "INC-1"
    assert params["fromNotification"] is True
    assert params["notificationData"]["id"] == "msg-1"


def test_non_client_role_records_history_only(coordinator, transport, kv, alerts, navigator, scheduler):
    login(kv, "SUPERVISOR")
    coordinator.initialize()
    transport.deliver(incident_envelope(1))
    assert kv.get_item("active_incident") is None
    assert [i.id for i in coordinator.get_history()] == ["msg-1"]
    assert alerts.pending is None
    scheduler.advance(5)
    assert navigator.history == []
    assert not coordinator.has_active_incident()


def test_no_session_is_not_blocked(coordinator, kv, alerts):
    coordinator.handle_envelope(incident_envelope(1))
    assert kv.get_item("active_incident") is None
    assert alerts.pending is None


def test_logout_does_not_clear_active_incident(coordinator, kv, scheduler, navigator, backend):
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(1))
    SessionState(kv).logout()
    assert not coordinator.has_active_incident()

    login(kv, "CLIENTE")
    assert coordinator.get_active_incident().incidente_id == "INC-1"
    assert coordinator.check_pending_incident()
    scheduler.advance(1.5)
    assert navigator.current_route() == "Incidente"
    assert backend.calls == []


def test_second_incident_overwrites_active(coordinator, kv):
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(1))
    coordinator.handle_envelope(incident_envelope(2))
    assert coordinator.get_active_incident().incidente_id == "INC-2"
    assert [i.id for i in coordinator.get_history()] == ["msg-2", "msg-1"]


def test_keep_existing_policy_keeps_first(kv, transport, lifecycle, navigator, alerts, backend, scheduler):
    coordinator = BlockingCoordinator(
        kv, transport, lifecycle, navigator, alerts, backend, scheduler,
        policy=ActiveIncidentPolicy.KEEP_EXISTING,
    )
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(1))
    alerts.confirm()
    coordinator.handle_envelope(incident_envelope(2))
    assert coordinator.get_active_incident().incidente_id == "INC-1"
    assert alerts.pending is None
    assert len(coordinator.get_history()) == 2


def test_cold_start_notification_is_processed(coordinator, transport, kv, scheduler, navigator):
    login(kv, "CLIENTE")
    transport.deliver(incident_envelope(3), DeliveryContext.COLD_START)
    coordinator.initialize()
    assert coordinator.get_active_incident().incidente_id == "INC-3"
    scheduler.advance(1.5)
    assert navigator.current_route() == "Incidente"
    assert transport.get_initial_notification() is None


def test_background_tap_is_handled(coordinator, transport, kv):
    login(kv, "CLIENTE")
    coordinator.initialize()
    transport.deliver(incident_envelope(4), DeliveryContext.BACKGROUND_TAP)
    assert coordinator.has_active_incident()


def test_foreground_schedules_single_navigation(coordinator, lifecycle, kv, scheduler, navigator):
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(1))
    coordinator.initialize()
    scheduler.advance(1.5)
    navigations = len(navigator.history)
    assert navigations == 1

    navigator.go_back()
    lifecycle.set_state(AppState.BACKGROUND)
    lifecycle.set_state(AppState.ACTIVE)
    lifecycle.set_state(AppState.INACTIVE)
    lifecycle.set_state(AppState.ACTIVE)
    assert len(scheduler.pending()) == 1
    scheduler.advance(1.0)
    assert len(navigator.history) == navigations
    scheduler.advance(1.0)
    assert len(navigator.history) == navigations + 1
    scheduler.advance(10)
    assert len(navigator.history) == navigations + 1


def test_no_navigation_when_already_on_incident_screen(coordinator, kv, scheduler, navigator):
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(1))
    navigator.navigate("Incidente", {})
    assert coordinator.check_pending_incident() is False
    assert scheduler.pending() == []


def test_cleanup_cancels_pending_navigation(coordinator, kv, scheduler, navigator):
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(1))
    coordinator.initialize()
    assert len(scheduler.pending()) == 1
    coordinator.cleanup()
    scheduler.advance(5)
    assert navigator.history == []


def test_navigation_skipped_when_resolved_before_firing(coordinator, kv, scheduler, navigator):
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(1))
    coordinator.check_pending_incident()
    coordinator.store.clear_active()
    scheduler.advance(2)
    assert navigator.history == []


def test_navigator_not_ready_is_logged(coordinator, kv, navigator, caplog):
    login(kv, "CLIENTE")
    navigator.set_ready(False)
    incident = coordinator.handle_envelope(incident_envelope(1))
    assert coordinator.navigate_to_incident(incident) is False
    assert "Cannot open the incident screen" in caplog.text


def test_resolve_clears_and_notifies_backend(coordinator, kv, backend):
    login(kv, "CLIENTE", token="jwt")
    coordinator.handle_envelope(incident_envelope(5))
    assert coordinator.resolve_incident("msg-5", ResolutionOutcome.RESOLVED)
    assert not coordinator.has_active_incident()
    assert backend.calls == [{"incidenteId": "INC-5", "token": "jwt"}]


def test_resolve_offline_still_clears(kv, transport, lifecycle, navigator, alerts, scheduler):
    offline = FakeBackend(online=False)
    coordinator = BlockingCoordinator(kv, transport, lifecycle, navigator, alerts, offline, scheduler)
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(6))
    assert coordinator.resolve_incident() is True
    assert coordinator.has_active_incident() is False
    assert offline.calls[0]["incidenteId"] == "INC-6"


def test_resolve_without_token_skips_backend(coordinator, kv, backend):
    login(kv, "CLIENTE")
    kv.remove_item("token")
    coordinator.handle_envelope(incident_envelope(7))
    coordinator.resolve_incident()
    assert backend.calls == []
    assert kv.get_item("active_incident") is None


def test_resolve_unknown_id_is_sent_as_given(coordinator, kv, backend):
    login(kv, "CLIENTE")
    coordinator.handle_envelope(incident_envelope(8))
    coordinator.resolve_incident("OTHER-1")
    assert backend.calls[0]["incidenteId"] == "OTHER-1"


class BrokenStore(KeyValueStore):
    def get_item(self, key):
        raise OSError("disk gone")

    def set_item(self, key, value):
        raise OSError("disk gone")

    def remove_item(self, key):
        raise OSError("disk gone")

    def keys(self):
        return []


def test_storage_failures_fail_open(transport, lifecycle, navigator, alerts, backend, scheduler):
    coordinator = BlockingCoordinator(BrokenStore(), transport, lifecycle, navigator, alerts, backend, scheduler)
    coordinator.initialize()
    transport.deliver(incident_envelope(1))
    assert coordinator.has_active_incident() is False
    assert coordinator.get_history() == []
    assert coordinator.resolve_incident("x") is False
    assert alerts.pending is None
    coordinator.cleanup()


def test_simulate_incident(coordinator, kv, alerts):
    login(kv, "CLIENTE")
    incident = coordinator.simulate_incident()
    assert incident.incidente_id == "INC-TEST-001"
    assert incident.prioridad == "ALTA"
    assert coordinator.get_active_incident().id == incident.id
    assert alerts.pending is not None


def test_end_to_end_client_scenario():
    kv = MemoryKeyValueStore()
    kv.set_item("user", json.dumps({"rol": "CLIENTE"}))
    kv.set_item("token", "t-1")
    transport = LocalPushTransport()
    lifecycle = AppLifecycle()
    navigator = RecordingNavigator(initial_route="Cliente")
    alerts = PendingAlertPresenter(os_notify=False)
    backend = FakeBackend(online=False)
    scheduler = ManualScheduler()
    coordinator = BlockingCoordinator(kv, transport, lifecycle, navigator, alerts, backend, scheduler)
    coordinator.initialize()

    transport.deliver({
        "notification": {"title": "Incidente en vía 3", "body": "revisar"},
        "data": {"tipo": "incidente", "incidenteId": "INC-1"},
    })
    stored = json.loads(kv.get_item("active_incident"))
    assert stored["title"] == "Incidente en vía 3"
    assert stored["data"]["incidenteId"] == "INC-1"

    lifecycle.set_state(AppState.BACKGROUND)
    lifecycle.set_state(AppState.ACTIVE)
    scheduler.advance(1.5)
    lifecycle.set_state(AppState.BACKGROUND)
    lifecycle.set_state(AppState.ACTIVE)
    scheduler.advance(5)
    incident_navs = [e for e in navigator.history if e.route == "Incidente"]
    assert len(incident_navs) == 1

    assert coordinator.resolve_incident(stored["id"], ResolutionOutcome.RESOLVED)
    assert kv.get_item("active_incident") is None
    assert backend.calls == [{"incidenteId": "INC-1", "token": "t-1"}]
    coordinator.cleanup()
