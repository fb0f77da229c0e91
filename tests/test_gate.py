import pytest

from cosaif.notifications.gate import GateLocked, GatePhase, ResolutionGate, format_time
from cosaif.notifications.models import ResolutionOutcome


@pytest.fixture
def outcomes():
    return []


@pytest.fixture
def gate(outcomes):
    return ResolutionGate(outcomes.append)


def test_initial_state(gate):
    assert gate.remaining == 600
    assert gate.phase is GatePhase.URGENT_WAIT
    assert not gate.buttons_visible
    assert not gate.dismissible
    assert gate.display == "10:00"


def test_buttons_appear_after_exactly_300_ticks(gate):
    for _ in range(299):
        gate.tick()
    assert gate.remaining == 301
    assert not gate.buttons_visible
    gate.tick()
    assert gate.remaining == 300
    assert gate.buttons_visible
    assert gate.phase is GatePhase.RESOLVABLE
    for _ in range(300):
        gate.tick()
        assert gate.buttons_visible


def test_expiry_stops_at_zero_without_action(gate, outcomes, caplog):
    for _ in range(650):
        gate.tick()
    assert gate.remaining == 0
    assert gate.phase is GatePhase.EXPIRED
    assert gate.display == "00:00"
    assert gate.buttons_visible
    assert not gate.closed
    assert outcomes == []
    assert "no action taken" in caplog.text


def test_expiry_hook_called_once():
    calls = []
    gate = ResolutionGate(lambda o: None, duration=3, resolvable_at=1, on_expired=lambda: calls.append(1))
    for _ in range(10):
        gate.tick()
    assert calls == [1]


def test_resolution_locked_before_resolvable(gate):
    with pytest.raises(GateLocked):
        gate.request_resolution(ResolutionOutcome.RESOLVED)
    with pytest.raises(GateLocked):
        gate.confirm(ResolutionOutcome.RESOLVED)


def test_confirmation_prompts(outcomes):
    gate = ResolutionGate(outcomes.append, duration=10, resolvable_at=10)
    resolved = gate.request_resolution(ResolutionOutcome.RESOLVED)
    assert resolved.title == "Incidente Resuelto"
    assert resolved.confirm_label == "Sí, resuelto"
    failed = gate.request_resolution(ResolutionOutcome.NOT_COMPLETED)
    assert failed.destructive
    assert outcomes == []


def test_confirm_resolves_once_and_closes(gate, outcomes):
    for _ in range(300):
        gate.tick()
    assert gate.confirm(ResolutionOutcome.NOT_COMPLETED)
    assert outcomes == [ResolutionOutcome.NOT_COMPLETED]
    assert gate.closed and gate.dismissible
    assert not gate.confirm(ResolutionOutcome.RESOLVED)
    remaining = gate.remaining
    gate.tick()
    assert gate.remaining == remaining
    assert outcomes == [ResolutionOutcome.NOT_COMPLETED]


def test_gate_driven_by_scheduler(scheduler, outcomes):
    gate = ResolutionGate(outcomes.append)
    gate.start(scheduler)
    scheduler.advance(300)
    assert gate.remaining == 300 and gate.buttons_visible
    gate.stop()
    scheduler.advance(100)
    assert gate.remaining == 300


def test_scheduler_task_stops_on_expiry(scheduler, outcomes):
    gate = ResolutionGate(outcomes.append, duration=5, resolvable_at=2)
    gate.start(scheduler)
    scheduler.advance(20)
    assert gate.phase is GatePhase.EXPIRED
    assert scheduler.pending() == []


@pytest.mark.parametrize("secs, text", [(600, "10:00"), (301, "05:01"), (59, "00:59"), (0, "00:00"), (-3, "00:00")])
def test_format_time(secs, text):
    assert format_time(secs) == text
