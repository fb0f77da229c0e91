import json
from typing import Callable, List, Optional

import pytest

from cosaif import config
from cosaif.database import db
from cosaif.notifications.coordinator import BlockingCoordinator
from cosaif.notifications.navigation import PendingAlertPresenter, RecordingNavigator
from cosaif.notifications.scheduler import Scheduler
from cosaif.notifications.transport import AppLifecycle, LocalPushTransport
from cosaif.session.store import MemoryKeyValueStore


class FakeTask:
    def __init__(self, due: float, fn: Callable[[], None], interval: Optional[float] = None):
        self.due = due
        self.fn = fn
        self.interval = interval
        self.cancelled = False
        self.done = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.done)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Virtual clock; tasks only run inside :meth:`advance`."""

    def __init__(self):
        self.now = 0.0
        self.tasks: List[FakeTask] = []

    def call_later(self, delay, fn):
        task = FakeTask(self.now + delay, fn)
        self.tasks.append(task)
        return task

    def call_repeating(self, interval, fn):
        task = FakeTask(self.now + interval, fn, interval)
        self.tasks.append(task)
        return task

    def cancel_all(self):
        for task in self.tasks:
            task.cancel()

    def pending(self) -> List[FakeTask]:
        return [t for t in self.tasks if t.active]

    def advance(self, seconds: float) -> None:
        end = self.now + seconds
        while True:
            due = [t for t in self.tasks if t.active and t.due <= end]
            if not due:
                break
            task = min(due, key=lambda t: t.due)
            self.now = task.due
            if task.interval is None:
                task.done = True
            else:
                task.due += task.interval
            task.fn()
        self.now = end


class FakeBackend:
    def __init__(self, online: bool = True):
        self.online = online
        self.calls = []

    def resolve_incident(self, incidente_id, token):
        self.calls.append({"incidenteId": incidente_id, "token": token})
        if not self.online:
            raise ConnectionError("network unreachable")
        return True

    def close(self):
        pass


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "_SETTINGS_PATH", tmp_path / "app_settings.json")
    monkeypatch.delenv("COSAIF_API_BASE_URL", raising=False)
    monkeypatch.setenv("COSAIF_LOCAL_OS_NOTIFY", "0")
    db.set_db_path(str(tmp_path / "session.db"))
    yield
    db.set_db_path(None)


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def navigator():
    return RecordingNavigator(initial_route="Home")


@pytest.fixture
def alerts():
    return PendingAlertPresenter(os_notify=False)


@pytest.fixture
def transport():
    return LocalPushTransport()


@pytest.fixture
def lifecycle():
    return AppLifecycle()


@pytest.fixture
def coordinator(kv, transport, lifecycle, navigator, alerts, backend, scheduler):
    c = BlockingCoordinator(
        kv=kv,
        transport=transport,
        lifecycle=lifecycle,
        navigator=navigator,
        alerts=alerts,
        backend=backend,
        scheduler=scheduler,
    )
    yield c
    c.cleanup()


def login(kv, role: str, token: str = "tok-123") -> None:
    kv.set_item("user", json.dumps({"id": 7, "nombre": "Ana", "rol": role}))
    kv.set_item("token", token)


def incident_envelope(n: int = 1, **data) -> dict:
    payload = {"tipo": "incidente", "incidenteId": f"INC-{n}"}
    payload.update(data)
    return {
        "messageId": f"msg-{n}",
        "notification": {"title": f"Incidente en vía {n}", "body": "revisar"},
        "data": payload,
    }
