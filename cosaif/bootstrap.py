"""Shared bootstrap logic for the headless service and the desktop client."""

import atexit
import logging
import sys
import threading
import traceback
from dataclasses import dataclass
from typing import Optional

from cosaif import config
from cosaif.notifications.backend import IncidentBackend
from cosaif.notifications.classifier import build_classifier
from cosaif.notifications.coordinator import BlockingCoordinator
from cosaif.notifications.models import ActiveIncidentPolicy, AppState
from cosaif.notifications.navigation import (
    AlertPresenter,
    Navigator,
    PendingAlertPresenter,
    RecordingNavigator,
)
from cosaif.notifications.scheduler import Scheduler, ThreadScheduler
from cosaif.notifications.transport import AppLifecycle, LocalPushTransport
from cosaif.session.store import KeyValueStore, SqliteKeyValueStore

_services = None
_logger = logging.getLogger(__name__)


@dataclass
class Services:
    kv: KeyValueStore
    transport: LocalPushTransport
    lifecycle: AppLifecycle
    navigator: Navigator
    alerts: AlertPresenter
    scheduler: Scheduler
    backend: Optional[IncidentBackend]
    coordinator: BlockingCoordinator


def setup_logging():
    """Configure root logging from user config settings."""
    level = getattr(logging, config.get_log_level(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _thread_excepthook(args):
    """Log unhandled exceptions from background threads."""
    if args.exc_type is SystemExit:
        return
    _logger.error(
        "Unhandled exception in thread %s:\n%s",
        args.thread.name if args.thread else "<unknown>",
        "".join(
            traceback.format_exception(
                args.exc_type, args.exc_value, args.exc_traceback
            )
        ),
    )


def build_services(
    kv: Optional[KeyValueStore] = None,
    navigator: Optional[Navigator] = None,
    alerts: Optional[AlertPresenter] = None,
    scheduler: Optional[Scheduler] = None,
    backend: Optional[IncidentBackend] = None,
    transport: Optional[LocalPushTransport] = None,
) -> Services:
    """Assemble the pipeline from config; any part can be swapped in."""
    if kv is None:
        from cosaif.database.migrations import init_db

        init_db()
        kv = SqliteKeyValueStore()
    transport = transport or LocalPushTransport()
    lifecycle = AppLifecycle(AppState.ACTIVE)
    navigator = navigator or RecordingNavigator(initial_route="Home")
    alerts = alerts or PendingAlertPresenter()
    scheduler = scheduler or ThreadScheduler()
    if backend is None:
        backend = IncidentBackend(config.get_api_base_url())
    coordinator = BlockingCoordinator(
        kv=kv,
        transport=transport,
        lifecycle=lifecycle,
        navigator=navigator,
        alerts=alerts,
        backend=backend,
        scheduler=scheduler,
        classifier=build_classifier(config.get_classifier_mode(), config.get_incident_keywords()),
        policy=ActiveIncidentPolicy(config.get_active_incident_policy()),
        navigation_delay=config.get_navigation_delay(),
        history_limit=config.get_history_limit(),
    )
    return Services(
        kv=kv,
        transport=transport,
        lifecycle=lifecycle,
        navigator=navigator,
        alerts=alerts,
        scheduler=scheduler,
        backend=backend,
        coordinator=coordinator,
    )


def bootstrap(status_callback=None, **overrides):
    """Run shared initialisation sequence.

    Parameters
    ----------
    status_callback : callable, optional
        Called with a status string at each init stage (useful for splash
        screens).
    **overrides
        Forwarded to :func:`build_services`.

    Returns
    -------
    Services
    """
    global _services

    threading.excepthook = _thread_excepthook

    def _status(msg):
        _logger.info(msg)
        if status_callback:
            status_callback(msg)

    _status("Opening session store...")
    services = build_services(**overrides)

    _status("Starting incident listener...")
    services.coordinator.initialize()

    _services = services
    atexit.register(shutdown)
    return services


def shutdown():
    """Stop background services gracefully."""
    global _services
    if _services is None:
        return
    _logger.info("Stopping incident listener...")
    _services.coordinator.cleanup()
    _services.scheduler.cancel_all()
    if _services.backend is not None:
        _services.backend.close()
    _services = None
    from cosaif.database import db

    db.close_all()
