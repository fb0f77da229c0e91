"""Navigation and alert ports, with the headless implementations."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from cosaif.config import local_os_notifications_enabled

logger = logging.getLogger(__name__)


class NavigationNotReady(RuntimeError):
    """The navigation tree is not mounted yet."""


class Navigator:
    def is_ready(self) -> bool:
        raise NotImplementedError

    def navigate(self, route: str, params: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError

    def current_route(self) -> Optional[str]:
        raise NotImplementedError


@dataclass
class NavigationEvent:
    route: str
    params: Dict[str, Any] = field(default_factory=dict)


class RecordingNavigator(Navigator):
    """Route stack kept in memory; used by the headless service and tests."""

    def __init__(self, initial_route: Optional[str] = None, ready: bool = True) -> None:
        self._lock = threading.Lock()
        self._ready = ready
        self._stack: List[str] = [initial_route] if initial_route else []
        self.history: List[NavigationEvent] = []

    def set_ready(self, ready: bool) -> None:
        self._ready = ready

    def is_ready(self) -> bool:
        return self._ready

    def navigate(self, route: str, params: Optional[Dict[str, Any]] = None) -> None:
        if not self._ready:
            raise NavigationNotReady(f"cannot navigate to {route!r}: navigator not ready")
        with self._lock:
            self._stack.append(route)
            self.history.append(NavigationEvent(route, dict(params or {})))
        logger.info("Navigated to %s", route)

    def go_back(self) -> Optional[str]:
        with self._lock:
            if len(self._stack) > 1:
                self._stack.pop()
            return self._stack[-1] if self._stack else None

    def current_route(self) -> Optional[str]:
        with self._lock:
            return self._stack[-1] if self._stack else None


class AlertPresenter:
    def show_blocking_alert(
        self,
        title: str,
        message: str,
        action_label: str,
        on_confirm: Callable[[], None],
    ) -> None:
        """Show a non-cancellable alert whose single action runs *on_confirm*."""
        raise NotImplementedError


@dataclass
class PendingAlert:
    title: str
    message: str
    action_label: str
    on_confirm: Callable[[], None]


class PendingAlertPresenter(AlertPresenter):
    """Keeps the latest alert until someone confirms it.

    Also posts a best-effort local OS notification when enabled.
    """

    def __init__(self, os_notify: Optional[bool] = None) -> None:
        self._lock = threading.Lock()
        self.pending: Optional[PendingAlert] = None
        self._os_notify = os_notify

    def show_blocking_alert(self, title, message, action_label, on_confirm) -> None:
        with self._lock:
            self.pending = PendingAlert(title, message, action_label, on_confirm)
        logger.warning("%s: %s", title, message.replace("\n", " "))
        self._notify_os(title, message)

    def confirm(self) -> bool:
        """Press the alert's only button.  False when nothing is pending."""
        with self._lock:
            alert, self.pending = self.pending, None
        if alert is None:
            return False
        alert.on_confirm()
        return True

    def _notify_os(self, title: str, message: str) -> bool:
        enabled = local_os_notifications_enabled() if self._os_notify is None else self._os_notify
        if not enabled:
            return False
        try:
            from plyer import notification as plyer_notification

            plyer_notification.notify(
                title=title,
                message=message[:300],
                app_name="Cosaif",
                timeout=8,
            )
            return True
        except Exception as exc:
            logger.debug("Local OS notification unavailable: %s", exc)
            return False
