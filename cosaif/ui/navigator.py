"""Qt implementations of the navigation and alert ports.

Push callbacks and scheduled navigations arrive on worker threads; both
classes re-emit through a queued signal so widgets are only touched on
the GUI thread.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtWidgets import QMessageBox, QStackedWidget, QWidget

from cosaif.notifications.navigation import AlertPresenter, NavigationNotReady, Navigator

logger = logging.getLogger(__name__)

_QC = Qt.ConnectionType.QueuedConnection


class StackNavigator(QObject, Navigator):
    """Route registry over a ``QStackedWidget``.

    Screens may implement ``on_enter(params)`` and ``on_leave()``.
    """

    route_changed = Signal(str)
    _navigate_requested = Signal(str, object)

    def __init__(self, stack: QStackedWidget, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._stack = stack
        self._routes: Dict[str, QWidget] = {}
        self._current: Optional[str] = None
        self._ready = False
        self._lock = threading.Lock()
        self._navigate_requested.connect(self._apply, _QC)

    def register(self, route: str, widget: QWidget) -> None:
        self._routes[route] = widget
        self._stack.addWidget(widget)

    def mark_ready(self) -> None:
        """Call once the main window is shown."""
        self._ready = True
        logger.info("Navigator ready")

    def is_ready(self) -> bool:
        return self._ready

    def current_route(self) -> Optional[str]:
        with self._lock:
            return self._current

    def navigate(self, route: str, params: Optional[Dict[str, Any]] = None) -> None:
        if not self._ready:
            raise NavigationNotReady(f"cannot navigate to {route!r}: window not shown")
        if route not in self._routes:
            raise KeyError(f"unknown route {route!r}")
        with self._lock:
            self._current = route
        self._navigate_requested.emit(route, dict(params or {}))

    def _apply(self, route: str, params: dict) -> None:
        leaving = self._stack.currentWidget()
        target = self._routes[route]
        if leaving is not None and leaving is not target and hasattr(leaving, "on_leave"):
            leaving.on_leave()
        self._stack.setCurrentWidget(target)
        if hasattr(target, "on_enter"):
            target.on_enter(params)
        self.route_changed.emit(route)


class QtAlertPresenter(QObject, AlertPresenter):
    """Modal message box with a single button; closing it presses that button."""

    _show_requested = Signal(str, str, str, object)

    def __init__(self, window: Optional[QWidget] = None) -> None:
        super().__init__(window)
        self._window = window
        self._show_requested.connect(self._show, _QC)

    def show_blocking_alert(
        self,
        title: str,
        message: str,
        action_label: str,
        on_confirm: Callable[[], None],
    ) -> None:
        self._show_requested.emit(title, message, action_label, on_confirm)

    def _show(self, title: str, message: str, action_label: str, on_confirm: object) -> None:
        box = QMessageBox(self._window)
        box.setIcon(QMessageBox.Icon.Warning)
        box.setWindowTitle(title)
        box.setText(message)
        box.addButton(action_label, QMessageBox.ButtonRole.AcceptRole)
        box.setWindowFlags(box.windowFlags() & ~Qt.WindowType.WindowCloseButtonHint)
        box.exec()
        try:
            on_confirm()  # type: ignore[operator]
        except Exception:
            logger.exception("Alert action failed")
