"""Main desktop window: home screen plus the incident gate."""
from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QApplication,
    QLabel,
    QMainWindow,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from cosaif import config
from cosaif.bootstrap import Services
from cosaif.notifications.handler import IncidentHandler
from cosaif.notifications.models import INCIDENT_ROUTE, AppState
from cosaif.session.store import SessionState
from cosaif.ui.gate_view import IncidentGateView
from cosaif.ui.navigator import QtAlertPresenter, StackNavigator

logger = logging.getLogger(__name__)

HOME_ROUTE = "Home"

_APP_STATES = {
    Qt.ApplicationState.ApplicationActive: AppState.ACTIVE,
    Qt.ApplicationState.ApplicationInactive: AppState.INACTIVE,
    Qt.ApplicationState.ApplicationHidden: AppState.BACKGROUND,
    Qt.ApplicationState.ApplicationSuspended: AppState.BACKGROUND,
}


class HomeView(QWidget):
    """Landing screen: who is logged in, and a way to test the lock."""

    def __init__(self, services: Services, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._services = services
        self.role_lbl = QLabel()
        self.role_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.role_lbl.setStyleSheet("font-size: 16px; color: #2D3748;")
        simulate_btn = QPushButton("Simular incidente")
        simulate_btn.clicked.connect(self._simulate)  # type: ignore[arg-type]

        layout = QVBoxLayout()
        layout.addStretch()
        layout.addWidget(self.role_lbl)
        layout.addWidget(simulate_btn, alignment=Qt.AlignmentFlag.AlignHCenter)
        layout.addStretch()
        self.setLayout(layout)

    def on_enter(self, params: dict) -> None:
        role = SessionState(self._services.kv).get_role()
        self.role_lbl.setText(f"Sesión: {role}" if role else "Sin sesión iniciada")

    def _simulate(self) -> None:
        self._services.coordinator.simulate_incident()


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("Cosaif")
        self.resize(480, 800)
        self.stack = QStackedWidget()
        self.setCentralWidget(self.stack)
        self.navigator = StackNavigator(self.stack, self)
        self.alerts = QtAlertPresenter(self)
        self.navigator.route_changed.connect(self._on_route_changed)  # type: ignore[arg-type]
        self._services: Optional[Services] = None
        self._handler: Optional[IncidentHandler] = None

    def attach(self, services: Services) -> None:
        """Register the screens once the services exist."""
        self._services = services
        self._handler = IncidentHandler(services.coordinator)
        self.navigator.register(HOME_ROUTE, HomeView(services))
        gate = IncidentGateView(
            self._handler,
            duration=config.get_gate_duration(),
            resolvable_at=config.get_gate_resolvable_at(),
        )
        gate.resolved.connect(self._on_resolved)  # type: ignore[arg-type]
        self.navigator.register(INCIDENT_ROUTE, gate)

        app = QApplication.instance()
        if app is not None:
            app.applicationStateChanged.connect(self._on_app_state)  # type: ignore[attr-defined]

    def start(self) -> None:
        """Show the home screen and let the coordinator navigate."""
        self.navigator.mark_ready()
        self.navigator.navigate(HOME_ROUTE)
        if self._services is not None:
            self._services.coordinator.check_pending_incident()

    def _on_app_state(self, state) -> None:
        mapped = _APP_STATES.get(state)
        if mapped is not None and self._services is not None:
            self._services.lifecycle.set_state(mapped)

    def _on_route_changed(self, route: str) -> None:
        self.statusBar().showMessage(route)

    def _on_resolved(self, outcome: str) -> None:
        self.navigator.navigate(HOME_ROUTE)

    def closeEvent(self, event: QCloseEvent) -> None:  # type: ignore[override]
        if self._handler is not None and self._handler.refresh():
            logger.info("Close ignored: incident pending")
            self.statusBar().showMessage("Atienda el incidente antes de salir")
            event.ignore()
            if self.navigator.current_route() != INCIDENT_ROUTE:
                self.navigator.navigate(INCIDENT_ROUTE)
            return
        super().closeEvent(event)
