"""Full-screen incident resolution view (the ``Incidente`` route)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from PySide6.QtCore import Qt, QTimer, Signal
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from cosaif.notifications.gate import GatePhase, ResolutionGate
from cosaif.notifications.handler import IncidentHandler
from cosaif.notifications.models import IncidentNotification, ResolutionOutcome

logger = logging.getLogger(__name__)

# Client theme
PRIMARY_GREEN = "#3E8D63"
DARK_GREEN = "#2A6547"
LIGHT_GREEN = "#F0FFF4"
URGENT_RED = "#DC2626"
URGENT_BG = "#FEE2E2"
TEXT_COLOR = "#2D3748"
TEXT_LIGHT = "#718096"

DEFAULT_TEXT = (
    "Se ha detectado un incidente que requiere su atención inmediata. "
    "Por favor, revise la información y tome las acciones necesarias."
)


def _received_at(ts_ms: int) -> str:
    try:
        return datetime.fromtimestamp(ts_ms / 1000).strftime("%d/%m %H:%M")
    except (OverflowError, OSError, ValueError):
        return ""


class IncidentGateView(QWidget):
    """Countdown, incident details and the two resolution buttons."""

    resolved = Signal(str)

    def __init__(
        self,
        handler: IncidentHandler,
        duration: int,
        resolvable_at: int,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._handler = handler
        self._duration = duration
        self._resolvable_at = resolvable_at
        self._gate: Optional[ResolutionGate] = None

        self._timer = QTimer(self)
        self._timer.setInterval(1000)
        self._timer.timeout.connect(self._on_tick)  # type: ignore[arg-type]

        self.setStyleSheet(f"IncidentGateView {{ background: {DARK_GREEN}; }}")
        outer = QVBoxLayout()
        outer.setContentsMargins(16, 16, 16, 16)

        card = QFrame()
        card.setObjectName("card")
        card.setMaximumWidth(420)
        card.setStyleSheet("QFrame#card { background: #FFFFFF; border-radius: 20px; }")
        layout = QVBoxLayout()
        layout.setContentsMargins(24, 24, 24, 24)
        layout.setSpacing(12)

        self.timer_lbl = QLabel("--:--")
        self.timer_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        timer_caption = QLabel("Tiempo restante")
        timer_caption.setAlignment(Qt.AlignmentFlag.AlignCenter)
        timer_caption.setStyleSheet(f"color: {TEXT_LIGHT}; font-size: 12px;")

        heading = QLabel("\U0001F6A8 INCIDENTE DETECTADO")
        heading.setAlignment(Qt.AlignmentFlag.AlignCenter)
        heading.setStyleSheet(f"font-size: 24px; font-weight: bold; color: {DARK_GREEN};")

        self.title_lbl = QLabel()
        self.title_lbl.setWordWrap(True)
        self.title_lbl.setStyleSheet(f"font-size: 18px; font-weight: bold; color: {DARK_GREEN};")
        self.body_lbl = QLabel()
        self.body_lbl.setWordWrap(True)
        self.body_lbl.setStyleSheet(f"font-size: 15px; color: {TEXT_COLOR};")
        self.received_lbl = QLabel()
        self.received_lbl.setStyleSheet(f"font-size: 13px; color: {TEXT_LIGHT}; font-style: italic;")

        info_lbl = QLabel(DEFAULT_TEXT)
        info_lbl.setWordWrap(True)
        info_lbl.setStyleSheet(
            f"background: #F8F9FA; border-radius: 10px; padding: 14px; color: {TEXT_COLOR};"
        )

        self.resolve_btn = QPushButton("Resuelto")
        self.resolve_btn.setStyleSheet(
            f"QPushButton {{ background: {PRIMARY_GREEN}; color: #FFF; border-radius: 10px; "
            f"padding: 12px; font-weight: 600; }}"
        )
        self.resolve_btn.clicked.connect(  # type: ignore[arg-type]
            lambda: self._ask(ResolutionOutcome.RESOLVED)
        )
        self.failed_btn = QPushButton("No se pudo completar")
        self.failed_btn.setStyleSheet(
            f"QPushButton {{ background: #FFF; color: {URGENT_RED}; border: 2px solid {URGENT_RED}; "
            f"border-radius: 10px; padding: 12px; font-weight: 600; }}"
        )
        self.failed_btn.clicked.connect(  # type: ignore[arg-type]
            lambda: self._ask(ResolutionOutcome.NOT_COMPLETED)
        )
        self.buttons = QWidget()
        buttons_row = QHBoxLayout()
        buttons_row.setContentsMargins(0, 16, 0, 0)
        buttons_row.addWidget(self.resolve_btn)
        buttons_row.addWidget(self.failed_btn)
        self.buttons.setLayout(buttons_row)
        self.buttons.setVisible(False)

        layout.addWidget(self.timer_lbl)
        layout.addWidget(timer_caption)
        layout.addWidget(heading)
        layout.addWidget(self.title_lbl)
        layout.addWidget(self.body_lbl)
        layout.addWidget(self.received_lbl)
        layout.addWidget(info_lbl)
        layout.addWidget(self.buttons)
        card.setLayout(layout)

        outer.addStretch()
        outer.addWidget(card, alignment=Qt.AlignmentFlag.AlignHCenter)
        outer.addStretch()
        self.setLayout(outer)

    # ── navigation hooks ──

    def on_enter(self, params: dict) -> None:
        self._handler.refresh()
        incident = self._handler.active_incident
        if incident is None and params.get("notificationData"):
            incident = IncidentNotification.from_dict(params["notificationData"])
        self._show_incident(incident)
        self._gate = ResolutionGate(
            self._finish, duration=self._duration, resolvable_at=self._resolvable_at,
        )
        self._render()
        self._timer.start()

    def on_leave(self) -> None:
        self._timer.stop()
        if self._gate is not None:
            self._gate.stop()

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Escape:
            event.ignore()
            return
        super().keyPressEvent(event)

    # ── internals ──

    def _show_incident(self, incident: Optional[IncidentNotification]) -> None:
        if incident is None:
            self.title_lbl.setText("Incidente")
            self.body_lbl.setText("")
            self.received_lbl.setText("")
            return
        self.title_lbl.setText(incident.title)
        self.body_lbl.setText(incident.body)
        self.received_lbl.setText(f"Recibido: {_received_at(incident.timestamp)}")

    def _on_tick(self) -> None:
        if self._gate is None:
            return
        phase = self._gate.tick()
        self._render()
        if phase is GatePhase.EXPIRED:
            self._timer.stop()

    def _render(self) -> None:
        gate = self._gate
        if gate is None:
            return
        colour, bg = (URGENT_RED, URGENT_BG) if gate.urgent else (PRIMARY_GREEN, LIGHT_GREEN)
        self.timer_lbl.setText(gate.display)
        self.timer_lbl.setStyleSheet(
            f"font-size: 32px; font-weight: bold; font-family: monospace; color: {colour}; "
            f"background: {bg}; border: 2px solid {PRIMARY_GREEN}; border-radius: 16px; padding: 8px;"
        )
        self.buttons.setVisible(gate.buttons_visible)

    def _ask(self, outcome: ResolutionOutcome) -> None:
        if self._gate is None:
            return
        prompt = self._gate.request_resolution(outcome)
        reply = QMessageBox.question(
            self,
            prompt.title,
            prompt.message,
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.Cancel,
            QMessageBox.StandardButton.Cancel,
        )
        if reply == QMessageBox.StandardButton.Yes:
            self._gate.confirm(outcome)

    def _finish(self, outcome: ResolutionOutcome) -> None:
        self._timer.stop()
        self._handler.resolve(outcome)
        logger.info("Incident gate closed: %s", outcome.label)
        self.resolved.emit(outcome.value)
