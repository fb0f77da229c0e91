"""Push delivery and application lifecycle ports.

``LocalPushTransport`` is the in-process transport: whatever receives
messages (the HTTP ingress, a test, the desktop shell) calls
:meth:`LocalPushTransport.deliver` and every subscriber of that delivery
context is called on the *calling* thread.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from cosaif.notifications.models import AppState, DeliveryContext

logger = logging.getLogger(__name__)

Envelope = Mapping[str, Any]
MessageHandler = Callable[[Envelope], None]
StateHandler = Callable[[AppState], None]
Unsubscribe = Callable[[], None]


class _ListenerSet:
    """Thread-safe listener list; callbacks fire outside the lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: List[Callable] = []

    def add(self, fn: Callable) -> Unsubscribe:
        with self._lock:
            if fn not in self._listeners:
                self._listeners.append(fn)

        def _remove() -> None:
            with self._lock:
                try:
                    self._listeners.remove(fn)
                except ValueError:
                    pass

        return _remove

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def fire(self, *args: Any) -> int:
        with self._lock:
            snapshot = list(self._listeners)
        for fn in snapshot:
            try:
                fn(*args)
            except Exception:
                logger.exception("Listener %r failed", fn)
        return len(snapshot)


class PushTransport:
    """Push messaging port (three delivery contexts)."""

    def on_message(self, handler: MessageHandler) -> Unsubscribe:
        """Foreground messages."""
        raise NotImplementedError

    def on_notification_opened(self, handler: MessageHandler) -> Unsubscribe:
        """User tapped a notification while the app was in the background."""
        raise NotImplementedError

    def get_initial_notification(self) -> Optional[Envelope]:
        """Message that cold-started the app, if any (consumed once)."""
        raise NotImplementedError


class LocalPushTransport(PushTransport):
    def __init__(self) -> None:
        self._foreground = _ListenerSet()
        self._opened = _ListenerSet()
        self._initial: Optional[Envelope] = None
        self._lock = threading.Lock()

    def on_message(self, handler: MessageHandler) -> Unsubscribe:
        return self._foreground.add(handler)

    def on_notification_opened(self, handler: MessageHandler) -> Unsubscribe:
        return self._opened.add(handler)

    def get_initial_notification(self) -> Optional[Envelope]:
        with self._lock:
            envelope, self._initial = self._initial, None
        return envelope

    def set_initial_notification(self, envelope: Optional[Envelope]) -> None:
        with self._lock:
            self._initial = envelope

    def deliver(self, envelope: Envelope, context: DeliveryContext = DeliveryContext.FOREGROUND) -> int:
        """Hand *envelope* to subscribers; returns how many were called.

        A cold-start delivery is stored for :meth:`get_initial_notification`
        instead of being fanned out.
        """
        if context is DeliveryContext.COLD_START:
            self.set_initial_notification(envelope)
            return 0
        listeners = self._foreground if context is DeliveryContext.FOREGROUND else self._opened
        count = listeners.fire(envelope)
        if count == 0:
            logger.info("Push delivered (%s) with no subscribers", context.value)
        return count

    def subscriber_count(self) -> Dict[str, int]:
        return {
            DeliveryContext.FOREGROUND.value: len(self._foreground),
            DeliveryContext.BACKGROUND_TAP.value: len(self._opened),
        }


class AppLifecycle:
    """Foreground/background state with change listeners."""

    def __init__(self, initial: AppState = AppState.ACTIVE) -> None:
        self._state = initial
        self._lock = threading.Lock()
        self._listeners = _ListenerSet()

    @property
    def state(self) -> AppState:
        return self._state

    def add_listener(self, handler: StateHandler) -> Unsubscribe:
        return self._listeners.add(handler)

    def set_state(self, state: AppState) -> bool:
        """Record *state*; listeners only hear about actual changes."""
        with self._lock:
            if state == self._state:
                return False
            self._state = state
        logger.info("App state changed to %s", state.value)
        self._listeners.fire(state)
        return True
