"""Cancellable delayed and repeating tasks.

Tasks run on daemon timer threads.  ``cancel_all()`` is what owners call on
teardown so that nothing scheduled by them fires afterwards.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)


class ScheduledTask:
    def __init__(self, fn: Callable[[], None], interval: float, repeat: bool = False) -> None:
        self.fn = fn
        self.interval = interval
        self.repeat = repeat
        self._lock = threading.Lock()
        self._cancelled = False
        self._done = False
        self._timer: Optional[threading.Timer] = None
        self._on_finish: Optional[Callable[["ScheduledTask"], None]] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._done)

    def cancel(self) -> None:
        with self._lock:
            if self._done:
                return
            self._cancelled = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        self._finish()

    def _arm(self) -> None:
        with self._lock:
            if self._cancelled or self._done:
                return
            timer = threading.Timer(self.interval, self._run)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _run(self) -> None:
        with self._lock:
            if self._cancelled:
                return
        try:
            self.fn()
        except Exception:
            logger.exception("Scheduled task %r failed", self.fn)
        if self.repeat:
            self._arm()
        else:
            with self._lock:
                self._done = True
            self._finish()

    def _finish(self) -> None:
        cb, self._on_finish = self._on_finish, None
        if cb is not None:
            cb(self)


class Scheduler:
    def call_later(self, delay: float, fn: Callable[[], None]) -> ScheduledTask:
        raise NotImplementedError

    def call_repeating(self, interval: float, fn: Callable[[], None]) -> ScheduledTask:
        raise NotImplementedError

    def cancel_all(self) -> None:
        raise NotImplementedError


class ThreadScheduler(Scheduler):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: Set[ScheduledTask] = set()

    def _start(self, task: ScheduledTask) -> ScheduledTask:
        task._on_finish = self._forget
        with self._lock:
            self._tasks.add(task)
        task._arm()
        return task

    def _forget(self, task: ScheduledTask) -> None:
        with self._lock:
            self._tasks.discard(task)

    def call_later(self, delay: float, fn: Callable[[], None]) -> ScheduledTask:
        return self._start(ScheduledTask(fn, max(0.0, delay)))

    def call_repeating(self, interval: float, fn: Callable[[], None]) -> ScheduledTask:
        return self._start(ScheduledTask(fn, max(0.001, interval), repeat=True))

    def pending_count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def cancel_all(self) -> None:
        with self._lock:
            tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelled %d scheduled task(s)", len(tasks))
