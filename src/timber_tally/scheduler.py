from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

WORKER_THREAD_PREFIX = "timber-tally"


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """
    Minimal interface for running a callback after a delay.

    Tests inject a fake with a virtual clock instead of waiting in real time.
    """
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class ThreadingScheduler:
    """
    Runs each callback on its own daemon `threading.Timer` thread.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        timer = threading.Timer(delay, callback)
        timer.name = f"{WORKER_THREAD_PREFIX}-timer"
        timer.daemon = True
        timer.start()
        return timer


class DebounceTimer:
    """
    Cancellable scheduled task that coalesces bursts of triggers.

    Every `arm()` cancels the previous schedule and starts a fresh delay
    window, so the callback runs once, `delay` seconds after the last call.
    A timer that already started firing when it was re-armed or cancelled is
    recognised by its token and ignored.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        delay: float,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._callback = callback
        self.delay = delay
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._handle: Cancellable | None = None
        self._token = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._token += 1
            token = self._token
            self._handle = self._scheduler.call_later(self.delay, lambda: self._fire(token))
        logger.debug("Debounce armed for %.3fs", self.delay)

    def cancel(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            self._token += 1

    def _fire(self, token: int) -> None:
        with self._lock:
            if token != self._token:
                return
            self._handle = None
        self._callback()
