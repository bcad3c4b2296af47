from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Mapping

from ..counters import StockCounter

OnChange = Callable[[dict[str, StockCounter]], None]


class InMemoryStockStore:
    """
    Process-local stock store.

    Holds a single document and notifies subscribers synchronously, in
    subscription order, after every write or reset. Subscribing delivers
    the current snapshot straight away, the way a live document listener
    does.

    Useful for tests and for wiring several reconcilers together in one
    process; nothing is persisted.
    """

    def __init__(self, initial: Mapping[str, StockCounter] | None = None) -> None:
        self._lock = threading.RLock()
        self._counters: dict[str, StockCounter] = dict(initial or {})
        self._subscribers: list[OnChange] = []
        self.version = 0
        self.updated_by: str | None = None
        self._last_updated: datetime | None = None

    def read_counters(self) -> dict[str, StockCounter]:
        with self._lock:
            return dict(self._counters)

    def write_counters(self, counters: Mapping[str, StockCounter], actor_id: str | None) -> None:
        with self._lock:
            self._counters = dict(counters)
            self._touch(actor_id)
        self._notify()

    def reset_counters(self, actor_id: str | None) -> None:
        with self._lock:
            self._counters = {}
            self._touch(actor_id)
        self._notify()

    def subscribe(self, on_change: OnChange) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(on_change)
            snapshot = dict(self._counters)
        on_change(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                if on_change in self._subscribers:
                    self._subscribers.remove(on_change)

        return unsubscribe

    def last_updated(self) -> datetime | None:
        return self._last_updated

    def _touch(self, actor_id: str | None) -> None:
        self.version += 1
        self.updated_by = actor_id or "anonymous"
        self._last_updated = datetime.now(timezone.utc)

    def _notify(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
            snapshot = dict(self._counters)
        for on_change in subscribers:
            on_change(dict(snapshot))
