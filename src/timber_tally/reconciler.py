from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Literal, Mapping

from . import catalog
from .conf import get_setting
from .counters import (
    CounterField,
    Origin,
    StockCounter,
    SyncStatus,
    check_key,
)
from .exceptions import StoreError
from .scheduler import DebounceTimer, Scheduler

if TYPE_CHECKING:
    from .api import StockStore

logger = logging.getLogger(__name__)

RemoteUpdateMode = Literal["overwrite", "ignore_while_pending"]

LOAD_FAILED = "Failed to load stock data"
SYNC_FAILED = "Failed to sync data"
RESET_FAILED = "Failed to reset stock"

_EMPTY = StockCounter()


@dataclass(frozen=True)
class RemoteUpdatePolicy:
    """
    Defines what a remote push does to an unflushed local burst.

    - "overwrite": replace the map anyway (default). Local edits still
      waiting for the debounce are discarded; last writer wins.
    - "ignore_while_pending": drop remote pushes while a debounce is armed
      or a write is in flight. The local state is written on the next flush
      and comes back to every client through the store. Once nothing is
      pending (including after a failed write) remote pushes apply again.
    """
    mode: RemoteUpdateMode = "overwrite"

    def __post_init__(self) -> None:
        if self.mode not in ("overwrite", "ignore_while_pending"):
            raise ValueError(f"timber_tally: unknown remote update mode {self.mode!r}")


class StockReconciler:
    """
    Local mirror of the shared timber stock sheet.

    Local edits (`increment` / `decrement`) are tagged LOCAL and written to
    the store once the debounce window closes. Pushes from the store
    (`on_remote_update`) are tagged REMOTE and never written back, so two
    clients sharing a store cannot echo each other's updates forever.

    Store failures never propagate out of the reconciler: they are logged
    and surfaced through `status` / `sync_error`, and local counters are
    kept as they are.

    Example
    -------
    >>> tally = StockReconciler(store, actor_id="uid-42")
    >>> tally.start()
    >>> tally.increment("treated-90x45mm-2.4m", "runnable")
    """

    def __init__(
        self,
        store: StockStore,
        *,
        actor_id: str | None = None,
        debounce: float | None = None,
        scheduler: Scheduler | None = None,
        on_remote_update: RemoteUpdateMode | None = None,
    ) -> None:
        self._store = store
        self.actor_id = actor_id or "anonymous"
        self.policy = RemoteUpdatePolicy(
            mode=on_remote_update or get_setting("REMOTE_UPDATE_MODE")
        )

        if debounce is None:
            debounce = float(get_setting("DEBOUNCE_SECONDS"))
        self._timer = DebounceTimer(self.flush, debounce, scheduler)

        # Guards every field below; never held across a store call.
        self._lock = threading.RLock()
        self._counters: dict[str, StockCounter] = {}
        self._origin = Origin.none
        # Bumped on every local edit, so a flush can tell whether edits
        # landed while its write was in flight.
        self._generation = 0
        # Last map handed to the store, so its echo is not mistaken for a
        # newer remote state.
        self._last_written: dict[str, StockCounter] | None = None
        self._writing = False
        self._status = SyncStatus.idle
        self._sync_error: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    # ---------- state ----------
    @property
    def origin(self) -> Origin:
        return self._origin

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def sync_error(self) -> str | None:
        return self._sync_error

    @property
    def flush_pending(self) -> bool:
        return self._timer.pending

    @property
    def local_edits_pending(self) -> bool:
        """A debounce is armed or a write is in flight."""
        return self._timer.pending or self._writing

    @property
    def counters(self) -> dict[str, StockCounter]:
        with self._lock:
            return dict(self._counters)

    def get(self, key: str) -> StockCounter:
        with self._lock:
            return self._counters.get(key, _EMPTY)

    def totals(self) -> StockCounter:
        return catalog.stock_totals(self.counters)

    def size_totals(self, treatment: str, size: str) -> StockCounter:
        return catalog.size_totals(self.counters, treatment, size)

    def stock_list(self) -> list[catalog.StockListItem]:
        return catalog.stock_list(self.counters)

    # ---------- lifecycle ----------
    def load(self) -> bool:
        """
        Read the current sheet from the store and install it as REMOTE
        state. Returns False (and flags the sync error) if the read fails.
        """
        try:
            counters = self._store.read_counters()
        except StoreError:
            logger.exception("Error loading timber stock")
            with self._lock:
                self._status = SyncStatus.error
                self._sync_error = LOAD_FAILED
            return False

        with self._lock:
            self._counters = dict(counters)
            self._origin = Origin.remote
        logger.debug("Loaded %d stock lines", len(counters))
        return True

    def start(self) -> bool:
        """Load the sheet and subscribe to remote updates."""
        loaded = self.load()
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self.on_remote_update)
        return loaded

    def stop(self, flush_pending: bool = False) -> None:
        """
        Unsubscribe and cancel the debounce. With ``flush_pending=True`` a
        LOCAL burst still inside its window is written first.
        """
        had_pending = self._timer.pending
        self._timer.cancel()
        if flush_pending and had_pending:
            self.flush()

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ---------- local edits ----------
    def increment(self, key: str, field: CounterField) -> StockCounter:
        return self._apply_local(key, field, StockCounter.incremented)

    def decrement(self, key: str, field: CounterField) -> StockCounter:
        """Decrement clamps at zero but still counts as a local change."""
        return self._apply_local(key, field, StockCounter.decremented)

    def _apply_local(
        self,
        key: str,
        field: CounterField,
        op: Callable[[StockCounter, CounterField], StockCounter],
    ) -> StockCounter:
        check_key(key)
        with self._lock:
            updated = op(self._counters.get(key, _EMPTY), field)
            self._counters[key] = updated
            self._origin = Origin.local
            self._generation += 1
            self._timer.arm()
        return updated

    # ---------- remote pushes ----------
    def on_remote_update(self, new_counters: Mapping[str, StockCounter]) -> bool:
        """
        Replace the local map with a snapshot pushed by the store.

        Never schedules a write. Returns False when the push was dropped:
        either it is the echo of this client's own last write arriving after
        newer local edits, or the "ignore_while_pending" policy holds it off
        while a debounce is armed or a write is in flight.
        """
        with self._lock:
            if self._origin is Origin.local and new_counters == self._last_written:
                logger.debug("Ignoring echo of own stock write; newer local edits pending")
                return False

            if self.policy.mode == "ignore_while_pending" and self.local_edits_pending:
                logger.debug("Ignoring remote stock update while local edits are pending")
                return False

            if self._origin is Origin.local:
                logger.debug("Remote stock update overwrote unflushed local edits")

            self._counters = dict(new_counters)
            self._origin = Origin.remote
            self._sync_error = None
            if self._status is SyncStatus.error:
                self._status = SyncStatus.idle
        return True

    # ---------- store writes ----------
    def flush(self) -> bool:
        """
        Push the whole map if the latest change is LOCAL.

        Returns True only when a write reached the store.
        """
        with self._lock:
            if self._origin is not Origin.local:
                return False
            snapshot = dict(self._counters)
            generation = self._generation
            previous = self._last_written
            # Set before the call: some stores echo synchronously.
            self._last_written = snapshot
            self._writing = True
            self._status = SyncStatus.syncing

        try:
            self._store.write_counters(snapshot, self.actor_id)
        except StoreError:
            logger.warning("Error syncing timber stock", exc_info=True)
            with self._lock:
                self._last_written = previous
                self._writing = False
                self._status = SyncStatus.error
                self._sync_error = SYNC_FAILED
            return False

        with self._lock:
            self._writing = False
            # Edits made during the write stay LOCAL for the next flush.
            if self._origin is Origin.local and self._generation == generation:
                self._origin = Origin.none
            self._status = SyncStatus.idle
            self._sync_error = None

        logger.info("Timber stock saved (%d lines) by %s", len(snapshot), self.actor_id)
        return True

    def reset(self) -> bool:
        """
        Clear the whole sheet, locally and in the store, right away.

        Bypasses the debounce: any pending burst is cancelled and the reset
        is sent immediately. On failure local counters are kept.
        """
        self._timer.cancel()
        with self._lock:
            self._status = SyncStatus.syncing

        try:
            self._store.reset_counters(self.actor_id)
        except StoreError:
            logger.warning("Error resetting timber stock", exc_info=True)
            with self._lock:
                self._status = SyncStatus.error
                self._sync_error = RESET_FAILED
            return False

        with self._lock:
            self._counters = {}
            self._origin = Origin.none
            self._generation += 1
            self._last_written = {}
            self._status = SyncStatus.idle
            self._sync_error = None

        logger.info("Timber stock reset by %s", self.actor_id)
        return True
