from __future__ import annotations

from typing import Callable, Mapping, Protocol

from .counters import StockCounter
from .reconciler import RemoteUpdateMode, StockReconciler
from .scheduler import Scheduler

Counters = Mapping[str, StockCounter]


class StockStore(Protocol):
    """
    Protocol describing the shared document store behind the stock sheet.

    Implementations raise `StoreError` for any read, write or reset failure.
    `subscribe` returns a callable that stops the subscription.
    """
    def read_counters(self) -> dict[str, StockCounter]: ...
    def write_counters(self, counters: Counters, actor_id: str | None) -> None: ...
    def subscribe(self, on_change: Callable[[dict[str, StockCounter]], None]) -> Callable[[], None]: ...
    def reset_counters(self, actor_id: str | None) -> None: ...


# Built lazily: the Django store reads settings when constructed.
_default_store: StockStore | None = None


def get_default_store() -> StockStore:
    global _default_store
    if _default_store is None:
        from .backends.django_db import DjangoStockStore

        _default_store = DjangoStockStore()
    return _default_store


def set_default_store(store: StockStore | None) -> None:
    """Replace the store used by `connect` when none is passed (None resets it)."""
    global _default_store
    _default_store = store


def connect(
    actor_id: str | None = None,
    *,
    store: StockStore | None = None,
    debounce: float | None = None,
    scheduler: Scheduler | None = None,
    on_remote_update: RemoteUpdateMode | None = None,
) -> StockReconciler:
    """
    Build a reconciler for one client and start it.

    Parameters
    ----------
    actor_id : str | None
        Recorded as ``updated_by`` on every write. Defaults to "anonymous".

    store : StockStore | None
        Optional store override. Defaults to the globally configured store
        (a `DjangoStockStore` built from settings).

    debounce : float | None
        Seconds of quiet before a burst of local edits is written. Defaults
        to the ``DEBOUNCE_SECONDS`` setting.

    scheduler : Scheduler | None
        Runs the debounce. Defaults to daemon timer threads.

    on_remote_update : "overwrite" | "ignore_while_pending" | None
        What a remote push does to unflushed local edits. Defaults to the
        ``REMOTE_UPDATE_MODE`` setting.

    Example
    -------
    >>> tally = connect("uid-42")
    >>> tally.increment("treated-90x45mm-2.4m", "runnable")
    >>> tally.stop(flush_pending=True)

    Notes
    -----
    A failed initial load does not raise: the reconciler still subscribes
    and reports the failure through ``sync_error``.
    """
    reconciler = StockReconciler(
        store or get_default_store(),
        actor_id=actor_id,
        debounce=debounce,
        scheduler=scheduler,
        on_remote_update=on_remote_update,
    )
    reconciler.start()
    return reconciler
