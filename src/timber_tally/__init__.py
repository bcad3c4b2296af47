from .api import StockStore, connect, get_default_store, set_default_store
from .backends.memory import InMemoryStockStore
from .counters import Origin, StockCounter, SyncStatus
from .exceptions import InvalidStockKey, StoreError, TimberTallyError, UnknownCounterField
from .keys import make_stock_key, parse_stock_key
from .reconciler import RemoteUpdatePolicy, StockReconciler

__all__ = [
    "connect",
    "get_default_store",
    "set_default_store",
    "StockStore",
    "InMemoryStockStore",
    "StockReconciler",
    "RemoteUpdatePolicy",
    "StockCounter",
    "Origin",
    "SyncStatus",
    "make_stock_key",
    "parse_stock_key",
    "TimberTallyError",
    "StoreError",
    "InvalidStockKey",
    "UnknownCounterField",
]
