import pytest

from timber_tally.exceptions import StoreError
from timber_tally.reconciler import StockReconciler


class FakeHandle:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Virtual clock: callbacks only run inside advance()."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.handles if not h.cancelled and h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            self.now = handle.due
            handle.callback()
        self.now = target


class RecordingStore:
    """StockStore double that records calls and never echoes writes."""

    def __init__(self, initial=None):
        self.counters = dict(initial or {})
        self.writes = []
        self.resets = []
        self.subscribers = []
        self.fail_reads = False
        self.fail_writes = False
        self.fail_resets = False

    def read_counters(self):
        if self.fail_reads:
            raise StoreError("read failed")
        return dict(self.counters)

    def write_counters(self, counters, actor_id):
        if self.fail_writes:
            raise StoreError("write failed")
        self.writes.append((dict(counters), actor_id))
        self.counters = dict(counters)

    def reset_counters(self, actor_id):
        if self.fail_resets:
            raise StoreError("reset failed")
        self.resets.append(actor_id)
        self.counters = {}

    def subscribe(self, on_change):
        self.subscribers.append(on_change)
        return lambda: self.subscribers.remove(on_change)

    def push(self, counters):
        """Deliver a remote snapshot to every subscriber."""
        for on_change in list(self.subscribers):
            on_change(dict(counters))


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def tally(store, scheduler):
    return StockReconciler(store, actor_id="uid-1", debounce=1.0, scheduler=scheduler)


class EchoingStore(RecordingStore):
    """
    Sends every successful write back to all subscribers, the writer
    included, but only when deliver() is called: the echo lags behind the
    write like a polled subscription does.
    """

    def __init__(self, initial=None):
        super().__init__(initial)
        self.queued = []

    def write_counters(self, counters, actor_id):
        super().write_counters(counters, actor_id)
        self.queued.append(dict(counters))

    def deliver(self):
        queued, self.queued = self.queued, []
        for counters in queued:
            self.push(counters)


@pytest.fixture
def echoing_store():
    return EchoingStore()
