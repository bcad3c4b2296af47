import threading

from timber_tally.scheduler import DebounceTimer, ThreadingScheduler


def test_rearming_restarts_the_window(scheduler):
    fired = []
    timer = DebounceTimer(lambda: fired.append(scheduler.now), 1.0, scheduler)

    timer.arm()
    scheduler.advance(0.5)
    timer.arm()
    scheduler.advance(0.75)
    assert fired == []

    scheduler.advance(0.25)
    assert fired == [1.5]
    assert not timer.pending


def test_cancel_prevents_firing(scheduler):
    fired = []
    timer = DebounceTimer(lambda: fired.append(True), 1.0, scheduler)

    timer.arm()
    timer.cancel()
    scheduler.advance(5)

    assert fired == []
    assert not timer.pending


def test_stale_fire_is_ignored(scheduler):
    fired = []
    timer = DebounceTimer(lambda: fired.append(True), 1.0, scheduler)
    timer.arm()
    stale = scheduler.handles[0]

    # Simulate a timer thread that was already running when re-armed.
    timer.arm()
    stale.callback()

    assert fired == []
    assert timer.pending


def test_threading_scheduler_runs_callback_on_worker_thread():
    done = threading.Event()
    names = []

    def callback():
        names.append(threading.current_thread().name)
        done.set()

    ThreadingScheduler().call_later(0.01, callback)

    assert done.wait(timeout=2.0)
    assert names == ["timber-tally-timer"]
