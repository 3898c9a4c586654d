import threading

from localetree.services.debounce import Debouncer


def test_burst_of_schedules_fires_once():
    fired = threading.Event()
    calls = []

    def cb():
        calls.append(1)
        fired.set()

    deb = Debouncer(cb, delay_ms=30)
    for _ in range(5):
        deb.schedule()
    assert fired.wait(2.0)
    # give a stale timer the chance to misfire
    threading.Event().wait(0.1)
    assert calls == [1]
    assert not deb.pending


def test_cancel_prevents_callback():
    calls = []
    deb = Debouncer(lambda: calls.append(1), delay_ms=20)
    deb.schedule()
    assert deb.pending
    assert deb.cancel() is True
    threading.Event().wait(0.08)
    assert calls == []
    assert deb.cancel() is False


def test_fire_now_runs_immediately_and_clears_timer():
    calls = []
    deb = Debouncer(lambda: calls.append(1), delay_ms=1000)
    deb.schedule()
    deb.fire_now()
    assert calls == [1]
    assert not deb.pending


def test_delay_is_clamped():
    deb = Debouncer(lambda: None, delay_ms=0)
    assert deb.delay_ms == 10
    deb.set_delay_ms(10**9)
    assert deb.delay_ms == 5000
