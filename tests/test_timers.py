import threading

import pytest

from catanscout.core.timers import ThrottledTimer


def test_schedule_replaces_the_pending_run():
    calls: list[tuple] = []
    timer = ThrottledTimer(lambda *a, **k: calls.append((a, k)), delay_seconds=60)

    timer.schedule(1, zoom=3)
    timer.schedule(2, zoom=17)
    assert timer.pending

    timer.flush()

    assert calls == [((2,), {"zoom": 17})]
    assert not timer.pending
    timer.flush()
    assert len(calls) == 1


def test_cancel_drops_the_pending_run():
    calls: list[int] = []
    timer = ThrottledTimer(lambda: calls.append(1), delay_seconds=60)
    timer.schedule()
    timer.cancel()
    timer.flush()
    assert calls == []


def test_timer_fires_after_the_delay():
    fired = threading.Event()
    timer = ThrottledTimer(fired.set, delay_seconds=0.01, name="test")
    timer.schedule()
    assert fired.wait(5)


def test_negative_delay_is_rejected():
    with pytest.raises(ValueError, match="delay_seconds"):
        ThrottledTimer(lambda: None, delay_seconds=-1)
