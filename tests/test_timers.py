"""Tests for the threading-backed scheduler."""

import threading

from thermolink.interfaces.ble.timers import ThreadingScheduler


def test_callback_runs_after_delay():
    fired = threading.Event()
    ThreadingScheduler().call_later(0.01, fired.set)
    assert fired.wait(2.0)


def test_cancelled_callback_does_not_run():
    fired = threading.Event()
    call = ThreadingScheduler().call_later(0.2, fired.set)
    call.cancel()
    call.cancel()
    assert not fired.wait(0.4)
