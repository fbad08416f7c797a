"""Cancellable scheduled callbacks used for scan deadlines."""

from abc import ABC, abstractmethod
from threading import Timer
from typing import Callable


class ScheduledCall(ABC):
    """Handle to a pending callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""


class Scheduler(ABC):
    """Runs callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        """Schedule `callback` to run once after `delay` seconds."""


class _TimerCall(ScheduledCall):
    def __init__(self, timer: Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon `threading.Timer` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = Timer(delay, callback)
        timer.daemon = True
        timer.name = "ThermoScanTimeout"
        timer.start()
        return _TimerCall(timer)
