"""Session event messages and the single-consumer event loop."""

from dataclasses import dataclass, field
from queue import Empty, Queue
from threading import Event, Thread, current_thread
from typing import Callable, Optional

from thermolink.interfaces.ble.constants import EVENT_THREAD_JOIN_TIMEOUT, logger
from thermolink.interfaces.ble.discovery import DeviceIdentity
from thermolink.interfaces.ble.errors import BLEErrorHandler
from thermolink.interfaces.ble.radio import LinkState, RadioListener, ServiceMap


class SessionEvent:
    """Base class for everything posted to a session's event queue."""


# UI-originated commands


@dataclass(frozen=True)
class StartRequested(SessionEvent):
    pass


@dataclass(frozen=True)
class RecordRequested(SessionEvent):
    pass


@dataclass(frozen=True)
class TeardownRequested(SessionEvent):
    done: Optional[Event] = field(default=None, compare=False)


# Radio-originated events


@dataclass(frozen=True)
class DeviceFound(SessionEvent):
    identity: DeviceIdentity


@dataclass(frozen=True)
class ScanFailed(SessionEvent):
    code: int


@dataclass(frozen=True)
class ConnectionStateChanged(SessionEvent):
    state: LinkState


@dataclass(frozen=True)
class ServicesDiscovered(SessionEvent):
    ok: bool
    services: Optional[ServiceMap] = None


@dataclass(frozen=True)
class DescriptorWritten(SessionEvent):
    ok: bool


@dataclass(frozen=True)
class CharacteristicChanged(SessionEvent):
    data: bytes


# Timer-originated events


@dataclass(frozen=True)
class ScanTimeout(SessionEvent):
    generation: int


class _StopLoop(SessionEvent):
    pass


class RadioEventBridge(RadioListener):
    """Marshal radio callbacks into session events posted on the loop."""

    def __init__(self, post: Callable[[SessionEvent], None]):
        self._post = post

    def on_device_found(self, identity: DeviceIdentity) -> None:
        self._post(DeviceFound(identity))

    def on_scan_failed(self, code: int) -> None:
        self._post(ScanFailed(code))

    def on_connection_state(self, state: LinkState) -> None:
        self._post(ConnectionStateChanged(state))

    def on_services_discovered(self, ok: bool, services: Optional[ServiceMap]) -> None:
        self._post(ServicesDiscovered(ok, services))

    def on_descriptor_written(self, ok: bool) -> None:
        self._post(DescriptorWritten(ok))

    def on_characteristic_changed(self, data: bytes) -> None:
        self._post(CharacteristicChanged(bytes(data)))


class SessionEventLoop:
    """
    Ordered event queue drained by exactly one consumer.

    Radio callbacks, timer callbacks and UI commands may `post()` from any
    thread. Events are handled either by a dedicated worker thread (`start()`)
    or inline by a host that calls `process_pending()`; never both at once.
    Exceptions raised by the handler are logged and swallowed so the consumer
    keeps running.
    """

    def __init__(self, handler: Callable[[SessionEvent], None]):
        self._handler = handler
        self._queue: "Queue[SessionEvent]" = Queue()
        self._worker: Optional[Thread] = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        """True while the worker thread is alive."""
        return self._worker is not None and self._worker.is_alive()

    @property
    def on_worker_thread(self) -> bool:
        """True when called from inside a handler running on the worker thread."""
        return self._worker is not None and self._worker is current_thread()

    def post(self, event: SessionEvent) -> None:
        """Append an event to the queue. Events posted after `stop()` are dropped."""
        if self._stopped:
            logger.debug("Dropping %s posted after event loop stop", type(event).__name__)
            return
        self._queue.put(event)

    def start(self) -> None:
        """Start the worker thread that drains the queue."""
        if self._worker is not None:
            return
        self._worker = Thread(target=self._run, name="ThermoSessionEvents", daemon=True)
        self._worker.start()

    def stop(self) -> None:
        """Stop the worker after the events already queued have been handled."""
        if self._stopped:
            return
        self._queue.put(_StopLoop())
        self._stopped = True
        worker = self._worker
        if worker is None or worker is current_thread():
            return
        worker.join(timeout=EVENT_THREAD_JOIN_TIMEOUT)
        if worker.is_alive():
            logger.warning("Session event thread did not exit in time")

    def process_pending(self) -> int:
        """
        Handle every queued event on the calling thread.

        Events posted by handlers while draining are handled in the same call.

        Returns:
            int: Number of events handled.
        """
        handled = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except Empty:
                return handled
            if isinstance(event, _StopLoop):
                return handled
            self._dispatch(event)
            handled += 1

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if isinstance(event, _StopLoop):
                logger.debug("Session event loop exiting")
                return
            self._dispatch(event)

    def _dispatch(self, event: SessionEvent) -> None:
        BLEErrorHandler.safe_execute(
            lambda: self._handler(event),
            error_msg=f"Error handling {type(event).__name__}",
        )
