"""
Shared pytest fixtures for BLE temperature session tests.
"""

from typing import Callable, Dict, List, Optional, Set

import pytest  # type: ignore[import-untyped]  # pylint: disable=E0401

from thermolink.interfaces.ble.constants import (
    SERVICE_UUID,
    TARGET_DEVICE_NAME,
    TEMPERATURE_CHAR_UUID,
)
from thermolink.interfaces.ble.discovery import DeviceIdentity
from thermolink.interfaces.ble.errors import BLEError
from thermolink.interfaces.ble.gating import _ADDR_LOCKS, _CLAIMED_ADDRS
from thermolink.interfaces.ble.permissions import StaticPermissionGate
from thermolink.interfaces.ble.radio import (
    ConnectionHandle,
    LinkState,
    Radio,
    RadioListener,
)
from thermolink.interfaces.ble.session import BleTemperatureSession
from thermolink.interfaces.ble.timers import ScheduledCall, Scheduler
from thermolink.interfaces.ble.ui import UserInterface

TARGET_ADDRESS = "AA:BB:CC:DD:EE:01"


class FakeRadio(Radio):
    """
    In-memory Radio that records every command and lets tests inject events.

    Methods named in `fail_on` raise BLEError instead of succeeding.
    """

    def __init__(self, available: bool = True):
        self.available = available
        self.listener: Optional[RadioListener] = None
        self.calls: List[tuple] = []
        self.fail_on: Set[str] = set()
        self.scanning = False
        self.open_handles: Dict[int, ConnectionHandle] = {}

    def _record(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        if name in self.fail_on:
            raise BLEError(f"{name} failed")

    @property
    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def count(self, name: str) -> int:
        return self.call_names.count(name)

    # Radio

    def is_available(self) -> bool:
        return self.available

    def set_listener(self, listener: Optional[RadioListener]) -> None:
        self.listener = listener

    def start_scan(self, service_uuids=None) -> None:
        self._record("start_scan", service_uuids)
        self.scanning = True

    def stop_scan(self) -> None:
        self._record("stop_scan")
        self.scanning = False

    def connect(self, address: str) -> ConnectionHandle:
        self._record("connect", address)
        handle = ConnectionHandle(address=address)
        self.open_handles[handle.handle_id] = handle
        return handle

    def discover_services(self, handle: ConnectionHandle) -> None:
        self._record("discover_services", handle)

    def set_notify(self, handle, service_uuid, characteristic_uuid, enabled) -> None:
        self._record("set_notify", handle, service_uuid, characteristic_uuid, enabled)

    def write_descriptor(self, handle, descriptor_uuid, value) -> None:
        self._record("write_descriptor", handle, descriptor_uuid, value)

    def close(self, handle: ConnectionHandle) -> None:
        self._record("close", handle)
        self.open_handles.pop(handle.handle_id, None)

    def shutdown(self) -> None:
        self._record("shutdown")

    # Event injection

    def advertise(self, name: Optional[str], address: str = TARGET_ADDRESS) -> None:
        self.listener.on_device_found(DeviceIdentity(name=name, address=address))

    def fail_scan(self, code: int) -> None:
        self.scanning = False
        self.listener.on_scan_failed(code)

    def link_up(self) -> None:
        self.listener.on_connection_state(LinkState.CONNECTED)

    def link_down(self) -> None:
        self.listener.on_connection_state(LinkState.DISCONNECTED)

    def services_found(self, services=None, ok: bool = True) -> None:
        if services is None and ok:
            services = {SERVICE_UUID: frozenset({TEMPERATURE_CHAR_UUID})}
        self.listener.on_services_discovered(ok, services)

    def descriptor_written(self, ok: bool = True) -> None:
        self.listener.on_descriptor_written(ok)

    def notify(self, data: bytes) -> None:
        self.listener.on_characteristic_changed(data)


class ManualCall(ScheduledCall):
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler whose callbacks run only when a test fires them."""

    def __init__(self):
        self.calls: List[ManualCall] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualCall:
        call = ManualCall(delay, callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> List[ManualCall]:
        return [c for c in self.calls if not c.cancelled and not c.fired]

    def fire_pending(self) -> int:
        """Run every callback that is neither cancelled nor already fired."""
        due = self.pending
        for call in due:
            call.fired = True
            call.callback()
        return len(due)

    @staticmethod
    def fire(call: ManualCall) -> None:
        """Run a callback even if it was cancelled, as a timer racing its cancel would."""
        call.fired = True
        call.callback()


class RecordingUI(UserInterface):
    def __init__(self):
        self.statuses: List[str] = []
        self.readings: List[str] = []
        self.permission_requests: List[frozenset] = []

    def on_status(self, text: str) -> None:
        self.statuses.append(text)

    def on_reading(self, text: str) -> None:
        self.readings.append(text)

    def on_permission_required(self, capabilities) -> None:
        self.permission_requests.append(frozenset(capabilities))


@pytest.fixture(autouse=True)
def clear_gating_registry():
    """Reset the process-wide address registry around every test."""
    _CLAIMED_ADDRS.clear()
    _ADDR_LOCKS.clear()
    yield
    _CLAIMED_ADDRS.clear()
    _ADDR_LOCKS.clear()


@pytest.fixture
def radio():
    return FakeRadio()


@pytest.fixture
def gate():
    return StaticPermissionGate.all_granted()


@pytest.fixture
def ui():
    return RecordingUI()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def session(radio, gate, ui, scheduler):
    """A session driven inline: tests call `process_events()` to run handlers."""
    sess = BleTemperatureSession(
        radio,
        gate,
        ui,
        target_name=TARGET_DEVICE_NAME,
        scheduler=scheduler,
        threaded=False,
    )
    yield sess
    sess.close()
