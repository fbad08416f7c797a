"""Tests for the session event loop and the radio event bridge."""

import threading

from thermolink.interfaces.ble.discovery import DeviceIdentity
from thermolink.interfaces.ble.events import (
    CharacteristicChanged,
    ConnectionStateChanged,
    DescriptorWritten,
    DeviceFound,
    RadioEventBridge,
    RecordRequested,
    ScanFailed,
    ServicesDiscovered,
    SessionEventLoop,
    StartRequested,
)
from thermolink.interfaces.ble.radio import LinkState


class TestSessionEventLoop:
    def test_process_pending_handles_in_order(self):
        handled = []
        loop = SessionEventLoop(handled.append)
        loop.post(StartRequested())
        loop.post(RecordRequested())

        assert loop.process_pending() == 2
        assert handled == [StartRequested(), RecordRequested()]
        assert loop.process_pending() == 0

    def test_events_posted_while_draining_are_handled(self):
        handled = []
        loop = SessionEventLoop(lambda e: None)

        def handler(event):
            handled.append(event)
            if isinstance(event, StartRequested):
                loop.post(RecordRequested())

        loop._handler = handler
        loop.post(StartRequested())

        assert loop.process_pending() == 2
        assert handled == [StartRequested(), RecordRequested()]

    def test_handler_errors_do_not_stop_the_loop(self, caplog):
        handled = []

        def handler(event):
            if isinstance(event, StartRequested):
                raise RuntimeError("boom")
            handled.append(event)

        loop = SessionEventLoop(handler)
        loop.post(StartRequested())
        loop.post(RecordRequested())

        with caplog.at_level("ERROR"):
            assert loop.process_pending() == 2
        assert handled == [RecordRequested()]
        assert "Error handling StartRequested" in caplog.text

    def test_worker_thread_drains_and_stops(self):
        seen = threading.Event()
        threads = []

        def handler(_event):
            threads.append(threading.current_thread().name)
            seen.set()

        loop = SessionEventLoop(handler)
        loop.start()
        assert loop.is_running
        loop.post(StartRequested())
        assert seen.wait(2.0)

        loop.stop()
        assert not loop.is_running
        assert threads == ["ThermoSessionEvents"]

    def test_on_worker_thread_only_inside_handlers(self):
        inside = []
        seen = threading.Event()

        def handler(_event):
            inside.append(loop.on_worker_thread)
            seen.set()

        loop = SessionEventLoop(handler)
        assert not loop.on_worker_thread
        loop.start()
        loop.post(StartRequested())
        assert seen.wait(2.0)
        assert not loop.on_worker_thread
        loop.stop()

        assert inside == [True]

    def test_post_after_stop_is_dropped(self):
        handled = []
        loop = SessionEventLoop(handled.append)
        loop.stop()
        loop.post(StartRequested())

        assert loop.process_pending() == 0
        assert handled == []


class TestRadioEventBridge:
    def test_callbacks_become_events(self):
        posted = []
        bridge = RadioEventBridge(posted.append)
        identity = DeviceIdentity("ESP32-Thermo", "AA:BB")
        services = {"svc": frozenset({"chr"})}

        bridge.on_device_found(identity)
        bridge.on_scan_failed(4)
        bridge.on_connection_state(LinkState.CONNECTED)
        bridge.on_services_discovered(True, services)
        bridge.on_descriptor_written(False)
        bridge.on_characteristic_changed(bytearray(b"21.5"))

        assert posted == [
            DeviceFound(identity),
            ScanFailed(4),
            ConnectionStateChanged(LinkState.CONNECTED),
            ServicesDiscovered(True, services),
            DescriptorWritten(False),
            CharacteristicChanged(b"21.5"),
        ]
        assert isinstance(posted[-1].data, bytes)
