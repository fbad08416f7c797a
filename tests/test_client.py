"""Tests for BLEClient's event loop thread and scan bookkeeping."""

import asyncio
import threading

import pytest
from bleak.exc import BleakError

from thermolink.interfaces.ble import client as client_module
from thermolink.interfaces.ble.client import BLEClient
from thermolink.interfaces.ble.errors import BLEError


class FakeScanner:
    """Stand-in for BleakScanner recording start/stop calls."""

    instances = []
    fail_start = False
    fail_create = False

    def __init__(self, detection_callback=None, **kwargs):
        if FakeScanner.fail_create:
            raise BleakError("no adapter")
        self.detection_callback = detection_callback
        self.kwargs = kwargs
        self.started = False
        self.stopped = False
        FakeScanner.instances.append(self)

    async def start(self):
        await asyncio.sleep(0.01)
        if FakeScanner.fail_start:
            raise BleakError("scan refused")
        self.started = True

    async def stop(self):
        self.stopped = True

    @staticmethod
    async def discover(**kwargs):
        return {"AA:BB": kwargs}


@pytest.fixture
def fake_scanner(monkeypatch):
    FakeScanner.instances = []
    FakeScanner.fail_start = False
    FakeScanner.fail_create = False
    monkeypatch.setattr(client_module, "BleakScanner", FakeScanner)
    return FakeScanner


@pytest.fixture
def client():
    ble_client = BLEClient(log_if_no_address=False)
    yield ble_client
    ble_client.close()


def test_discovery_only_client_has_no_bleak_client(client):
    assert client.bleak_client is None
    assert not client.is_connected()
    assert client.services is None
    with pytest.raises(BLEError):
        client.connect()
    with pytest.raises(BLEError):
        client.disconnect()


def test_immediate_stop_after_start_stops_scanner(client, fake_scanner):
    client.start_scan(lambda device, adv: None, service_uuids=["abc"])
    assert client.is_scanning

    client.stop_scan().result(timeout=2.0)

    scanner = fake_scanner.instances[0]
    assert scanner.kwargs == {"service_uuids": ["abc"]}
    assert scanner.started
    assert scanner.stopped
    assert not client.is_scanning


def test_second_start_is_refused(client, fake_scanner):
    client.start_scan(lambda device, adv: None).result(timeout=2.0)
    with pytest.raises(BLEError):
        client.start_scan(lambda device, adv: None)
    client.stop_scan().result(timeout=2.0)


def test_stop_without_scan_returns_none(client):
    assert client.stop_scan() is None


def test_failed_start_then_stop(client, fake_scanner):
    fake_scanner.fail_start = True
    started = client.start_scan(lambda device, adv: None)
    with pytest.raises(BleakError):
        started.result(timeout=2.0)

    client.scan_failed(started)
    assert not client.is_scanning
    assert client.stop_scan() is None


def test_stop_after_failed_start_completes(client, fake_scanner):
    fake_scanner.fail_start = True
    client.start_scan(lambda device, adv: None)
    assert client.stop_scan().result(timeout=2.0) is None


def test_probe(client, fake_scanner):
    assert client.probe()
    fake_scanner.fail_create = True
    assert not client.probe()


def test_discover_forwards_kwargs(client, fake_scanner):
    assert client.discover(timeout=0.1, return_adv=True) == {
        "AA:BB": {"timeout": 0.1, "return_adv": True}
    }


def test_async_await_timeout_maps_to_ble_error(client):
    with pytest.raises(BLEError):
        client.async_await(asyncio.sleep(1.0), timeout=0.01)


def test_with_timeout_raises_ble_error(client):
    future = client.async_run(
        BLEClient._with_timeout(asyncio.sleep(1.0), 0.01, "connect")
    )
    with pytest.raises(BLEError, match="connect timed out"):
        future.result(timeout=2.0)


def test_close_stops_loop_thread():
    ble_client = BLEClient(log_if_no_address=False)
    thread = ble_client._eventThread
    assert thread.name == "BLEClient"
    ble_client.close()
    assert not thread.is_alive()
    # Closing twice is harmless
    ble_client.close()


def test_close_from_loop_thread_does_not_deadlock():
    ble_client = BLEClient(log_if_no_address=False)
    thread = ble_client._eventThread
    closed = threading.Event()

    async def _noop():
        return None

    def _close(_future):
        ble_client.close()
        closed.set()

    ble_client.async_run(_noop()).add_done_callback(_close)

    assert closed.wait(2.0)
    thread.join(2.0)
    assert not thread.is_alive()
