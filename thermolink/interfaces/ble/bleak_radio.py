"""Radio implementation backed by bleak."""

import asyncio
from concurrent.futures import Future
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional

from bleak.exc import BleakDBusError

from thermolink.interfaces.ble.client import BLEClient
from thermolink.interfaces.ble.constants import (
    BLEConfig,
    CCCD_UUID,
    DISABLE_NOTIFICATION_VALUE,
    ERROR_ALREADY_CONNECTED,
    ERROR_NO_CLIENT,
    SCAN_FAILED_ALREADY_STARTED,
    SCAN_FAILED_APPLICATION_REGISTRATION_FAILED,
    SCAN_FAILED_FEATURE_UNSUPPORTED,
    SCAN_FAILED_INTERNAL_ERROR,
    logger,
)
from thermolink.interfaces.ble.discovery import (
    DeviceIdentity,
    identity_from_advertisement,
)
from thermolink.interfaces.ble.errors import BLEError, BLEErrorHandler
from thermolink.interfaces.ble.gating import (
    address_lock,
    claim_address,
    release_address,
)
from thermolink.interfaces.ble.notifications import NotificationManager
from thermolink.interfaces.ble.radio import (
    ConnectionHandle,
    LinkState,
    Radio,
    RadioListener,
    build_service_map,
)
from thermolink.interfaces.ble.utils import normalize_uuid

# BlueZ D-Bus error names mapped onto scan failure codes
_DBUS_SCAN_FAILURES = {
    "org.bluez.Error.InProgress": SCAN_FAILED_ALREADY_STARTED,
    "org.bluez.Error.NotReady": SCAN_FAILED_APPLICATION_REGISTRATION_FAILED,
    "org.bluez.Error.NotAuthorized": SCAN_FAILED_APPLICATION_REGISTRATION_FAILED,
    "org.bluez.Error.NotSupported": SCAN_FAILED_FEATURE_UNSUPPORTED,
}


def scan_failure_code(error: BaseException) -> int:
    """Map an exception raised while starting a scan to a scan failure code."""
    if isinstance(error, BleakDBusError):
        return _DBUS_SCAN_FAILURES.get(error.dbus_error, SCAN_FAILED_INTERNAL_ERROR)
    if isinstance(error, BLEError) and "already in progress" in str(error):
        return SCAN_FAILED_ALREADY_STARTED
    return SCAN_FAILED_INTERNAL_ERROR


@dataclass
class _Link:
    """One open connection: its handle, its client and the pending connect."""

    handle: ConnectionHandle
    client: BLEClient
    connect_future: Optional[Future] = None


class BleakRadio(Radio):
    """
    Non-blocking Radio driving the host adapter through bleak.

    Scanning runs on a discovery-only BLEClient; every connection gets its own
    BLEClient and therefore its own event loop thread. Operations are
    scheduled and return immediately; completions arrive on the client's loop
    thread and are forwarded to the registered RadioListener.

    Addresses are claimed in the process-wide gating registry for the life of
    a connection, so two sessions can never drive the same peripheral.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = BLEConfig.CONNECTION_TIMEOUT,
        io_timeout: float = BLEConfig.GATT_IO_TIMEOUT,
        disconnect_timeout: Optional[float] = BLEConfig.DISCONNECT_TIMEOUT,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.disconnect_timeout = disconnect_timeout
        self.error_handler = BLEErrorHandler()
        self.notifications = NotificationManager()

        self._lock = RLock()
        self._listener: Optional[RadioListener] = None
        self._scan_client: Optional[BLEClient] = None
        self._links: Dict[int, _Link] = {}
        self._available = self._discovery_client().probe()

    def __repr__(self):
        return f"BleakRadio(connections={len(self._links)})"

    # Listener plumbing

    def set_listener(self, listener: Optional[RadioListener]) -> None:
        with self._lock:
            self._listener = listener

    def _emit(self, name: str, *args) -> None:
        listener = self._listener
        if listener is None:
            logger.debug("Dropping radio event %s: no listener", name)
            return
        self.error_handler.safe_execute(
            lambda: getattr(listener, name)(*args),
            error_msg=f"Radio listener {name} failed",
        )

    # Availability and scanning

    def _discovery_client(self) -> BLEClient:
        with self._lock:
            if self._scan_client is None:
                self._scan_client = BLEClient(log_if_no_address=False)
            return self._scan_client

    def is_available(self) -> bool:
        """Whether the bleak backend accepted a scanner when this radio was built."""
        return self._available

    def list_devices(self, timeout: float = BLEConfig.SCAN_TIMEOUT) -> List[DeviceIdentity]:
        """
        Run a blocking scan and return every device seen.

        Not part of the session flow; used by command-line discovery.
        """
        found = self._discovery_client().discover(timeout=timeout, return_adv=True)
        return [
            identity_from_advertisement(device, advertisement)
            for device, advertisement in found.values()
        ]

    def start_scan(self, service_uuids: Optional[Iterable[str]] = None) -> None:
        client = self._discovery_client()
        if client.is_scanning:
            logger.debug("Scan requested while another scan is running")
            self._emit("on_scan_failed", SCAN_FAILED_ALREADY_STARTED)
            return

        def _detected(device, advertisement):
            self._emit("on_device_found", identity_from_advertisement(device, advertisement))

        started = client.start_scan(_detected, service_uuids=service_uuids)
        started.add_done_callback(lambda f: self._scan_started(client, f))

    def _scan_started(self, client: BLEClient, started: Future) -> None:
        if started.cancelled():
            return
        error = started.exception()
        if error is None:
            logger.debug("BLE scan running")
            return
        code = scan_failure_code(error)
        logger.warning("BLE scan failed to start (code %d): %s", code, error)
        client.scan_failed(started)
        self._emit("on_scan_failed", code)

    def stop_scan(self) -> None:
        client = self._scan_client
        if client is None:
            return
        stopped = client.stop_scan()
        if stopped is not None:
            stopped.add_done_callback(self._log_failure("stop scan"))

    # Connections

    def connect(self, address: str) -> ConnectionHandle:
        """
        Claim `address` and begin connecting to it.

        Raises:
            BLEError: If another connection in this process already owns the address.
        """
        with address_lock(address):
            if not claim_address(address):
                raise BLEError(ERROR_ALREADY_CONNECTED.format(address))
            handle = ConnectionHandle(address=address)
            try:
                client = BLEClient(
                    address,
                    disconnected_callback=lambda _client: self._on_disconnected(handle),
                )
            except Exception:
                release_address(address)
                raise
            link = _Link(handle=handle, client=client)
            with self._lock:
                self._links[handle.handle_id] = link

        logger.debug("Connecting to %s (handle %d)", address, handle.handle_id)
        link.connect_future = client.connect(timeout=self.connect_timeout)
        link.connect_future.add_done_callback(lambda f: self._connect_done(handle, f))
        return handle

    def _connect_done(self, handle: ConnectionHandle, future: Future) -> None:
        if future.cancelled() or not self._is_open(handle):
            return
        error = future.exception()
        if error is not None:
            logger.warning("Connection to %s failed: %s", handle.address, error)
            self._emit("on_connection_state", LinkState.DISCONNECTED)
            return
        logger.info("Connected to %s", handle.address)
        self._emit("on_connection_state", LinkState.CONNECTED)

    def _on_disconnected(self, handle: ConnectionHandle) -> None:
        if not self._is_open(handle):
            # Our own close(); the session already knows
            return
        logger.info("Peripheral %s disconnected", handle.address)
        self.notifications.cleanup(handle.handle_id)
        self._emit("on_connection_state", LinkState.DISCONNECTED)

    def _is_open(self, handle: ConnectionHandle) -> bool:
        with self._lock:
            return handle.handle_id in self._links

    def _client_for(self, handle: ConnectionHandle) -> BLEClient:
        with self._lock:
            link = self._links.get(handle.handle_id)
        if link is None:
            raise BLEError(ERROR_NO_CLIENT.format(handle.handle_id))
        return link.client

    def discover_services(self, handle: ConnectionHandle) -> None:
        client = self._client_for(handle)

        async def _collect():
            # bleak resolves the GATT table while connecting
            return build_service_map(client.services or [])

        collected = client.async_run(_collect())
        collected.add_done_callback(self._services_done)

    def _services_done(self, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning("Service discovery failed: %s", error)
            self._emit("on_services_discovered", False, None)
            return
        services = future.result()
        logger.debug("Discovered %d services", len(services))
        self._emit("on_services_discovered", True, services)

    # GATT

    def _on_notification(self, _sender, data: bytearray) -> None:
        self._emit("on_characteristic_changed", bytes(data))

    def set_notify(
        self,
        handle: ConnectionHandle,
        service_uuid: str,
        characteristic_uuid: str,
        enabled: bool,
    ) -> None:
        """
        Record whether notifications from a characteristic should be delivered.

        Enabling only registers the subscription; it goes live when the CCCD is
        written. Disabling a live subscription also stops it on the peripheral.
        """
        client = self._client_for(handle)
        characteristic = normalize_uuid(characteristic_uuid)
        if enabled:
            logger.debug("Subscribing to %s in service %s", characteristic, service_uuid)
            self.notifications.subscribe(
                handle.handle_id, characteristic, self._on_notification
            )
            return
        was_subscribed = self.notifications.get_callback(handle.handle_id, characteristic)
        self.notifications.unsubscribe(handle.handle_id, characteristic)
        if was_subscribed is not None and client.is_connected():
            client.stop_notify(characteristic, timeout=self.io_timeout).add_done_callback(
                self._log_failure("stop notify")
            )

    def write_descriptor(
        self, handle: ConnectionHandle, descriptor_uuid: str, value: bytes
    ) -> None:
        """
        Write a descriptor on the peripheral.

        bleak owns the client characteristic configuration descriptor, so
        writes to it are carried out as start_notify/stop_notify for every
        characteristic subscribed through `set_notify`.

        Raises:
            BLEError: If the descriptor is not present in the discovered services.
        """
        client = self._client_for(handle)
        if normalize_uuid(descriptor_uuid) == CCCD_UUID:
            written = self._write_cccd(handle, client, value)
        else:
            attribute_handle = self._descriptor_handle(client, descriptor_uuid)
            written = client.write_gatt_descriptor(
                attribute_handle, bytes(value), timeout=self.io_timeout
            )
        written.add_done_callback(self._descriptor_done)

    def _write_cccd(self, handle: ConnectionHandle, client: BLEClient, value: bytes) -> Future:
        subscriptions = self.notifications.subscriptions_for(handle.handle_id)
        if not subscriptions:
            raise BLEError("No characteristic subscribed for notifications")
        if bytes(value) == DISABLE_NOTIFICATION_VALUE:
            pending = [
                client.stop_notify(characteristic, timeout=self.io_timeout)
                for characteristic, _callback in subscriptions
            ]
        else:
            pending = [
                client.start_notify(characteristic, callback, timeout=self.io_timeout)
                for characteristic, callback in subscriptions
            ]

        async def _all_written():
            for future in pending:
                await asyncio.wrap_future(future)

        return client.async_run(_all_written())

    @staticmethod
    def _descriptor_handle(client: BLEClient, descriptor_uuid: str) -> int:
        wanted = normalize_uuid(descriptor_uuid)
        for service in client.services or []:
            for characteristic in service.characteristics:
                for descriptor in characteristic.descriptors:
                    if str(descriptor.uuid).lower() == wanted:
                        return descriptor.handle
        raise BLEError(f"Descriptor {wanted} not found")

    def _descriptor_done(self, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning("Descriptor write failed: %s", error)
        self._emit("on_descriptor_written", error is None)

    # Teardown

    def close(self, handle: ConnectionHandle) -> None:
        with self._lock:
            link = self._links.pop(handle.handle_id, None)
        if link is None:
            return
        logger.debug("Closing connection to %s (handle %d)", handle.address, handle.handle_id)
        self.notifications.cleanup(handle.handle_id)
        release_address(handle.address)

        client = link.client
        if link.connect_future is not None and not link.connect_future.done():
            link.connect_future.cancel()
        disconnected = self.error_handler.safe_execute(
            lambda: client.disconnect(timeout=self.disconnect_timeout),
            error_msg="Unable to schedule disconnect",
        )
        if disconnected is None:
            self.error_handler.safe_cleanup(client.close, "client close")
            return
        # Runs on the client's own loop thread, which close() handles without joining
        disconnected.add_done_callback(
            lambda _f: self.error_handler.safe_cleanup(client.close, "client close")
        )

    def shutdown(self) -> None:
        """Stop scanning, close every connection and stop all client threads."""
        scan_client = self._scan_client
        stopped = scan_client.stop_scan() if scan_client is not None else None
        if stopped is not None:
            self.error_handler.safe_execute(
                lambda: stopped.result(timeout=self.io_timeout),
                error_msg="Scan did not stop cleanly",
            )
        with self._lock:
            handles = [link.handle for link in self._links.values()]
        for handle in handles:
            self.close(handle)
        self.notifications.cleanup_all()
        with self._lock:
            client, self._scan_client = self._scan_client, None
        if client is not None:
            self.error_handler.safe_cleanup(client.close, "scan client close")

    @staticmethod
    def _log_failure(operation: str) -> Callable[[Future], None]:
        def _done(future: Future) -> None:
            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                logger.debug("Radio %s failed: %s", operation, error)

        return _done
