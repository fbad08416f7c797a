"""Thread-hosted asyncio wrapper around bleak for scanning and a single GATT link."""

import asyncio
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from threading import Thread, current_thread
from typing import Any, Callable, Iterable, Optional

from bleak import BleakClient as BleakRootClient
from bleak import BleakScanner

from thermolink.interfaces.ble.constants import (
    BLECLIENT_ERROR_ASYNC_TIMEOUT,
    BLEConfig,
    ERROR_TIMEOUT,
    logger,
)
from thermolink.interfaces.ble.errors import BLEError, BLEErrorHandler


class BLEClient:
    """
    Client wrapper that runs bleak coroutines on a dedicated event loop thread.

    Bleak is asyncio-only while sessions are driven from plain threads. Each
    BLEClient owns an event loop running in a background thread; operations are
    scheduled onto it and return `concurrent.futures.Future` objects, so callers
    never block waiting for the radio. Callbacks attached to those futures run
    on the client's loop thread.

    A client created without an address is discovery-only: it can scan but
    has no underlying BleakClient.
    """

    @staticmethod
    async def _with_timeout(awaitable, timeout: Optional[float], label: str):
        """
        Await a bleak call on the loop, bounded by `timeout` seconds when one is given.

        Raises:
            BLEError: Naming `label` when the call overruns its timeout.
        """
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise BLEError(ERROR_TIMEOUT.format(label, timeout)) from exc

    def __init__(self, address=None, *, log_if_no_address: bool = True, **kwargs) -> None:
        """
        Create the client's event loop thread and, when `address` is given, the underlying BleakClient.

        Parameters:
            address (Optional[str]): Peripheral address to bind a BleakClient to; None for discovery-only mode.
            log_if_no_address (bool): If True and `address` is None, emit a debug message about discovery-only mode.
            **kwargs: Forwarded to the BleakClient constructor (for example `disconnected_callback`).
        """
        self.error_handler = BLEErrorHandler()
        self.address = address
        self.bleak_client: Optional[BleakRootClient] = None
        self._scanner: Optional[BleakScanner] = None
        self._scan_started: Optional[Future] = None

        self._eventLoop = asyncio.new_event_loop()
        self._eventThread = Thread(
            target=self._run_event_loop, name="BLEClient", daemon=True
        )
        try:
            self._eventThread.start()
        except RuntimeError:
            self._eventLoop.close()
            raise

        if not address:
            if log_if_no_address:
                logger.debug("No address provided - only scanning will work.")
            return

        self.bleak_client = BleakRootClient(address, **kwargs)

    def __repr__(self):
        return f"BLEClient(address={self.address!r})"

    @property
    def is_scanning(self) -> bool:
        return self._scan_started is not None

    def discover(self, **kwargs):
        """
        Scan for nearby devices and block until the scan completes.

        Keyword arguments are forwarded to BleakScanner.discover (for example `timeout`).

        Returns:
            The value returned by BleakScanner.discover.
        """
        timeout = kwargs.get("timeout", BLEConfig.SCAN_TIMEOUT)
        return self.async_await(BleakScanner.discover(**kwargs), timeout=timeout + 5.0)

    def probe(self, timeout: float = BLEConfig.GATT_IO_TIMEOUT, **kwargs) -> bool:
        """
        Check whether a bleak scanner can be created on this host.

        Returns:
            bool: `True` if the backend accepted the scanner, `False` otherwise.
        """

        async def _create_scanner():
            BleakScanner(**kwargs)
            return True

        return self.error_handler.safe_execute(
            lambda: self.async_await(_create_scanner(), timeout=timeout),
            default_return=False,
            error_msg="BLE backend unavailable",
        )

    def start_scan(
        self,
        detection_callback: Callable[[Any, Any], None],
        service_uuids: Optional[Iterable[str]] = None,
        **kwargs,
    ) -> Future:
        """
        Start a continuous scan that reports every advertisement to `detection_callback`.

        Raises:
            BLEError: If a scan is already running on this client.

        Returns:
            Future: Completes once the scanner is running.
        """
        if self._scan_started is not None:
            raise BLEError("Scan already in progress")
        if service_uuids:
            kwargs["service_uuids"] = list(service_uuids)

        async def _start():
            scanner = BleakScanner(detection_callback=detection_callback, **kwargs)
            await scanner.start()
            self._scanner = scanner

        self._scan_started = self.async_run(_start())
        return self._scan_started

    def stop_scan(self) -> Optional[Future]:
        """
        Stop the running scan, waiting on the loop for a pending start to settle first.

        Returns:
            Optional[Future]: Completes once the scanner stopped, or None when no scan is running.
        """
        started = self._scan_started
        if started is None:
            return None
        self._scan_started = None

        async def _stop():
            try:
                await asyncio.wrap_future(started)
            except Exception as e:  # noqa: BLE001 - a failed start leaves nothing to stop
                logger.debug("Scan never started: %s", e)
                return
            scanner, self._scanner = self._scanner, None
            if scanner is not None:
                await scanner.stop()

        return self.async_run(_stop())

    def scan_failed(self, started: Future) -> None:
        """Forget a scan whose start future raised, unless a newer scan replaced it."""
        if self._scan_started is started:
            self._scan_started = None
            self._scanner = None

    def connect(self, *, timeout: Optional[float] = None, **kwargs) -> Future:
        """
        Connect the underlying BleakClient; service discovery is part of bleak's connect.

        Parameters:
            timeout (Optional[float]): Seconds allowed for the connection; None waits indefinitely.
            **kwargs: Forwarded to BleakClient.connect.
        """
        if self.bleak_client is None:
            raise BLEError("Cannot connect: BLE client not initialized")
        return self.async_run(
            self._with_timeout(self.bleak_client.connect(**kwargs), timeout, "connect")
        )

    def is_connected(self) -> bool:
        """
        Report the link state bleak holds for this peripheral.

        A missing client or an unreadable state counts as disconnected.
        """
        bleak_client = self.bleak_client
        if bleak_client is None:
            return False

        def _check_connection():
            connected = getattr(bleak_client, "is_connected", False)
            if callable(connected):
                connected = connected()
            return bool(connected)

        return self.error_handler.safe_execute(
            _check_connection,
            default_return=False,
            error_msg="Unable to read bleak connection state",
        )

    @property
    def services(self):
        """The GATT service collection resolved during connect, or None."""
        if self.bleak_client is None:
            return None
        return getattr(self.bleak_client, "services", None)

    def start_notify(
        self, characteristic: str, callback, *, timeout: Optional[float] = None
    ) -> Future:
        """Subscribe to a characteristic; bleak writes the CCCD as part of this call."""
        if self.bleak_client is None:
            raise BLEError("Cannot start notify: BLE client not initialized")
        return self.async_run(
            self._with_timeout(
                self.bleak_client.start_notify(characteristic, callback),
                timeout,
                "start notify",
            )
        )

    def stop_notify(self, characteristic: str, *, timeout: Optional[float] = None) -> Future:
        """Unsubscribe from a characteristic."""
        if self.bleak_client is None:
            raise BLEError("Cannot stop notify: BLE client not initialized")
        return self.async_run(
            self._with_timeout(
                self.bleak_client.stop_notify(characteristic), timeout, "stop notify"
            )
        )

    def write_gatt_descriptor(
        self, descriptor_handle: int, data: bytes, *, timeout: Optional[float] = None
    ) -> Future:
        """Write raw bytes to a descriptor identified by its attribute handle."""
        if self.bleak_client is None:
            raise BLEError("Cannot write descriptor: BLE client not initialized")
        return self.async_run(
            self._with_timeout(
                self.bleak_client.write_gatt_descriptor(descriptor_handle, data),
                timeout,
                "descriptor write",
            )
        )

    def disconnect(self, *, timeout: Optional[float] = None) -> Future:
        """Disconnect from the peripheral."""
        if self.bleak_client is None:
            raise BLEError("Cannot disconnect: BLE client not initialized")
        return self.async_run(
            self._with_timeout(self.bleak_client.disconnect(), timeout, "disconnect")
        )

    def close(self):
        """
        Shut down the client's event loop and its background thread.

        When called from the loop thread itself (for example from a future
        callback) the loop is stopped without joining.
        """
        if self._eventLoop.is_closed():
            return
        if current_thread() is self._eventThread:
            self._eventLoop.stop()
            return
        self.error_handler.safe_cleanup(
            lambda: self.async_run(self._stop_event_loop()), "event loop stop"
        )
        self._eventThread.join(timeout=BLEConfig.BLECLIENT_EVENT_THREAD_JOIN_TIMEOUT)
        if self._eventThread.is_alive():
            logger.warning(
                "BLE event thread did not exit within %.1fs",
                BLEConfig.BLECLIENT_EVENT_THREAD_JOIN_TIMEOUT,
            )

    def __enter__(self):
        return self

    def __exit__(self, _type, _value, _traceback):
        self.close()

    def async_await(self, coro, timeout=None):
        """
        Block the calling thread until `coro` finishes on the loop thread.

        Used only by the one-shot discovery helpers; session code never blocks.

        Raises:
            BLEError: If `timeout` seconds pass first. The coroutine is cancelled.
        """
        future = self.async_run(coro)
        try:
            return future.result(timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise BLEError(BLECLIENT_ERROR_ASYNC_TIMEOUT) from e

    def async_run(self, coro) -> Future:
        """
        Hand `coro` to the loop thread without waiting.

        Returns:
            concurrent.futures.Future: Settles with the coroutine result; done callbacks
            run on the loop thread.
        """
        return asyncio.run_coroutine_threadsafe(coro, self._eventLoop)

    def _run_event_loop(self):
        """Run the client's event loop until stopped, then close it."""
        asyncio.set_event_loop(self._eventLoop)
        self.error_handler.safe_execute(
            self._eventLoop.run_forever, error_msg="Error in event loop", reraise=False
        )
        self._eventLoop.close()

    async def _stop_event_loop(self):
        """Request the internal event loop to stop."""
        self._eventLoop.stop()
