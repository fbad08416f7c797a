"""Temperature session: one peripheral connection driven end to end."""

from datetime import datetime
from threading import Event
from typing import AbstractSet, Callable, Dict, List, Optional, Type

from thermolink.interfaces.ble.constants import (
    BLEConfig,
    ENABLE_NOTIFICATION_VALUE,
    ERROR_CONNECTION_LOST,
    ERROR_DECODE,
    ERROR_DEVICE_NOT_FOUND,
    ERROR_NOTIFICATION_SETUP_FAILED,
    ERROR_PERMISSION_DENIED,
    ERROR_PERMISSION_REVOKED,
    ERROR_SCAN_FAILED,
    ERROR_SERVICE_DISCOVERY_FAILED,
    ERROR_SERVICE_NOT_FOUND,
    ERROR_UNSUPPORTED,
    SCAN_FAILED_INTERNAL_ERROR,
    STATUS_ALREADY_RUNNING,
    STATUS_CHECKING_PERMISSIONS,
    STATUS_CONNECTING,
    STATUS_DISCONNECTED,
    STATUS_DISCOVERING,
    STATUS_ENABLING_NOTIFICATIONS,
    STATUS_NOTHING_TO_RECORD,
    STATUS_RECORDED,
    STATUS_SCANNING,
    STATUS_STREAMING,
    TARGET_DEVICE_NAME,
    logger,
)
from thermolink.interfaces.ble.discovery import DeviceIdentity, TargetMatcher
from thermolink.interfaces.ble.errors import BLEErrorHandler, ErrorKind, SessionFailure
from thermolink.interfaces.ble.events import (
    CharacteristicChanged,
    ConnectionStateChanged,
    DescriptorWritten,
    DeviceFound,
    RadioEventBridge,
    RecordRequested,
    ScanFailed,
    ScanTimeout,
    ServicesDiscovered,
    SessionEvent,
    SessionEventLoop,
    StartRequested,
    TeardownRequested,
)
from thermolink.interfaces.ble.gatt import DEFAULT_SERVICE_DESCRIPTOR, ServiceDescriptor
from thermolink.interfaces.ble.permissions import (
    Capability,
    PermissionGate,
    RadioOperation,
    capabilities_for,
    required_capabilities,
)
from thermolink.interfaces.ble.radio import ConnectionHandle, LinkState, Radio
from thermolink.interfaces.ble.readings import (
    LatestReadingSlot,
    Reading,
    ReadingHistory,
    format_history,
)
from thermolink.interfaces.ble.state import SessionState, SessionStateManager
from thermolink.interfaces.ble.timers import ScheduledCall, Scheduler, ThreadingScheduler
from thermolink.interfaces.ble.ui import UserInterface

_CALL_FAILED = object()


class BleTemperatureSession:
    """
    State machine that scans for, connects to and streams from one temperature peripheral.

    Lifecycle:
        IDLE → PERMISSION_PENDING → SCANNING → CONNECTING → DISCOVERING_SERVICES
        → ENABLING_NOTIFICATIONS → STREAMING, ending in DISCONNECTED or FAILED.

    Every radio event and every UI command is posted to a single
    SessionEventLoop, so all state mutation happens on one consumer. With
    `threaded=True` (the default) the loop runs on its own worker thread;
    otherwise the host drives it by calling `process_events()`.

    Every privileged radio call is preceded by a fresh PermissionGate check.
    Errors never escape the event loop: they are logged and reported through
    `UserInterface.on_status`. No step is retried automatically; calling
    `start()` again after DISCONNECTED or FAILED resets the session and begins
    a new attempt.
    """

    def __init__(  # pylint: disable=R0913
        self,
        radio: Radio,
        permission_gate: PermissionGate,
        ui: Optional[UserInterface] = None,
        *,
        target_name: str = TARGET_DEVICE_NAME,
        descriptor: ServiceDescriptor = DEFAULT_SERVICE_DESCRIPTOR,
        scan_timeout: float = BLEConfig.SCAN_TIMEOUT,
        scheduler: Optional[Scheduler] = None,
        threaded: bool = True,
    ) -> None:
        """
        Create a session and wire the radio's callbacks into the session event loop.

        Parameters:
            radio (Radio): Radio used for scanning, connecting and GATT operations; owned by the caller.
            permission_gate (PermissionGate): Checked before every privileged radio call.
            ui (Optional[UserInterface]): Sink for status strings and readings; defaults to a no-op sink.
            target_name (str): Exact, case-sensitive advertised name of the peripheral.
            descriptor (ServiceDescriptor): Service, characteristic and CCCD to subscribe to.
            scan_timeout (float): Seconds to scan before failing with DEVICE_NOT_FOUND.
            scheduler (Optional[Scheduler]): Source of the cancellable scan timeout; defaults to threading timers.
            threaded (bool): If True, start a worker thread that drains the event queue.

        Raises:
            ValueError: If `target_name` is empty, `descriptor` is missing, or `scan_timeout` is not positive.
        """
        if descriptor is None:
            raise ValueError("descriptor must be provided")
        if scan_timeout <= 0:
            raise ValueError(f"scan_timeout must be > 0, got {scan_timeout}")
        self.radio = radio
        self.permission_gate = permission_gate
        self.ui = ui or UserInterface()
        self.descriptor = descriptor
        self.scan_timeout = scan_timeout
        self.scheduler = scheduler or ThreadingScheduler()
        self.error_handler = BLEErrorHandler()

        self._matcher = TargetMatcher(target_name)
        self._state_manager = SessionStateManager()
        self._latest = LatestReadingSlot()
        self._history = ReadingHistory()

        # Owned exclusively by the event loop
        self._handle: Optional[ConnectionHandle] = None
        self._scan_active = False
        self._scan_timer: Optional[ScheduledCall] = None
        self._generation = 0

        self._event_loop = SessionEventLoop(self._handle_event)
        self._handlers: Dict[Type[SessionEvent], Callable] = {
            StartRequested: self._on_start,
            RecordRequested: self._on_record,
            TeardownRequested: self._on_teardown,
            DeviceFound: self._on_device_found,
            ScanFailed: self._on_scan_failed,
            ScanTimeout: self._on_scan_timeout,
            ConnectionStateChanged: self._on_connection_state,
            ServicesDiscovered: self._on_services_discovered,
            DescriptorWritten: self._on_descriptor_written,
            CharacteristicChanged: self._on_characteristic_changed,
        }
        self.radio.set_listener(RadioEventBridge(self._event_loop.post))
        if threaded:
            self._event_loop.start()

    def __repr__(self):
        return (
            f"BleTemperatureSession(target_name={self.target_name!r}, "
            f"state={self.state.value})"
        )

    def __enter__(self):
        return self

    def __exit__(self, _type, _value, _traceback):
        self.close()

    # Inbound calls from the user interface

    def start(self) -> None:
        """Request a new connection attempt."""
        self._event_loop.post(StartRequested())

    def record_current_reading(self) -> None:
        """Append the latest reading, if any, to the history."""
        self._event_loop.post(RecordRequested())

    def teardown(self) -> None:
        """Stop scanning and close the connection. Safe to call in any state."""
        self._event_loop.post(TeardownRequested())

    def get_history(self) -> List[Reading]:
        """Return the recorded readings in insertion order."""
        return self._history.snapshot()

    def format_history(self) -> str:
        """Render the recorded readings as a table."""
        return format_history(self._history.snapshot())

    def process_events(self) -> int:
        """
        Drain the event queue on the calling thread.

        Only for sessions created with `threaded=False`.

        Returns:
            int: Number of events handled.
        """
        return self._event_loop.process_pending()

    def close(self, timeout: Optional[float] = BLEConfig.DISCONNECT_TIMEOUT) -> None:
        """
        Tear the session down, wait for the teardown to be handled, and stop the event loop.

        Parameters:
            timeout (Optional[float]): Seconds to wait for the worker thread to finish the teardown.
        """
        done = Event()
        self._event_loop.post(TeardownRequested(done=done))
        if self._event_loop.on_worker_thread:
            # Called from a UI callback; the teardown runs once that callback returns
            logger.debug("Session close requested from the event thread")
        elif self._event_loop.is_running:
            if not done.wait(timeout=timeout):
                logger.warning("Session teardown did not complete within %s seconds", timeout)
        else:
            self._event_loop.process_pending()
        self._event_loop.stop()
        self.radio.set_listener(None)

    # Observers, safe from any thread

    @property
    def target_name(self) -> str:
        return self._matcher.target_name

    @property
    def state(self) -> SessionState:
        return self._state_manager.state

    @property
    def failure(self) -> Optional[SessionFailure]:
        return self._state_manager.failure

    @property
    def latest_reading(self) -> Optional[Reading]:
        return self._latest.get()

    @property
    def matched_device(self) -> Optional[DeviceIdentity]:
        return self._matcher.match

    # Event loop

    def _handle_event(self, event: SessionEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("No handler for session event %r", event)
            return
        handler(event)

    def _on_start(self, _event: StartRequested) -> None:
        current = self.state
        if self._state_manager.is_active:
            logger.debug("Ignoring start() while %s", current.value)
            self._status(STATUS_ALREADY_RUNNING.format(current.value))
            return
        if self._state_manager.is_terminal:
            self._reset()

        self._generation += 1
        if not self.radio.is_available():
            self._fail(ErrorKind.UNSUPPORTED, ERROR_UNSUPPORTED)
            return

        self._state_manager.transition_to(SessionState.PERMISSION_PENDING)
        self._status(STATUS_CHECKING_PERMISSIONS)
        missing = self.permission_gate.missing(
            required_capabilities(self.permission_gate.model)
        )
        if missing:
            logger.warning(
                "Missing permissions: %s", ", ".join(sorted(c.value for c in missing))
            )
            self._fail(ErrorKind.PERMISSION_DENIED, ERROR_PERMISSION_DENIED)
            self._request_permissions(missing)
            return
        self._begin_scan()

    def _begin_scan(self) -> None:
        if not self._require(RadioOperation.START_SCAN):
            return
        self._state_manager.transition_to(SessionState.SCANNING)
        self._status(STATUS_SCANNING.format(self.target_name))
        result = self.error_handler.safe_execute(
            self.radio.start_scan,
            default_return=_CALL_FAILED,
            error_msg="Unable to start BLE scan",
        )
        if result is _CALL_FAILED:
            self._fail(
                ErrorKind.SCAN_FAILED,
                ERROR_SCAN_FAILED.format(SCAN_FAILED_INTERNAL_ERROR),
                code=SCAN_FAILED_INTERNAL_ERROR,
            )
            return
        self._scan_active = True
        generation = self._generation
        self._scan_timer = self.scheduler.call_later(
            self.scan_timeout,
            lambda: self._event_loop.post(ScanTimeout(generation)),
        )
        logger.debug(
            "Scanning for %s (timeout %.1fs, generation %d)",
            self.target_name,
            self.scan_timeout,
            generation,
        )

    def _on_device_found(self, event: DeviceFound) -> None:
        if self.state != SessionState.SCANNING:
            return
        if not self._matcher.offer(event.identity):
            return
        self._cancel_scan_timer()
        if not self._require(RadioOperation.STOP_SCAN):
            return
        self.error_handler.safe_cleanup(self.radio.stop_scan, "stop scan")
        self._scan_active = False

        self._state_manager.transition_to(SessionState.CONNECTING)
        self._status(STATUS_CONNECTING.format(self.target_name))
        handle = self._invoke(
            RadioOperation.CONNECT,
            lambda: self.radio.connect(event.identity.address),
            ErrorKind.CONNECTION_LOST,
            ERROR_CONNECTION_LOST.format(self.target_name),
        )
        if handle is not _CALL_FAILED:
            self._handle = handle

    def _on_scan_timeout(self, event: ScanTimeout) -> None:
        if event.generation != self._generation or self.state != SessionState.SCANNING:
            logger.debug("Ignoring stale scan timeout (generation %d)", event.generation)
            return
        self._scan_timer = None
        logger.info("No %s found within %.1fs", self.target_name, self.scan_timeout)
        self._fail(
            ErrorKind.DEVICE_NOT_FOUND, ERROR_DEVICE_NOT_FOUND.format(self.target_name)
        )

    def _on_scan_failed(self, event: ScanFailed) -> None:
        if self.state != SessionState.SCANNING:
            return
        # The stack has already stopped the scan
        self._scan_active = False
        self._fail(
            ErrorKind.SCAN_FAILED, ERROR_SCAN_FAILED.format(event.code), code=event.code
        )

    def _on_connection_state(self, event: ConnectionStateChanged) -> None:
        current = self.state
        if event.state == LinkState.CONNECTED:
            if current != SessionState.CONNECTING:
                logger.debug("Ignoring connected event while %s", current.value)
                return
            self._state_manager.transition_to(SessionState.DISCOVERING_SERVICES)
            self._status(STATUS_DISCOVERING)
            handle = self._handle
            self._invoke(
                RadioOperation.DISCOVER_SERVICES,
                lambda: self.radio.discover_services(handle),
                ErrorKind.SERVICE_NOT_FOUND,
                ERROR_SERVICE_DISCOVERY_FAILED,
            )
            return

        if current in (
            SessionState.CONNECTING,
            SessionState.DISCOVERING_SERVICES,
            SessionState.ENABLING_NOTIFICATIONS,
        ):
            self._fail(
                ErrorKind.CONNECTION_LOST, ERROR_CONNECTION_LOST.format(self.target_name)
            )
        elif current == SessionState.STREAMING:
            logger.info("%s disconnected", self.target_name)
            self._release_resources(report_denials=False)
            self._state_manager.transition_to(SessionState.DISCONNECTED)
            self._status(STATUS_DISCONNECTED.format(self.target_name))
        else:
            logger.debug("Ignoring disconnected event while %s", current.value)

    def _on_services_discovered(self, event: ServicesDiscovered) -> None:
        if self.state != SessionState.DISCOVERING_SERVICES:
            return
        if not event.ok:
            self._fail(ErrorKind.SERVICE_NOT_FOUND, ERROR_SERVICE_DISCOVERY_FAILED)
            return
        if not self.descriptor.is_present_in(event.services):
            logger.warning(
                "Service %s / characteristic %s not offered by %s",
                self.descriptor.service_uuid,
                self.descriptor.characteristic_uuid,
                self.target_name,
            )
            self._fail(ErrorKind.SERVICE_NOT_FOUND, ERROR_SERVICE_NOT_FOUND)
            return

        self._state_manager.transition_to(SessionState.ENABLING_NOTIFICATIONS)
        self._status(STATUS_ENABLING_NOTIFICATIONS)
        handle = self._handle
        descriptor = self.descriptor
        result = self._invoke(
            RadioOperation.SET_NOTIFY,
            lambda: self.radio.set_notify(
                handle, descriptor.service_uuid, descriptor.characteristic_uuid, True
            ),
            ErrorKind.NOTIFICATION_SETUP_FAILED,
            ERROR_NOTIFICATION_SETUP_FAILED,
        )
        if result is _CALL_FAILED:
            return
        self._invoke(
            RadioOperation.WRITE_DESCRIPTOR,
            lambda: self.radio.write_descriptor(
                handle, descriptor.notify_descriptor_uuid, ENABLE_NOTIFICATION_VALUE
            ),
            ErrorKind.NOTIFICATION_SETUP_FAILED,
            ERROR_NOTIFICATION_SETUP_FAILED,
        )

    def _on_descriptor_written(self, event: DescriptorWritten) -> None:
        if self.state != SessionState.ENABLING_NOTIFICATIONS:
            return
        if not event.ok:
            self._fail(
                ErrorKind.NOTIFICATION_SETUP_FAILED, ERROR_NOTIFICATION_SETUP_FAILED
            )
            return
        self._state_manager.transition_to(SessionState.STREAMING)
        self._status(STATUS_STREAMING)

    def _on_characteristic_changed(self, event: CharacteristicChanged) -> None:
        if self.state != SessionState.STREAMING:
            logger.debug("Ignoring notification while %s", self.state.value)
            return
        try:
            text = event.data.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.debug("Malformed temperature payload %r: %s", event.data, e)
            self._report_error(ErrorKind.DECODE_ERROR, ERROR_DECODE)
            return
        self._latest.set(Reading(text=text, received_at=datetime.now()))
        logger.debug("Temperature notification: %s", text)
        self.error_handler.safe_execute(
            lambda: self.ui.on_reading(text), error_msg="UI reading callback failed"
        )

    def _on_record(self, _event: RecordRequested) -> None:
        reading = self._latest.get()
        if reading is None:
            self._status(STATUS_NOTHING_TO_RECORD)
            return
        self._history.append(reading)
        self._status(STATUS_RECORDED.format(reading.text))

    def _on_teardown(self, event: TeardownRequested) -> None:
        try:
            self._cancel_scan_timer()
            self._release_resources(report_denials=True)
            self._latest.clear()
            self._matcher.reset()
            if not self._state_manager.is_terminal:
                self._state_manager.transition_to(SessionState.DISCONNECTED)
                self._status(STATUS_DISCONNECTED.format(self.target_name))
        finally:
            if event.done is not None:
                event.done.set()

    # Helpers

    def _reset(self) -> None:
        """Return a finished session to IDLE so start() can begin a fresh attempt."""
        self._cancel_scan_timer()
        self._release_resources(report_denials=True)
        self._matcher.reset()
        self._state_manager.transition_to(SessionState.IDLE)

    def _report_error(self, kind: ErrorKind, message: str) -> None:
        """Fail the session for terminal kinds; otherwise only report the status."""
        if kind.is_terminal:
            self._fail(kind, message)
            return
        logger.warning("Session error %s: %s", kind.value, message)
        self._status(message)

    def _fail(self, kind: ErrorKind, message: str, code: Optional[int] = None) -> None:
        if self._state_manager.is_terminal:
            logger.debug("Already finished; not failing again with %s", kind.value)
            return
        failure = SessionFailure(kind=kind, detail=message, code=code)
        self._cancel_scan_timer()
        self._release_resources(report_denials=False)
        if self._state_manager.transition_to(SessionState.FAILED, failure):
            logger.info("Session failed: %s", failure)
            self._status(message)

    def _release_resources(self, *, report_denials: bool) -> None:
        """
        Stop any active scan and close any open connection, ignoring radio errors.

        A radio call whose permission has been revoked is skipped; with
        `report_denials` the denial is also surfaced to the UI.
        """
        if self._scan_active:
            if self._permitted(RadioOperation.STOP_SCAN, report_denials):
                self.error_handler.safe_cleanup(self.radio.stop_scan, "stop scan")
                self._scan_active = False
        if self._handle is not None:
            handle = self._handle
            if self._permitted(RadioOperation.CLOSE, report_denials):
                self.error_handler.safe_cleanup(
                    lambda: self.radio.close(handle), "close connection"
                )
                self._handle = None

    def _missing_for(self, operation: RadioOperation) -> AbstractSet[Capability]:
        return self.permission_gate.missing(
            capabilities_for(operation, self.permission_gate.model)
        )

    def _permitted(self, operation: RadioOperation, report: bool) -> bool:
        missing = self._missing_for(operation)
        if not missing:
            return True
        logger.warning("Skipping %s: permission revoked", operation.value)
        if report:
            self._status(ERROR_PERMISSION_REVOKED.format(operation.value))
        return False

    def _require(self, operation: RadioOperation) -> bool:
        """Check permissions for `operation`, failing the session when any is revoked."""
        missing = self._missing_for(operation)
        if not missing:
            return True
        logger.warning("Permission revoked before %s", operation.value)
        self._fail(
            ErrorKind.PERMISSION_DENIED,
            ERROR_PERMISSION_REVOKED.format(operation.value),
        )
        self._request_permissions(missing)
        return False

    def _invoke(self, operation: RadioOperation, func, failure_kind: ErrorKind, message: str):
        """Run a privileged radio command; on denial or error fail the session and return _CALL_FAILED."""
        if not self._require(operation):
            return _CALL_FAILED
        result = self.error_handler.safe_execute(
            func,
            default_return=_CALL_FAILED,
            error_msg=f"Radio {operation.value} failed",
        )
        if result is _CALL_FAILED:
            self._report_error(failure_kind, message)
        return result

    def _cancel_scan_timer(self) -> None:
        if self._scan_timer is not None:
            self._scan_timer.cancel()
            self._scan_timer = None

    def _status(self, text: str) -> None:
        logger.debug("Status: %s", text)
        self.error_handler.safe_execute(
            lambda: self.ui.on_status(text), error_msg="UI status callback failed"
        )

    def _request_permissions(self, missing: AbstractSet[Capability]) -> None:
        self.error_handler.safe_execute(
            lambda: self.ui.on_permission_required(frozenset(missing)),
            error_msg="UI permission callback failed",
        )
