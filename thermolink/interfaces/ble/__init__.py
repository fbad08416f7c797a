"""BLE temperature session package."""

from thermolink.interfaces.ble.bleak_radio import BleakRadio, scan_failure_code
from thermolink.interfaces.ble.client import BLEClient
from thermolink.interfaces.ble.constants import (
    BLECLIENT_ERROR_ASYNC_TIMEOUT,
    BLEConfig,
    CCCD_UUID,
    CONNECTION_TIMEOUT,
    DISABLE_NOTIFICATION_VALUE,
    DISCONNECT_TIMEOUT,
    ENABLE_NOTIFICATION_VALUE,
    EVENT_THREAD_JOIN_TIMEOUT,
    GATT_IO_TIMEOUT,
    SCAN_FAILED_ALREADY_STARTED,
    SCAN_FAILED_APPLICATION_REGISTRATION_FAILED,
    SCAN_FAILED_FEATURE_UNSUPPORTED,
    SCAN_FAILED_INTERNAL_ERROR,
    SCAN_TIMEOUT,
    SERVICE_UUID,
    TARGET_DEVICE_NAME,
    TEMPERATURE_CHAR_UUID,
    logger,
)
from thermolink.interfaces.ble.discovery import (
    DeviceIdentity,
    TargetMatcher,
    identity_from_advertisement,
)
from thermolink.interfaces.ble.errors import (
    BLEError,
    BLEErrorHandler,
    ErrorKind,
    SessionFailure,
)
from thermolink.interfaces.ble.events import RadioEventBridge, SessionEventLoop
from thermolink.interfaces.ble.gatt import DEFAULT_SERVICE_DESCRIPTOR, ServiceDescriptor
from thermolink.interfaces.ble.notifications import NotificationManager
from thermolink.interfaces.ble.permissions import (
    Capability,
    PermissionGate,
    PermissionModel,
    RadioOperation,
    StaticPermissionGate,
    capabilities_for,
    required_capabilities,
)
from thermolink.interfaces.ble.radio import (
    ConnectionHandle,
    LinkState,
    Radio,
    RadioListener,
    ServiceMap,
    build_service_map,
)
from thermolink.interfaces.ble.readings import (
    NO_HISTORY_MESSAGE,
    LatestReadingSlot,
    Reading,
    ReadingHistory,
    format_history,
)
from thermolink.interfaces.ble.session import BleTemperatureSession
from thermolink.interfaces.ble.state import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    SessionState,
    SessionStateManager,
)
from thermolink.interfaces.ble.timers import ScheduledCall, Scheduler, ThreadingScheduler
from thermolink.interfaces.ble.ui import (
    TOPIC_PERMISSION,
    TOPIC_READING,
    TOPIC_STATUS,
    PubSubUserInterface,
    UserInterface,
)

__all__ = [
    # Core classes
    "BleTemperatureSession",
    "BleakRadio",
    "BLEClient",
    "BLEConfig",
    "BLEError",
    "BLEErrorHandler",
    "Capability",
    "ConnectionHandle",
    "DeviceIdentity",
    "ErrorKind",
    "LatestReadingSlot",
    "LinkState",
    "NotificationManager",
    "PermissionGate",
    "PermissionModel",
    "PubSubUserInterface",
    "Radio",
    "RadioEventBridge",
    "RadioListener",
    "RadioOperation",
    "Reading",
    "ReadingHistory",
    "ScheduledCall",
    "Scheduler",
    "ServiceDescriptor",
    "ServiceMap",
    "SessionEventLoop",
    "SessionFailure",
    "SessionState",
    "SessionStateManager",
    "StaticPermissionGate",
    "TargetMatcher",
    "ThreadingScheduler",
    "UserInterface",
    # Constants/helpers
    "ACTIVE_STATES",
    "BLECLIENT_ERROR_ASYNC_TIMEOUT",
    "CCCD_UUID",
    "CONNECTION_TIMEOUT",
    "DEFAULT_SERVICE_DESCRIPTOR",
    "DISABLE_NOTIFICATION_VALUE",
    "DISCONNECT_TIMEOUT",
    "ENABLE_NOTIFICATION_VALUE",
    "EVENT_THREAD_JOIN_TIMEOUT",
    "GATT_IO_TIMEOUT",
    "NO_HISTORY_MESSAGE",
    "SCAN_FAILED_ALREADY_STARTED",
    "SCAN_FAILED_APPLICATION_REGISTRATION_FAILED",
    "SCAN_FAILED_FEATURE_UNSUPPORTED",
    "SCAN_FAILED_INTERNAL_ERROR",
    "SCAN_TIMEOUT",
    "SERVICE_UUID",
    "TARGET_DEVICE_NAME",
    "TEMPERATURE_CHAR_UUID",
    "TERMINAL_STATES",
    "TOPIC_PERMISSION",
    "TOPIC_READING",
    "TOPIC_STATUS",
    "build_service_map",
    "capabilities_for",
    "format_history",
    "identity_from_advertisement",
    "logger",
    "required_capabilities",
    "scan_failure_code",
]
