"""BLE constants and configuration."""

import logging
from typing import Optional

logger = logging.getLogger("thermolink.ble")

# Peripheral identity and GATT layout
TARGET_DEVICE_NAME = "ESP32-Thermo"
SERVICE_UUID = "12345678-1234-1234-1234-1234567890ab"
TEMPERATURE_CHAR_UUID = "abcd1234-ab12-cd34-ef56-abcdef123456"
CCCD_UUID = "00002902-0000-1000-8000-00805f9b34fb"
ENABLE_NOTIFICATION_VALUE = b"\x01\x00"
DISABLE_NOTIFICATION_VALUE = b"\x00\x00"

# Timeout constants
EVENT_THREAD_JOIN_TIMEOUT = 2.0


class BLEConfig:
    """Configuration constants for BLE operations."""

    SCAN_TIMEOUT = 10.0
    CONNECTION_TIMEOUT = 30.0
    GATT_IO_TIMEOUT = 10.0
    DISCONNECT_TIMEOUT: Optional[float] = 5.0
    BLECLIENT_EVENT_THREAD_JOIN_TIMEOUT = 2.0


# Module-level shorthands for the BLEConfig defaults
SCAN_TIMEOUT = BLEConfig.SCAN_TIMEOUT
CONNECTION_TIMEOUT = BLEConfig.CONNECTION_TIMEOUT
GATT_IO_TIMEOUT = BLEConfig.GATT_IO_TIMEOUT
DISCONNECT_TIMEOUT = BLEConfig.DISCONNECT_TIMEOUT

# Scan failure codes reported by Radio.on_scan_failed
SCAN_FAILED_ALREADY_STARTED = 1
SCAN_FAILED_APPLICATION_REGISTRATION_FAILED = 2
SCAN_FAILED_INTERNAL_ERROR = 3
SCAN_FAILED_FEATURE_UNSUPPORTED = 4

# Status messages delivered to the user interface
STATUS_CHECKING_PERMISSIONS = "Checking Bluetooth permissions..."
STATUS_SCANNING = "Scanning for {0}..."
STATUS_CONNECTING = "Connecting to {0}..."
STATUS_DISCOVERING = "Discovering services..."
STATUS_ENABLING_NOTIFICATIONS = "Setting up temperature notifications..."
STATUS_STREAMING = "Ready for temperature readings..."
STATUS_DISCONNECTED = "Disconnected from {0}"
STATUS_ALREADY_RUNNING = "Session already running ({0})"
STATUS_RECORDED = "Temperature recorded: {0} °C"
STATUS_NOTHING_TO_RECORD = "No temperature to record"

# Error message constants
ERROR_UNSUPPORTED = "Bluetooth not supported on this device"
ERROR_PERMISSION_DENIED = "Permissions denied. Please enable in Settings."
ERROR_PERMISSION_REVOKED = "Bluetooth permission denied for {0}"
ERROR_DEVICE_NOT_FOUND = "{0} not found"
ERROR_SCAN_FAILED = "Scan failed with error: {0}"
ERROR_CONNECTION_LOST = "Connection to {0} lost"
ERROR_SERVICE_NOT_FOUND = "Temperature characteristic not found"
ERROR_SERVICE_DISCOVERY_FAILED = "Service discovery failed"
ERROR_NOTIFICATION_SETUP_FAILED = "Notification setup failed"
ERROR_DECODE = "Error reading temperature"
ERROR_TIMEOUT = "{0} timed out after {1:.1f} seconds"
ERROR_ALREADY_CONNECTED = "Device {0} is already connected by another session"
ERROR_NO_CLIENT = "No BLE connection for handle {0}"
BLECLIENT_ERROR_ASYNC_TIMEOUT = "Async operation timed out"


__all__ = [
    "BLEConfig",
    "BLECLIENT_ERROR_ASYNC_TIMEOUT",
    "CCCD_UUID",
    "CONNECTION_TIMEOUT",
    "DISABLE_NOTIFICATION_VALUE",
    "DISCONNECT_TIMEOUT",
    "ENABLE_NOTIFICATION_VALUE",
    "EVENT_THREAD_JOIN_TIMEOUT",
    "GATT_IO_TIMEOUT",
    "SCAN_FAILED_ALREADY_STARTED",
    "SCAN_FAILED_APPLICATION_REGISTRATION_FAILED",
    "SCAN_FAILED_FEATURE_UNSUPPORTED",
    "SCAN_FAILED_INTERNAL_ERROR",
    "SCAN_TIMEOUT",
    "SERVICE_UUID",
    "TARGET_DEVICE_NAME",
    "TEMPERATURE_CHAR_UUID",
    "logger",
]
