# ruff: noqa: F401
"""The public API for the thermolink BLE temperature client."""

from .interfaces.ble.bleak_radio import BleakRadio
from .interfaces.ble.client import BLEClient
from .interfaces.ble.constants import (
    BLEConfig,
    CCCD_UUID,
    SERVICE_UUID,
    TARGET_DEVICE_NAME,
    TEMPERATURE_CHAR_UUID,
)
from .interfaces.ble.errors import BLEError, BLEErrorHandler, ErrorKind, SessionFailure
from .interfaces.ble.gatt import ServiceDescriptor
from .interfaces.ble.permissions import (
    Capability,
    PermissionGate,
    PermissionModel,
    StaticPermissionGate,
)
from .interfaces.ble.radio import ConnectionHandle, LinkState, Radio, RadioListener
from .interfaces.ble.readings import Reading, format_history
from .interfaces.ble.session import BleTemperatureSession
from .interfaces.ble.state import SessionState
from .interfaces.ble.ui import PubSubUserInterface, UserInterface

__all__ = [
    "BLEClient",
    "BLEConfig",
    "BLEError",
    "BLEErrorHandler",
    "BleTemperatureSession",
    "BleakRadio",
    "CCCD_UUID",
    "Capability",
    "ConnectionHandle",
    "ErrorKind",
    "LinkState",
    "PermissionGate",
    "PermissionModel",
    "PubSubUserInterface",
    "Radio",
    "RadioListener",
    "Reading",
    "SERVICE_UUID",
    "ServiceDescriptor",
    "SessionFailure",
    "SessionState",
    "StaticPermissionGate",
    "TARGET_DEVICE_NAME",
    "TEMPERATURE_CHAR_UUID",
    "UserInterface",
    "format_history",
]
