"""Abstract radio interface consumed by temperature sessions."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from thermolink.interfaces.ble.discovery import DeviceIdentity

_handle_ids = count(1)


class LinkState(Enum):
    """Connection states reported by a radio."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ConnectionHandle:
    """Opaque reference to one radio connection."""

    address: str
    handle_id: int = field(default_factory=lambda: next(_handle_ids))


# Discovered GATT layout: service UUID -> characteristic UUIDs
ServiceMap = Mapping[str, FrozenSet[str]]


def build_service_map(services: Iterable) -> Dict[str, FrozenSet[str]]:
    """
    Flatten a GATT service collection into a ServiceMap with lowercase UUID keys.

    Repeated instances of one service UUID contribute the union of their characteristics.

    Parameters:
        services: Iterable of service objects exposing `uuid` and `characteristics`
            (each characteristic exposing `uuid`), such as a bleak service collection.
    """
    service_map: Dict[str, FrozenSet[str]] = {}
    for service in services:
        characteristics = getattr(service, "characteristics", None) or []
        key = str(service.uuid).lower()
        service_map[key] = service_map.get(key, frozenset()) | frozenset(
            str(char.uuid).lower() for char in characteristics
        )
    return service_map


class RadioListener:
    """
    Receiver for asynchronous radio events.

    Radios invoke these from their own callback context; implementations must
    hand the event off without touching session state directly.
    """

    def on_device_found(self, identity: DeviceIdentity) -> None:
        """A device advertisement was observed during a scan."""

    def on_scan_failed(self, code: int) -> None:
        """The scan could not be started or was aborted by the stack."""

    def on_connection_state(self, state: LinkState) -> None:
        """The connection opened by `Radio.connect` changed state."""

    def on_services_discovered(self, ok: bool, services: Optional[ServiceMap]) -> None:
        """Service discovery requested by `Radio.discover_services` completed."""

    def on_descriptor_written(self, ok: bool) -> None:
        """A descriptor write requested by `Radio.write_descriptor` completed."""

    def on_characteristic_changed(self, data: bytes) -> None:
        """A subscribed characteristic delivered a notification."""


class Radio(ABC):
    """
    Non-blocking BLE radio.

    Commands return immediately; their outcome is reported later through the
    registered RadioListener.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Report whether BLE hardware is present and usable."""

    @abstractmethod
    def set_listener(self, listener: Optional[RadioListener]) -> None:
        """Register the receiver for radio events."""

    @abstractmethod
    def start_scan(self, service_uuids: Optional[Iterable[str]] = None) -> None:
        """Begin scanning; each advertisement is reported via `on_device_found`."""

    @abstractmethod
    def stop_scan(self) -> None:
        """Stop the active scan. Must be a no-op when no scan is active."""

    @abstractmethod
    def connect(self, address: str) -> ConnectionHandle:
        """Begin opening a connection; completion arrives via `on_connection_state`."""

    @abstractmethod
    def discover_services(self, handle: ConnectionHandle) -> None:
        """Begin service discovery; completion arrives via `on_services_discovered`."""

    @abstractmethod
    def set_notify(
        self,
        handle: ConnectionHandle,
        service_uuid: str,
        characteristic_uuid: str,
        enabled: bool,
    ) -> None:
        """Enable or disable local delivery of notifications for a characteristic."""

    @abstractmethod
    def write_descriptor(
        self, handle: ConnectionHandle, descriptor_uuid: str, value: bytes
    ) -> None:
        """Write a descriptor; completion arrives via `on_descriptor_written`."""

    @abstractmethod
    def close(self, handle: ConnectionHandle) -> None:
        """Close the connection. Must be a no-op for an already-closed handle."""

    def shutdown(self) -> None:
        """Release radio-owned resources such as background threads."""
