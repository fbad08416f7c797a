"""GATT layout of the temperature peripheral."""

from dataclasses import dataclass
from typing import Optional

from thermolink.interfaces.ble.constants import (
    CCCD_UUID,
    SERVICE_UUID,
    TEMPERATURE_CHAR_UUID,
)
from thermolink.interfaces.ble.radio import ServiceMap
from thermolink.interfaces.ble.utils import normalize_uuid


@dataclass(frozen=True)
class ServiceDescriptor:
    """Service, characteristic and notification descriptor a session subscribes to.

    UUIDs are stored in canonical lowercase form so lookups against discovered
    services are case-insensitive.
    """

    service_uuid: str = SERVICE_UUID
    characteristic_uuid: str = TEMPERATURE_CHAR_UUID
    notify_descriptor_uuid: str = CCCD_UUID

    def __post_init__(self):
        for name in ("service_uuid", "characteristic_uuid", "notify_descriptor_uuid"):
            object.__setattr__(self, name, normalize_uuid(getattr(self, name)))

    def is_present_in(self, services: Optional[ServiceMap]) -> bool:
        """Return True when the discovered services expose our service and characteristic."""
        if not services:
            return False
        return any(
            str(service_uuid).lower() == self.service_uuid
            and self.characteristic_uuid in {str(c).lower() for c in characteristics}
            for service_uuid, characteristics in services.items()
        )


DEFAULT_SERVICE_DESCRIPTOR = ServiceDescriptor()
