"""Device identity and target matching for BLE scans."""

from dataclasses import dataclass
from threading import RLock
from typing import Any, Optional

from thermolink.interfaces.ble.constants import logger
from thermolink.interfaces.ble.utils import sanitize_address


@dataclass(frozen=True)
class DeviceIdentity:
    """Name and address of an advertising peripheral, as observed during a scan."""

    name: Optional[str]
    address: str

    @property
    def address_key(self) -> Optional[str]:
        """Separator-insensitive form of the address for registry lookups."""
        return sanitize_address(self.address)


def identity_from_advertisement(device: Any, advertisement: Any = None) -> DeviceIdentity:
    """
    Build a DeviceIdentity from a bleak detection callback pair.

    The advertised local name takes precedence over the cached device name,
    which may be stale on some backends.
    """
    name = getattr(advertisement, "local_name", None) or getattr(device, "name", None)
    return DeviceIdentity(name=name, address=device.address)


class TargetMatcher:
    """
    Select the first scanned device whose name equals the target name.

    Matching is exact and case-sensitive. Once a device has matched, every later
    advertisement is ignored until `reset()`, so duplicate advertisements that
    arrive together are resolved by arrival order.
    """

    def __init__(self, target_name: str):
        if not target_name:
            raise ValueError("target_name must be a non-empty device name")
        self.target_name = target_name
        self._lock = RLock()
        self._match: Optional[DeviceIdentity] = None

    @property
    def match(self) -> Optional[DeviceIdentity]:
        """The device selected by the current scan, if any."""
        with self._lock:
            return self._match

    def offer(self, identity: DeviceIdentity) -> bool:
        """
        Consider a discovered device.

        Returns:
            bool: `True` only for the first device whose name matches the target.
        """
        with self._lock:
            if self._match is not None:
                logger.debug("Ignoring %s; target already matched", identity.address)
                return False
            if identity.name != self.target_name:
                return False
            self._match = identity
            logger.debug("Matched %s at %s", identity.name, identity.address)
            return True

    def reset(self) -> None:
        """Forget the current match so a fresh scan can select again."""
        with self._lock:
            self._match = None
