"""Runtime permission model for privileged radio operations."""

from abc import ABC, abstractmethod
from enum import Enum
from threading import RLock
from typing import FrozenSet, Iterable, Optional, Set


class Capability(Enum):
    """Capabilities a platform may grant or revoke at runtime."""

    SCAN = "scan"
    CONNECT = "connect"
    LOCATION = "location"


class PermissionModel(Enum):
    """Platform permission model versions.

    MODERN platforms gate scanning and connecting separately; LEGACY platforms
    only gate location at runtime.
    """

    LEGACY = "legacy"
    MODERN = "modern"


class RadioOperation(Enum):
    """Privileged radio calls that must be preceded by a permission check."""

    START_SCAN = "start scan"
    STOP_SCAN = "stop scan"
    CONNECT = "connect"
    DISCOVER_SERVICES = "discover services"
    SET_NOTIFY = "enable notifications"
    WRITE_DESCRIPTOR = "write descriptor"
    CLOSE = "close connection"


_MODEL_REQUIREMENTS = {
    PermissionModel.LEGACY: frozenset({Capability.LOCATION}),
    PermissionModel.MODERN: frozenset(
        {Capability.SCAN, Capability.CONNECT, Capability.LOCATION}
    ),
}

_OPERATION_CAPABILITIES = {
    RadioOperation.START_SCAN: frozenset({Capability.SCAN, Capability.LOCATION}),
    RadioOperation.STOP_SCAN: frozenset({Capability.SCAN}),
    RadioOperation.CONNECT: frozenset({Capability.CONNECT}),
    RadioOperation.DISCOVER_SERVICES: frozenset({Capability.CONNECT}),
    RadioOperation.SET_NOTIFY: frozenset({Capability.CONNECT}),
    RadioOperation.WRITE_DESCRIPTOR: frozenset({Capability.CONNECT}),
    RadioOperation.CLOSE: frozenset({Capability.CONNECT}),
}


def required_capabilities(model: PermissionModel) -> FrozenSet[Capability]:
    """Return the capabilities a session needs before it may scan."""
    return _MODEL_REQUIREMENTS[model]


def capabilities_for(
    operation: RadioOperation, model: PermissionModel
) -> FrozenSet[Capability]:
    """
    Return the capabilities that must be granted immediately before `operation`.

    Capabilities the permission model does not gate at runtime are dropped, so
    on LEGACY platforms only scan start requires a check.
    """
    return _OPERATION_CAPABILITIES[operation] & _MODEL_REQUIREMENTS[model]


class PermissionGate(ABC):
    """Source of truth for currently granted capabilities."""

    model: PermissionModel = PermissionModel.MODERN

    @abstractmethod
    def is_granted(self, capability: Capability) -> bool:
        """Report whether `capability` is granted right now."""

    def missing(self, capabilities: Iterable[Capability]) -> Set[Capability]:
        """Return the subset of `capabilities` that is not currently granted."""
        return {cap for cap in capabilities if not self.is_granted(cap)}


class StaticPermissionGate(PermissionGate):
    """
    In-memory permission gate whose grants can be changed at runtime.

    Desktop hosts have no runtime permission prompts, so they use
    `StaticPermissionGate.all_granted()`. Tests revoke capabilities mid-session
    to exercise re-validation.
    """

    def __init__(
        self,
        granted: Optional[Iterable[Capability]] = None,
        model: PermissionModel = PermissionModel.MODERN,
    ):
        self.model = model
        self._lock = RLock()
        self._granted: Set[Capability] = set(granted or ())

    @classmethod
    def all_granted(
        cls, model: PermissionModel = PermissionModel.MODERN
    ) -> "StaticPermissionGate":
        """Create a gate with every capability granted."""
        return cls(granted=set(Capability), model=model)

    def is_granted(self, capability: Capability) -> bool:
        with self._lock:
            return capability in self._granted

    def grant(self, *capabilities: Capability) -> None:
        """Grant the given capabilities."""
        with self._lock:
            self._granted.update(capabilities)

    def revoke(self, *capabilities: Capability) -> None:
        """Revoke the given capabilities."""
        with self._lock:
            self._granted.difference_update(capabilities)


__all__ = [
    "Capability",
    "PermissionGate",
    "PermissionModel",
    "RadioOperation",
    "StaticPermissionGate",
    "capabilities_for",
    "required_capabilities",
]
