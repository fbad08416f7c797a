"""Tests for the runtime permission model."""

import pytest

from thermolink.interfaces.ble.permissions import (
    Capability,
    PermissionModel,
    RadioOperation,
    StaticPermissionGate,
    capabilities_for,
    required_capabilities,
)


class TestRequiredCapabilities:
    def test_modern_requires_everything(self):
        assert required_capabilities(PermissionModel.MODERN) == frozenset(Capability)

    def test_legacy_requires_location_only(self):
        assert required_capabilities(PermissionModel.LEGACY) == {Capability.LOCATION}


class TestCapabilitiesFor:
    """Per-operation capability checks."""

    def test_scan_start_needs_scan_and_location(self):
        assert capabilities_for(RadioOperation.START_SCAN, PermissionModel.MODERN) == {
            Capability.SCAN,
            Capability.LOCATION,
        }

    @pytest.mark.parametrize(
        "operation",
        [
            RadioOperation.CONNECT,
            RadioOperation.DISCOVER_SERVICES,
            RadioOperation.SET_NOTIFY,
            RadioOperation.WRITE_DESCRIPTOR,
            RadioOperation.CLOSE,
        ],
    )
    def test_gatt_operations_need_connect(self, operation):
        assert capabilities_for(operation, PermissionModel.MODERN) == {Capability.CONNECT}

    @pytest.mark.parametrize("operation", list(RadioOperation))
    def test_legacy_only_gates_scan_start(self, operation):
        expected = (
            {Capability.LOCATION} if operation is RadioOperation.START_SCAN else set()
        )
        assert capabilities_for(operation, PermissionModel.LEGACY) == expected


class TestStaticPermissionGate:
    def test_default_grants_nothing(self):
        gate = StaticPermissionGate()
        assert gate.model is PermissionModel.MODERN
        assert gate.missing(Capability) == set(Capability)

    def test_all_granted(self):
        gate = StaticPermissionGate.all_granted(PermissionModel.LEGACY)
        assert gate.model is PermissionModel.LEGACY
        assert all(gate.is_granted(c) for c in Capability)
        assert gate.missing(Capability) == set()

    def test_grant_and_revoke(self):
        gate = StaticPermissionGate({Capability.SCAN})
        gate.grant(Capability.CONNECT, Capability.LOCATION)
        assert gate.missing(Capability) == set()

        gate.revoke(Capability.CONNECT)
        assert not gate.is_granted(Capability.CONNECT)
        assert gate.missing([Capability.SCAN, Capability.CONNECT]) == {Capability.CONNECT}
