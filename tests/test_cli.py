"""Tests for the thermolink command line."""

from unittest.mock import MagicMock

import pytest

from thermolink import __main__ as cli
from thermolink.interfaces.ble.constants import TARGET_DEVICE_NAME
from thermolink.interfaces.ble.discovery import DeviceIdentity
from thermolink.interfaces.ble.permissions import Capability


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.name == TARGET_DEVICE_NAME
    assert args.scan_timeout == 10.0
    assert not args.list
    assert not args.debug


def test_parser_overrides():
    args = cli.build_parser().parse_args(
        ["--name", "Lab-Sensor", "--scan-timeout", "3.5", "--debug"]
    )
    assert args.name == "Lab-Sensor"
    assert args.scan_timeout == 3.5
    assert args.debug


def test_run_commands_dispatch():
    session = MagicMock()
    session.format_history.return_value = "TABLE"
    output = []

    cli.run_commands(
        session,
        ["record\n", "\n", "HISTORY\n", "start\n", "bogus\n", "quit\n", "record\n"],
        out=output.append,
    )

    session.record_current_reading.assert_called_once()
    session.start.assert_called_once()
    assert output[0] == "TABLE"
    assert output[1].startswith("Unknown command 'bogus'")
    assert len(output) == 2


def test_printers(capsys):
    cli.on_status("Scanning for ESP32-Thermo...")
    cli.on_reading("21.5")
    cli.on_permission(frozenset({Capability.SCAN, Capability.CONNECT}))

    out = capsys.readouterr().out.splitlines()
    assert out == [
        "[status] Scanning for ESP32-Thermo...",
        "Temperature: 21.5 °C",
        "Bluetooth permissions required: connect, scan",
    ]


def test_list_devices(monkeypatch, capsys):
    radio = MagicMock()
    radio.list_devices.return_value = [
        DeviceIdentity("ESP32-Thermo", "BB:00"),
        DeviceIdentity(None, "AA:00"),
    ]
    monkeypatch.setattr(cli, "BleakRadio", lambda: radio)

    assert cli.main(["--list", "--scan-timeout", "2"]) == 0

    radio.list_devices.assert_called_once_with(timeout=2.0)
    radio.shutdown.assert_called_once()
    assert capsys.readouterr().out.splitlines() == [
        "AA:00  (unnamed)",
        "BB:00  ESP32-Thermo",
    ]


def test_list_devices_none_found(monkeypatch):
    radio = MagicMock()
    radio.list_devices.return_value = []
    monkeypatch.setattr(cli, "BleakRadio", lambda: radio)

    assert cli.main(["--list"]) == 1


def test_invalid_uuid_is_reported(monkeypatch):
    radio = MagicMock()
    monkeypatch.setattr(cli, "BleakRadio", lambda: radio)

    assert cli.main(["--service-uuid", "not-a-uuid"]) == 2
    radio.shutdown.assert_called_once()


def test_main_runs_session_until_quit(monkeypatch):
    radio = MagicMock()
    session = MagicMock()
    session.__enter__.return_value = session
    session_factory = MagicMock(return_value=session)
    monkeypatch.setattr(cli, "BleakRadio", lambda: radio)
    monkeypatch.setattr(cli, "BleTemperatureSession", session_factory)
    monkeypatch.setattr(cli.sys, "stdin", ["record\n", "quit\n"])
    monkeypatch.setattr(cli.pub, "subscribe", MagicMock())

    assert cli.main(["--name", "Lab-Sensor"]) == 0

    kwargs = session_factory.call_args.kwargs
    assert kwargs["target_name"] == "Lab-Sensor"
    session.start.assert_called_once()
    session.record_current_reading.assert_called_once()
    session.__exit__.assert_called_once()
    radio.shutdown.assert_called_once()


@pytest.mark.parametrize("flag", ["--version"])
def test_version_flag(flag, capsys):
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([flag])
    assert "thermolink" in capsys.readouterr().out
