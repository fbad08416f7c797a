"""Command line client: stream temperature readings from a BLE sensor.

Usage:
    python -m thermolink [--name ESP32-Thermo] [--scan-timeout 10] [--debug]
    python -m thermolink --list

While connected, type commands on stdin:
    record   store the current reading in the history
    history  print the recorded readings
    start    begin a new connection attempt after a failure or disconnect
    quit     tear the session down and exit
"""

import argparse
import logging
import sys
from typing import Callable, Iterable, List, Optional

from pubsub import pub

from thermolink import __version__
from thermolink.interfaces.ble.bleak_radio import BleakRadio
from thermolink.interfaces.ble.constants import (
    BLEConfig,
    SERVICE_UUID,
    TARGET_DEVICE_NAME,
    TEMPERATURE_CHAR_UUID,
)
from thermolink.interfaces.ble.gatt import ServiceDescriptor
from thermolink.interfaces.ble.permissions import StaticPermissionGate
from thermolink.interfaces.ble.session import BleTemperatureSession
from thermolink.interfaces.ble.ui import (
    TOPIC_PERMISSION,
    TOPIC_READING,
    TOPIC_STATUS,
    PubSubUserInterface,
)

logger = logging.getLogger(__name__)

COMMANDS_HELP = "Commands: record, history, start, quit"


def on_status(text, session=None):  # pylint: disable=W0613
    """Print a status line published by the session."""
    print(f"[status] {text}")


def on_reading(text, session=None):  # pylint: disable=W0613
    """Print a temperature reading published by the session."""
    print(f"Temperature: {text} °C")


def on_permission(capabilities, session=None):  # pylint: disable=W0613
    """Tell the user which Bluetooth capabilities the host must grant."""
    names = ", ".join(sorted(c.value for c in capabilities))
    print(f"Bluetooth permissions required: {names}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thermolink",
        description="Stream temperature readings from a BLE temperature sensor.",
    )
    parser.add_argument(
        "--name",
        default=TARGET_DEVICE_NAME,
        help="Advertised name of the sensor (exact match, default: %(default)s)",
    )
    parser.add_argument(
        "--service-uuid",
        default=SERVICE_UUID,
        help="Temperature service UUID (default: %(default)s)",
    )
    parser.add_argument(
        "--char-uuid",
        default=TEMPERATURE_CHAR_UUID,
        help="Temperature characteristic UUID (default: %(default)s)",
    )
    parser.add_argument(
        "--scan-timeout",
        type=float,
        default=BLEConfig.SCAN_TIMEOUT,
        help="Seconds to scan before giving up (default: %(default)s)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List nearby BLE devices and exit",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Show debug logging"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def run_commands(
    session: BleTemperatureSession,
    lines: Iterable[str],
    out: Callable[[str], None] = print,
) -> None:
    """
    Apply interactive commands to a session until `quit` or end of input.

    Parameters:
        session (BleTemperatureSession): Session the commands act on.
        lines (Iterable[str]): Command lines, typically sys.stdin.
        out (Callable[[str], None]): Sink for command output.
    """
    for line in lines:
        command = line.strip().lower()
        if not command:
            continue
        if command in ("quit", "exit", "q"):
            break
        if command == "record":
            session.record_current_reading()
        elif command == "history":
            out(session.format_history())
        elif command == "start":
            session.start()
        else:
            out(f"Unknown command {command!r}. {COMMANDS_HELP}")


def list_devices(radio: BleakRadio, timeout: float) -> int:
    identities = radio.list_devices(timeout=timeout)
    if not identities:
        print("No BLE devices found")
        return 1
    for identity in sorted(identities, key=lambda i: i.address):
        print(f"{identity.address}  {identity.name or '(unnamed)'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one session against the sensor, and return an exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    radio = BleakRadio()
    try:
        if args.list:
            return list_devices(radio, args.scan_timeout)

        descriptor = ServiceDescriptor(
            service_uuid=args.service_uuid, characteristic_uuid=args.char_uuid
        )
        pub.subscribe(on_status, TOPIC_STATUS)
        pub.subscribe(on_reading, TOPIC_READING)
        pub.subscribe(on_permission, TOPIC_PERMISSION)

        ui = PubSubUserInterface()
        with BleTemperatureSession(
            radio,
            StaticPermissionGate.all_granted(),
            ui,
            target_name=args.name,
            descriptor=descriptor,
            scan_timeout=args.scan_timeout,
        ) as session:
            ui.session = session
            print(COMMANDS_HELP)
            session.start()
            run_commands(session, sys.stdin)
        return 0
    except KeyboardInterrupt:
        logger.info("Exiting...")
        return 130
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    finally:
        radio.shutdown()


if __name__ == "__main__":
    sys.exit(main())
