"""
Example of a long-running temperature monitor built on a single session.

The session never retries on its own. This monitor listens for status
messages on the pubsub topics and, whenever the session ends up DISCONNECTED
or FAILED, waits a little and calls start() again on the same session.
Every reading is recorded into the history, which is printed on exit.
"""
import argparse
import logging
import threading
import time

from pubsub import pub

from thermolink.ble_interface import (
    BleakRadio,
    BleTemperatureSession,
    PubSubUserInterface,
    SessionState,
    StaticPermissionGate,
    TARGET_DEVICE_NAME,
)
from thermolink.interfaces.ble.ui import TOPIC_READING, TOPIC_STATUS

# Retry delay in seconds after the session stops
RETRY_DELAY_SECONDS = 5

logger = logging.getLogger(__name__)

# Set whenever the session reports a status; the main loop checks its state
status_event = threading.Event()


def on_status(text, session=None):
    logger.info("Status: %s", text)
    status_event.set()


def on_reading(text, session=None):
    logger.info("Temperature: %s °C", text)
    if session is not None:
        session.record_current_reading()


def main():
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Monitor a BLE temperature sensor, restarting after disconnects."
    )
    parser.add_argument("--name", default=TARGET_DEVICE_NAME, help="Advertised sensor name")
    args = parser.parse_args()

    pub.subscribe(on_status, TOPIC_STATUS)
    pub.subscribe(on_reading, TOPIC_READING)

    radio = BleakRadio()
    ui = PubSubUserInterface()
    session = BleTemperatureSession(
        radio, StaticPermissionGate.all_granted(), ui, target_name=args.name
    )
    ui.session = session

    try:
        session.start()
        while True:
            status_event.wait()
            status_event.clear()
            if session.state in (SessionState.DISCONNECTED, SessionState.FAILED):
                logger.info(
                    "Session ended (%s). Retrying in %d seconds...",
                    session.failure or session.state.value,
                    RETRY_DELAY_SECONDS,
                )
                time.sleep(RETRY_DELAY_SECONDS)
                session.start()
    except KeyboardInterrupt:
        logger.info("Exiting...")
    finally:
        logger.info("Closing session...")
        session.close()
        radio.shutdown()
        print(session.format_history())


if __name__ == "__main__":
    main()
