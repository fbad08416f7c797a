"""User interface sinks that receive session output."""

from typing import AbstractSet

from pubsub import pub

from thermolink.interfaces.ble.permissions import Capability

TOPIC_STATUS = "thermolink.status"
TOPIC_READING = "thermolink.reading"
TOPIC_PERMISSION = "thermolink.permission"


class UserInterface:
    """
    Receiver of status strings and readings produced by a session.

    Called on the session's event loop thread. The default implementation
    ignores everything so hosts only override what they display.
    """

    def on_status(self, text: str) -> None:
        """A transition happened or an error was reported."""

    def on_reading(self, text: str) -> None:
        """A temperature notification was decoded."""

    def on_permission_required(self, capabilities: AbstractSet[Capability]) -> None:
        """The host should prompt the user for the listed capabilities."""


class PubSubUserInterface(UserInterface):
    """
    Publish session output on pypubsub topics.

    Subscribers receive `text=` (plus `session=` when one was bound) on
    `thermolink.status` and `thermolink.reading`, and `capabilities=` on
    `thermolink.permission`.
    """

    def __init__(self, session=None):
        self.session = session

    def on_status(self, text: str) -> None:
        pub.sendMessage(TOPIC_STATUS, text=text, session=self.session)

    def on_reading(self, text: str) -> None:
        pub.sendMessage(TOPIC_READING, text=text, session=self.session)

    def on_permission_required(self, capabilities: AbstractSet[Capability]) -> None:
        pub.sendMessage(
            TOPIC_PERMISSION,
            capabilities=frozenset(capabilities),
            session=self.session,
        )
