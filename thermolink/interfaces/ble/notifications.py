"""BLE notification subscription tracking."""

from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Tuple

NotifyCallback = Callable[[Any, bytearray], None]


class NotificationManager:
    """
    Track which characteristics each connection wants notifications for.

    `Radio.set_notify` records the intent here; the CCCD write later turns every
    recorded subscription for that connection into a live bleak `start_notify`.
    """

    def __init__(self):
        """
        Initialize an empty, thread-safe subscription registry.

        _subscriptions maps a connection handle id to {characteristic UUID: callback}.
        """
        self._subscriptions: Dict[int, Dict[str, NotifyCallback]] = {}
        self._lock = RLock()

    def subscribe(
        self, handle_id: int, characteristic: str, callback: NotifyCallback
    ) -> None:
        """
        Register the callback that should receive notifications for a characteristic.

        Parameters:
            handle_id (int): Connection the subscription belongs to.
            characteristic (str): Characteristic UUID.
            callback (NotifyCallback): Function invoked as (sender, data) for each notification.
        """
        with self._lock:
            self._subscriptions.setdefault(handle_id, {})[characteristic] = callback

    def unsubscribe(self, handle_id: int, characteristic: str) -> None:
        """Forget the subscription for one characteristic, if present."""
        with self._lock:
            characteristics = self._subscriptions.get(handle_id)
            if characteristics is not None:
                characteristics.pop(characteristic, None)

    def subscriptions_for(self, handle_id: int) -> List[Tuple[str, NotifyCallback]]:
        """Return a snapshot of (characteristic, callback) pairs for a connection."""
        with self._lock:
            return list(self._subscriptions.get(handle_id, {}).items())

    def get_callback(
        self, handle_id: int, characteristic: str
    ) -> Optional[NotifyCallback]:
        """Return the callback registered for a characteristic, or None."""
        with self._lock:
            return self._subscriptions.get(handle_id, {}).get(characteristic)

    def cleanup(self, handle_id: int) -> None:
        """Forget every subscription belonging to a connection."""
        with self._lock:
            self._subscriptions.pop(handle_id, None)

    def cleanup_all(self) -> None:
        """Forget every tracked subscription."""
        with self._lock:
            self._subscriptions.clear()

    def __len__(self) -> int:
        """Return the number of tracked subscriptions across all connections."""
        with self._lock:
            return sum(len(chars) for chars in self._subscriptions.values())
