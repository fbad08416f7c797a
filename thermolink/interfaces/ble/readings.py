"""Latest temperature reading and recorded history."""

from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import List, Optional

from tabulate import tabulate

NO_HISTORY_MESSAGE = "No temperature history yet."


@dataclass(frozen=True)
class Reading:
    """One decoded temperature notification."""

    text: str
    received_at: datetime

    def __str__(self) -> str:
        return self.text


class LatestReadingSlot:
    """
    Single-writer slot holding the most recent Reading.

    The event loop replaces the whole immutable Reading under the lock, so
    readers on other threads always see a complete value.
    """

    def __init__(self):
        self._lock = RLock()
        self._reading: Optional[Reading] = None

    def get(self) -> Optional[Reading]:
        with self._lock:
            return self._reading

    def set(self, reading: Reading) -> None:
        with self._lock:
            self._reading = reading

    def clear(self) -> None:
        with self._lock:
            self._reading = None


class ReadingHistory:
    """Append-only, insertion-ordered list of recorded readings."""

    def __init__(self):
        self._lock = RLock()
        self._readings: List[Reading] = []

    def append(self, reading: Reading) -> None:
        with self._lock:
            self._readings.append(reading)

    def snapshot(self) -> List[Reading]:
        """Return a copy of the recorded readings in insertion order."""
        with self._lock:
            return list(self._readings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)


def format_history(readings: List[Reading], tablefmt: str = "fancy_grid") -> str:
    """
    Render recorded readings as a table with index, time and temperature columns.

    Returns:
        str: The table, or NO_HISTORY_MESSAGE when `readings` is empty.
    """
    if not readings:
        return NO_HISTORY_MESSAGE
    rows = [
        {
            "N": index,
            "Recorded": reading.received_at.strftime("%Y-%m-%d %H:%M:%S"),
            "Temperature": f"{reading.text} °C",
        }
        for index, reading in enumerate(readings, start=1)
    ]
    return tabulate(rows, headers="keys", missingval="N/A", tablefmt=tablefmt)
