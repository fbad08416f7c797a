"""Temperature session state management."""

from enum import Enum
from threading import RLock
from typing import Optional

from thermolink.interfaces.ble.constants import logger
from thermolink.interfaces.ble.errors import SessionFailure


class SessionState(Enum):
    """Enum for the lifecycle states of a temperature session."""

    IDLE = "idle"
    PERMISSION_PENDING = "permission_pending"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    DISCOVERING_SERVICES = "discovering_services"
    ENABLING_NOTIFICATIONS = "enabling_notifications"
    STREAMING = "streaming"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


# States in which a connection attempt is underway
ACTIVE_STATES = frozenset(
    {
        SessionState.PERMISSION_PENDING,
        SessionState.SCANNING,
        SessionState.CONNECTING,
        SessionState.DISCOVERING_SERVICES,
        SessionState.ENABLING_NOTIFICATIONS,
        SessionState.STREAMING,
    }
)

# States that end an attempt; only start() leaves them
TERMINAL_STATES = frozenset({SessionState.DISCONNECTED, SessionState.FAILED})

_VALID_TRANSITIONS = {
    SessionState.IDLE: {
        SessionState.PERMISSION_PENDING,
        SessionState.FAILED,
        SessionState.DISCONNECTED,
    },
    SessionState.PERMISSION_PENDING: {
        SessionState.SCANNING,
        SessionState.FAILED,
        SessionState.DISCONNECTED,
    },
    SessionState.SCANNING: {
        SessionState.CONNECTING,
        SessionState.FAILED,
        SessionState.DISCONNECTED,
    },
    SessionState.CONNECTING: {
        SessionState.DISCOVERING_SERVICES,
        SessionState.FAILED,
        SessionState.DISCONNECTED,
    },
    SessionState.DISCOVERING_SERVICES: {
        SessionState.ENABLING_NOTIFICATIONS,
        SessionState.FAILED,
        SessionState.DISCONNECTED,
    },
    SessionState.ENABLING_NOTIFICATIONS: {
        SessionState.STREAMING,
        SessionState.FAILED,
        SessionState.DISCONNECTED,
    },
    SessionState.STREAMING: {
        SessionState.FAILED,
        SessionState.DISCONNECTED,
    },
    # A fresh start() resets through IDLE
    SessionState.DISCONNECTED: {SessionState.IDLE},
    SessionState.FAILED: {SessionState.IDLE},
}


class SessionStateManager:
    """Thread-safe state holder for a temperature session.

    Writes happen only on the session's event loop; the lock exists so that
    UI threads polling `state` or `failure` observe a consistent pair.
    """

    def __init__(self):
        """Initialize state manager in the IDLE state."""
        self._state_lock = RLock()
        self._state = SessionState.IDLE
        self._failure: Optional[SessionFailure] = None

    @property
    def state(self) -> SessionState:
        """Get current session state."""
        with self._state_lock:
            return self._state

    @property
    def failure(self) -> Optional[SessionFailure]:
        """Reason for the FAILED state, or None."""
        with self._state_lock:
            return self._failure

    @property
    def is_active(self) -> bool:
        """Check if a connection attempt is underway."""
        return self.state in ACTIVE_STATES

    @property
    def is_terminal(self) -> bool:
        """Check if the session reached DISCONNECTED or FAILED."""
        return self.state in TERMINAL_STATES

    def transition_to(
        self, new_state: SessionState, failure: Optional[SessionFailure] = None
    ) -> bool:
        """Thread-safe state transition with validation.

        Args:
        ----
            new_state: Target state to transition to
            failure: Reason recorded when entering FAILED

        Returns:
        -------
            True if transition was valid and applied, False otherwise

        """
        with self._state_lock:
            if new_state not in _VALID_TRANSITIONS.get(self._state, set()):
                logger.warning(
                    "Invalid state transition: %s → %s",
                    self._state.value,
                    new_state.value,
                )
                return False
            old_state = self._state
            self._state = new_state
            if new_state == SessionState.FAILED:
                self._failure = failure
            elif new_state == SessionState.IDLE:
                self._failure = None
            logger.debug("State transition: %s → %s", old_state.value, new_state.value)
            return True
