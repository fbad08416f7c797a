"""Tests for SessionStateManager state machine functionality."""

import threading
import time

import pytest

from thermolink.interfaces.ble.errors import ErrorKind, SessionFailure
from thermolink.interfaces.ble.state import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    SessionState,
    SessionStateManager,
)

HAPPY_PATH = [
    SessionState.PERMISSION_PENDING,
    SessionState.SCANNING,
    SessionState.CONNECTING,
    SessionState.DISCOVERING_SERVICES,
    SessionState.ENABLING_NOTIFICATIONS,
    SessionState.STREAMING,
]


class TestSessionStateManager:
    """Test cases for SessionStateManager class."""

    def test_initial_state(self):
        """Test that state manager starts in IDLE with no failure."""
        manager = SessionStateManager()
        assert manager.state == SessionState.IDLE
        assert manager.failure is None
        assert not manager.is_active
        assert not manager.is_terminal

    def test_happy_path_transitions(self):
        """Test the forward path from IDLE to STREAMING."""
        manager = SessionStateManager()
        for state in HAPPY_PATH:
            assert manager.transition_to(state)
            assert manager.state == state
            assert manager.is_active

    @pytest.mark.parametrize("stop_after", range(len(HAPPY_PATH)))
    def test_every_active_state_can_fail_or_disconnect(self, stop_after):
        """Test that FAILED and DISCONNECTED are reachable from every active state."""
        for terminal in (SessionState.FAILED, SessionState.DISCONNECTED):
            manager = SessionStateManager()
            for state in HAPPY_PATH[: stop_after + 1]:
                assert manager.transition_to(state)
            assert manager.transition_to(terminal)
            assert manager.is_terminal

    def test_failure_recorded_and_cleared_on_reset(self):
        """Test that the failure reason is kept until the session returns to IDLE."""
        manager = SessionStateManager()
        failure = SessionFailure(ErrorKind.DEVICE_NOT_FOUND, "ESP32-Thermo not found")
        manager.transition_to(SessionState.PERMISSION_PENDING)
        manager.transition_to(SessionState.SCANNING)
        assert manager.transition_to(SessionState.FAILED, failure)
        assert manager.failure == failure

        assert manager.transition_to(SessionState.IDLE)
        assert manager.failure is None

    def test_invalid_transitions(self):
        """Test that invalid transitions are rejected and leave the state unchanged."""
        manager = SessionStateManager()

        assert not manager.transition_to(SessionState.IDLE)
        assert not manager.transition_to(SessionState.STREAMING)
        assert manager.state == SessionState.IDLE

        manager.transition_to(SessionState.PERMISSION_PENDING)
        manager.transition_to(SessionState.SCANNING)
        # Can't skip connection setup or go backwards
        assert not manager.transition_to(SessionState.STREAMING)
        assert not manager.transition_to(SessionState.PERMISSION_PENDING)
        assert manager.state == SessionState.SCANNING

    def test_terminal_states_only_lead_back_to_idle(self):
        """Test that DISCONNECTED and FAILED only allow a reset."""
        manager = SessionStateManager()
        manager.transition_to(SessionState.DISCONNECTED)
        assert not manager.transition_to(SessionState.FAILED)
        assert not manager.transition_to(SessionState.SCANNING)
        assert manager.transition_to(SessionState.IDLE)

    def test_state_sets_are_disjoint(self):
        """Test that no state is both active and terminal."""
        assert not ACTIVE_STATES & TERMINAL_STATES
        assert SessionState.IDLE not in ACTIVE_STATES | TERMINAL_STATES

    def test_thread_safety(self):
        """Test concurrent state access is thread-safe."""
        manager = SessionStateManager()
        results = []
        errors = []

        def worker(worker_id):
            try:
                for i in range(100):
                    if i % 2 == 0:
                        success = manager.transition_to(SessionState.PERMISSION_PENDING)
                    else:
                        success = manager.transition_to(SessionState.DISCONNECTED)
                        if success:
                            manager.transition_to(SessionState.IDLE)
                    results.append((worker_id, i, success, manager.state.value))
                    time.sleep(0.001)  # Small delay to increase contention
            except Exception as e:  # noqa: BLE001 - errors collected for assertion
                errors.append((worker_id, str(e)))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(errors) == 0, f"Errors occurred: {errors}"
        assert manager.state in SessionState
        assert len(results) == 500  # 5 workers * 100 iterations each

    def test_state_transition_logging(self, caplog):
        """Test that state transitions are properly logged."""
        manager = SessionStateManager()

        with caplog.at_level("DEBUG"):
            manager.transition_to(SessionState.PERMISSION_PENDING)
            manager.transition_to(SessionState.SCANNING)

        assert "State transition: idle → permission_pending" in caplog.text
        assert "State transition: permission_pending → scanning" in caplog.text

    def test_invalid_transition_logging(self, caplog):
        """Test that an invalid transition emits a warning."""
        manager = SessionStateManager()

        with caplog.at_level("WARNING"):
            manager.transition_to(SessionState.STREAMING)

        assert "Invalid state transition: idle → streaming" in caplog.text
