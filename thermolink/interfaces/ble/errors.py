"""Error taxonomy and error handling utilities for BLE operations."""

from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bleak.exc import BleakDBusError, BleakError

from thermolink.interfaces.ble.constants import logger

__all__ = ["BLEError", "BLEErrorHandler", "ErrorKind", "SessionFailure"]


class BLEError(Exception):
    """An exception class for BLE errors raised by radio adapters."""


class ErrorKind(Enum):
    """Reasons a temperature session can fail."""

    UNSUPPORTED = "unsupported"
    PERMISSION_DENIED = "permission_denied"
    DEVICE_NOT_FOUND = "device_not_found"
    SCAN_FAILED = "scan_failed"
    CONNECTION_LOST = "connection_lost"
    SERVICE_NOT_FOUND = "service_not_found"
    NOTIFICATION_SETUP_FAILED = "notification_setup_failed"
    DECODE_ERROR = "decode_error"

    @property
    def is_terminal(self) -> bool:
        """Every kind except DECODE_ERROR ends the session attempt."""
        return self is not ErrorKind.DECODE_ERROR


@dataclass(frozen=True)
class SessionFailure:
    """The reason attached to a FAILED session.

    `detail` is the user-facing message; `code` is the radio's scan
    failure code for SCAN_FAILED.
    """

    kind: ErrorKind
    detail: Optional[str] = None
    code: Optional[int] = None

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.kind.value}({self.code})"
        return self.kind.value


class BLEErrorHandler:
    """Run radio commands, UI callbacks and cleanup steps without letting errors escape.

    Used by the session event loop, the radio adapter and BLEClient so that a
    failing callback is logged once and turned into a fallback value.
    """

    @staticmethod
    def safe_execute(
        func,
        default_return=None,
        log_error: bool = True,
        error_msg: str = "Error in operation",
        reraise: bool = False,
    ):
        """
        Call `func` and return its result, or `default_return` if it raised.

        BLE-related exceptions (BLEError, BleakError, BleakDBusError, FutureTimeoutError) are logged at debug
        level; any other exception is logged with its traceback.

        Parameters:
            func (callable): Zero-argument callable, typically a lambda around a radio or UI call.
            default_return: Fallback result; sessions pass a sentinel to detect failure.
            log_error (bool): Whether to log the caught exception.
            error_msg (str): Prefix for the log line.
            reraise (bool): Propagate the exception after logging instead of returning the fallback.
        """
        try:
            return func()
        except (BLEError, BleakError, BleakDBusError, FutureTimeoutError) as e:
            if log_error:
                logger.debug("%s: %s", error_msg, e)
            if reraise:
                raise
            return default_return
        except Exception:
            if log_error:
                logger.exception("%s", error_msg)
            if reraise:
                raise
            return default_return

    @staticmethod
    def safe_cleanup(func, cleanup_name: str = "cleanup operation") -> bool:
        """
        Execute a cleanup callable and suppress any exception it raises.

        Parameters:
            func (Callable[[], Any]): Zero-argument cleanup step such as closing a connection.
            cleanup_name (str): Name of the step for the debug log.

        Returns:
            bool: `True` if the cleanup completed, `False` if it raised.
        """
        try:
            func()
            return True
        except Exception as e:  # noqa: BLE001 - cleanup paths must not raise
            logger.debug("Error during %s: %s", cleanup_name, e)
            return False
