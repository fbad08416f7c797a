"""Utility functions for BLE operations."""

from typing import Optional, Union
from uuid import UUID


def sanitize_address(address: Optional[str]) -> Optional[str]:
    """
    Reduce an address to lowercase hex digits so "AA:BB-cc dd" and "aabbccdd" compare equal.

    Blank or missing addresses yield None.
    """
    if address is None or not address.strip():
        return None
    return (
        address.strip()
        .replace("-", "")
        .replace("_", "")
        .replace(":", "")
        .replace(" ", "")
        .lower()
    )


def normalize_uuid(value: Union[str, UUID]) -> str:
    """
    Return the canonical lowercase 36-character form of a UUID.

    Raises:
        ValueError: If `value` is not a valid UUID string.
    """
    if isinstance(value, UUID):
        return str(value)
    return str(UUID(value.strip()))
