"""Process-wide BLE connection gating utilities.

A peripheral's connection is owned by exactly one session. Radios claim an
address before opening a connection and release it when the connection is
closed, so a second session in the same process cannot issue commands
against a link it does not own.
"""

from threading import RLock
from typing import Dict, Optional, Set

from thermolink.interfaces.ble.utils import sanitize_address

_REGISTRY_LOCK = RLock()
_ADDR_LOCKS: Dict[str, RLock] = {}
_CLAIMED_ADDRS: Set[str] = set()


def _addr_key(addr: Optional[str]) -> Optional[str]:
    """
    Normalize a BLE address for registry lookups.

    Returns None for empty, None, or whitespace-only addresses so unrelated
    requests never share a registry key.
    """
    sanitized = sanitize_address(addr)
    return sanitized if sanitized else None


def address_lock(addr: Optional[str]) -> RLock:
    """
    Return the process-wide lock serializing connection setup for `addr`.

    Addresses that normalize to nothing share the registry lock.
    """
    key = _addr_key(addr)
    if key is None:
        return _REGISTRY_LOCK
    with _REGISTRY_LOCK:
        lock = _ADDR_LOCKS.get(key)
        if lock is None:
            lock = RLock()
            _ADDR_LOCKS[key] = lock
        return lock


def claim_address(addr: Optional[str]) -> bool:
    """
    Mark `addr` as owned by the caller.

    Returns:
        bool: `True` if the address was free and is now claimed, `False` if it is
        already claimed or cannot be normalized.
    """
    key = _addr_key(addr)
    if key is None:
        return False
    with _REGISTRY_LOCK:
        if key in _CLAIMED_ADDRS:
            return False
        _CLAIMED_ADDRS.add(key)
        return True


def release_address(addr: Optional[str]) -> None:
    """
    Release a claimed address and drop its lock from the registry.

    Releasing an address that is not claimed is a no-op.
    """
    key = _addr_key(addr)
    if key is None:
        return
    with _REGISTRY_LOCK:
        _CLAIMED_ADDRS.discard(key)
        _ADDR_LOCKS.pop(key, None)


def is_address_claimed(addr: Optional[str]) -> bool:
    """Return True when another connection currently owns `addr`."""
    key = _addr_key(addr)
    if key is None:
        return False
    with _REGISTRY_LOCK:
        return key in _CLAIMED_ADDRS
