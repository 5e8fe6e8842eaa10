"""
One free public FrameScan per client (IP or anonymous id).

The gate is in-memory, so it resets on restart.
"""

from __future__ import annotations

from threading import Lock

from cachetools import TTLCache

from framelord.observability.telemetry import counter

_PUBLIC_GATE_TTL_SECONDS = 30 * 86400

_used: TTLCache[str, bool] = TTLCache(maxsize=100000, ttl=_PUBLIC_GATE_TTL_SECONDS)
_lock = Lock()


class PublicScanUsedError(PermissionError):
    def __init__(self) -> None:
        super().__init__("Free public scan already used. Sign up to run more scans.")


def has_used_public_scan(client_id: str) -> bool:
    return _used.get(client_id, False)


def mark_public_scan_used(client_id: str) -> None:
    _used[client_id] = True
    counter("framescan.public.used")


def reset_public_scan(client_id: str | None = None) -> None:
    if client_id is None:
        _used.clear()
    else:
        _used.pop(client_id, None)


def enforce_public_gate(client_id: str) -> None:
    """
    Raises:
        PublicScanUsedError: client_id already ran its public scan
    """
    if has_used_public_scan(client_id):
        counter("framescan.public.denied")
        raise PublicScanUsedError()


def reserve_public_scan(client_id: str) -> None:
    """
    Claim client_id's free scan before running it.

    Call release_public_scan() if the scan fails so the client can retry.

    Raises:
        PublicScanUsedError: client_id already ran (or is running) its public scan
    """
    with _lock:
        enforce_public_gate(client_id)
        _used[client_id] = True


def release_public_scan(client_id: str) -> None:
    with _lock:
        _used.pop(client_id, None)
