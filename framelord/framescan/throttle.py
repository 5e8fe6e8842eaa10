"""
Per-session FrameScan throttle (in-memory, per process).

Each session may run FRAMESCAN_MAX_SCANS_PER_SESSION scans. Session counters
live in a TTLCache, so a session's count clears FRAMESCAN_SESSION_TTL_SECONDS
after its most recent scan or on restart.
"""

from __future__ import annotations

import time
from threading import Lock
from typing import NamedTuple

from cachetools import TTLCache

from framelord.config import FRAMESCAN_MAX_SCANS_PER_SESSION, FRAMESCAN_SESSION_TTL_SECONDS
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter

logger = get_logger(__name__)


class _SessionState(NamedTuple):
    scan_count: int
    started_at: float


_sessions: TTLCache[str, _SessionState] = TTLCache(
    maxsize=10000, ttl=FRAMESCAN_SESSION_TTL_SECONDS
)
_lock = Lock()


class FrameScanThrottleError(RuntimeError):
    def __init__(self, max_scans: int):
        super().__init__(
            f"Frame scan limit reached for this session ({max_scans} scans). "
            "Please wait or upgrade your plan."
        )
        self.max_scans = max_scans


def increment_scan_count(session_id: str) -> int:
    state = _sessions.get(session_id)
    if state is None:
        _sessions[session_id] = _SessionState(1, time.time())
        return 1
    updated = state._replace(scan_count=state.scan_count + 1)
    _sessions[session_id] = updated
    return updated.scan_count


def get_scan_count(session_id: str) -> int:
    state = _sessions.get(session_id)
    return state.scan_count if state else 0


def get_remaining_scans(
    session_id: str, max_scans: int = FRAMESCAN_MAX_SCANS_PER_SESSION
) -> int:
    return max(0, max_scans - get_scan_count(session_id))


def can_run_scan(session_id: str, max_scans: int = FRAMESCAN_MAX_SCANS_PER_SESSION) -> bool:
    return get_scan_count(session_id) < max_scans


def get_session_stats(
    session_id: str, max_scans: int = FRAMESCAN_MAX_SCANS_PER_SESSION
) -> dict[str, object]:
    state = _sessions.get(session_id)
    return {
        "scan_count": state.scan_count if state else 0,
        "max_scans": max_scans,
        "remaining": get_remaining_scans(session_id, max_scans),
        "session_started_at": state.started_at if state else None,
    }


def reset_scan_count(session_id: str | None = None) -> None:
    """Clear one session, or every session when session_id is None."""
    if session_id is None:
        _sessions.clear()
    else:
        _sessions.pop(session_id, None)


def enforce_throttle(
    session_id: str, max_scans: int = FRAMESCAN_MAX_SCANS_PER_SESSION
) -> None:
    """
    Raises:
        FrameScanThrottleError: The session has used its scans
    """
    if not can_run_scan(session_id, max_scans):
        counter("framescan.throttled")
        logger.info("FrameScan throttle hit for session %s", session_id)
        raise FrameScanThrottleError(max_scans)


def reserve_scan(session_id: str, max_scans: int = FRAMESCAN_MAX_SCANS_PER_SESSION) -> int:
    """
    Check the limit and take one scan slot in a single step.

    Callers must release_scan() if the scan does not complete.

    Raises:
        FrameScanThrottleError: The session has used its scans
    """
    with _lock:
        enforce_throttle(session_id, max_scans)
        return increment_scan_count(session_id)


def release_scan(session_id: str) -> None:
    """Give back a slot taken by reserve_scan()."""
    with _lock:
        state = _sessions.get(session_id)
        if state is None:
            return
        _sessions[session_id] = state._replace(scan_count=max(0, state.scan_count - 1))
