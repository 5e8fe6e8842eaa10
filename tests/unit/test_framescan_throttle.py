"""Unit tests for the per-session FrameScan throttle and the public scan gate

Tests cover:
- Counting and remaining scans
- Enforcement at the session limit
- Per-session isolation and reset
- One free public scan per client
- Reserving slots and the public scan before the scan runs
"""

from __future__ import annotations

import pytest

from framelord.framescan.public_gate import (
    PublicScanUsedError,
    enforce_public_gate,
    has_used_public_scan,
    mark_public_scan_used,
    release_public_scan,
    reset_public_scan,
    reserve_public_scan,
)
from framelord.framescan.throttle import (
    FrameScanThrottleError,
    can_run_scan,
    enforce_throttle,
    get_remaining_scans,
    get_scan_count,
    get_session_stats,
    increment_scan_count,
    release_scan,
    reset_scan_count,
    reserve_scan,
)
from framelord.observability.telemetry import get_counter


def test_new_session_has_full_allowance():
    stats = get_session_stats("fresh", max_scans=3)
    assert stats == {
        "scan_count": 0,
        "max_scans": 3,
        "remaining": 3,
        "session_started_at": None,
    }


def test_increment_counts_up():
    assert increment_scan_count("s1") == 1
    assert increment_scan_count("s1") == 2
    assert get_scan_count("s1") == 2
    assert get_remaining_scans("s1", max_scans=5) == 3
    assert get_session_stats("s1")["session_started_at"] is not None


def test_throttle_blocks_at_limit():
    for _ in range(2):
        enforce_throttle("s2", max_scans=2)
        increment_scan_count("s2")

    assert not can_run_scan("s2", max_scans=2)
    with pytest.raises(FrameScanThrottleError, match="2 scans"):
        enforce_throttle("s2", max_scans=2)
    assert get_counter("framescan.throttled") == 1
    assert get_remaining_scans("s2", max_scans=2) == 0


def test_sessions_are_isolated_and_resettable():
    increment_scan_count("a")
    increment_scan_count("b")

    reset_scan_count("a")
    assert get_scan_count("a") == 0
    assert get_scan_count("b") == 1

    reset_scan_count()
    assert get_scan_count("b") == 0


def test_public_gate_allows_one_scan_per_client():
    enforce_public_gate("1.2.3.4")
    mark_public_scan_used("1.2.3.4")

    assert has_used_public_scan("1.2.3.4")
    with pytest.raises(PublicScanUsedError):
        enforce_public_gate("1.2.3.4")

    # Other clients are unaffected
    enforce_public_gate("5.6.7.8")


def test_public_gate_reset():
    mark_public_scan_used("client")
    reset_public_scan("client")
    assert not has_used_public_scan("client")


def test_reserve_scan_takes_a_slot_up_front():
    assert reserve_scan("r1", max_scans=2) == 1
    assert reserve_scan("r1", max_scans=2) == 2

    with pytest.raises(FrameScanThrottleError):
        reserve_scan("r1", max_scans=2)
    assert get_scan_count("r1") == 2


def test_release_scan_returns_the_slot():
    reserve_scan("r2", max_scans=1)
    release_scan("r2")

    assert get_scan_count("r2") == 0
    assert reserve_scan("r2", max_scans=1) == 1
    release_scan("unknown")


def test_public_reservation_blocks_until_released():
    reserve_public_scan("9.9.9.9")

    with pytest.raises(PublicScanUsedError):
        reserve_public_scan("9.9.9.9")

    release_public_scan("9.9.9.9")
    reserve_public_scan("9.9.9.9")
    assert has_used_public_scan("9.9.9.9")
