"""
Idempotency tracking for inbound webhook events.

Stripe retries deliveries, so every event id we finish handling is recorded in
processed_webhooks. Entries older than WEBHOOK_IDEMPOTENCY_TTL_SECONDS are
treated as unseen and purged lazily.

Key: is_processed() checks, mark_processed() records after a successful handle.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from hashlib import sha256

from framelord.config import WEBHOOK_IDEMPOTENCY_TTL_SECONDS
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.observability.telemetry import counter, log_event


def _key_hash(event_id: str) -> str:
    return sha256(event_id.encode()).hexdigest()[:12]


def is_processed(
    event_id: str,
    ttl_seconds: int = WEBHOOK_IDEMPOTENCY_TTL_SECONDS,
    now: float | None = None,
) -> bool:
    """Return True if event_id was handled within the TTL window.

    Side Effects:
        Increments the webhook.duplicate counter on a hit.
    """
    if not event_id:
        raise ValueError("idempotency check requires an event id")

    cutoff = (now if now is not None else time.time()) - ttl_seconds
    with get_db_connection() as conn:
        row = conn.execute(
            "SELECT processed_at FROM processed_webhooks WHERE event_id = ?",
            (event_id,),
        ).fetchone()

    if row is None or row["processed_at"] < cutoff:
        return False

    counter("webhook.duplicate")
    log_event("webhook.duplicate", key_hash=_key_hash(event_id))
    return True


@retry_on_db_lock()
def mark_processed(event_id: str, event_type: str, now: float | None = None) -> None:
    """Record event_id as handled.

    Side Effects:
        Upserts a processed_webhooks row and purges expired rows.
    """
    timestamp = now if now is not None else time.time()
    with db_transaction() as conn:
        conn.execute(
            """
            INSERT INTO processed_webhooks (event_id, event_type, processed_at)
            VALUES (?, ?, ?)
            ON CONFLICT(event_id) DO UPDATE SET processed_at = excluded.processed_at
            """,
            (event_id, event_type, timestamp),
        )
        conn.execute(
            "DELETE FROM processed_webhooks WHERE processed_at < ?",
            (timestamp - WEBHOOK_IDEMPOTENCY_TTL_SECONDS,),
        )


@retry_on_db_lock()
def purge_expired(
    ttl_seconds: int = WEBHOOK_IDEMPOTENCY_TTL_SECONDS,
    now: float | None = None,
) -> int:
    """Delete entries older than the TTL and return how many were removed."""
    cutoff = (now if now is not None else time.time()) - ttl_seconds
    with db_transaction() as conn:
        cursor = conn.execute("DELETE FROM processed_webhooks WHERE processed_at < ?", (cutoff,))
        return cursor.rowcount


def seed_processed(event_ids: Iterable[str], event_type: str = "seed") -> None:
    """Preload event ids as already handled (e.g. after a replay import)."""
    for event_id in event_ids:
        mark_processed(event_id, event_type)


@retry_on_db_lock()
def reset_processed() -> None:
    """Side Effects: deletes every processed_webhooks row."""
    with db_transaction() as conn:
        conn.execute("DELETE FROM processed_webhooks")
