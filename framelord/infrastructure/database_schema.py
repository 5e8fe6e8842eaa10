"""
Database schema initialization for FrameLord.

Holds the SQL schema, the Contact Zero seed row and schema validation,
kept apart from database.py so the pool module stays small.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from framelord.observability.logging import get_logger

logger = get_logger(__name__)

CONTACT_ZERO_ID = "contact_zero"

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS tenant_billing (
        tenant_id TEXT PRIMARY KEY,
        stripe_customer_id TEXT,
        stripe_subscription_id TEXT,
        current_plan_tier TEXT NOT NULL DEFAULT 'beta_free',
        billing_status TEXT NOT NULL DEFAULT 'none',
        valid_until TEXT,
        subscribed_at TEXT,
        last_billing_event_at TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_tenant_billing_customer
    ON tenant_billing(stripe_customer_id);

    CREATE INDEX IF NOT EXISTS idx_tenant_billing_subscription
    ON tenant_billing(stripe_subscription_id);

    CREATE TABLE IF NOT EXISTS processed_webhooks (
        event_id TEXT PRIMARY KEY,
        event_type TEXT NOT NULL,
        processed_at REAL NOT NULL
    );

    CREATE TABLE IF NOT EXISTS contacts (
        id TEXT PRIMARY KEY,
        full_name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        relationship_domain TEXT NOT NULL DEFAULT 'business',
        relationship_role TEXT NOT NULL DEFAULT 'contact',
        status TEXT NOT NULL DEFAULT 'active',
        frame_score INTEGER NOT NULL DEFAULT 50,
        frame_trend TEXT NOT NULL DEFAULT 'flat',
        last_scan_at TEXT,
        last_contact_at TEXT,
        next_action_at TEXT,
        tags TEXT NOT NULL DEFAULT '[]',
        company TEXT,
        title TEXT,
        location TEXT,
        linkedin_url TEXT,
        x_handle TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS notes (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        content TEXT NOT NULL DEFAULT '',
        contact_id TEXT,
        author_contact_id TEXT NOT NULL DEFAULT 'contact_zero',
        pinned INTEGER NOT NULL DEFAULT 0,
        archived INTEGER NOT NULL DEFAULT 0,
        deleted_at TEXT,
        mentions TEXT NOT NULL DEFAULT '[]',
        topics TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_notes_contact ON notes(contact_id);

    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        contact_id TEXT NOT NULL REFERENCES contacts(id),
        title TEXT NOT NULL,
        due_at TEXT,
        status TEXT NOT NULL DEFAULT 'open',
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_tasks_contact_status ON tasks(contact_id, status);

    CREATE TABLE IF NOT EXISTS system_log (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        severity TEXT NOT NULL DEFAULT 'info',
        source TEXT NOT NULL DEFAULT 'system',
        is_read INTEGER NOT NULL DEFAULT 0,
        tenant_id TEXT,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS notification_settings (
        settings_key TEXT PRIMARY KEY,
        show_announcements INTEGER NOT NULL DEFAULT 1,
        show_system_events INTEGER NOT NULL DEFAULT 1,
        show_tasks INTEGER NOT NULL DEFAULT 1,
        show_billing_alerts INTEGER NOT NULL DEFAULT 1,
        show_custom INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS framescan_reports (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        subject_type TEXT NOT NULL,
        subject_contact_ids TEXT NOT NULL DEFAULT '[]',
        modality TEXT NOT NULL,
        domain TEXT NOT NULL,
        session_id TEXT,
        context TEXT,
        source_ref TEXT,
        frame_score INTEGER NOT NULL,
        raw_result TEXT NOT NULL,
        score_json TEXT NOT NULL,
        image_annotations TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS psychometric_profiles (
        contact_id TEXT PRIMARY KEY,
        status TEXT NOT NULL DEFAULT 'insufficient_data',
        big_five TEXT,
        mbti TEXT,
        disc TEXT,
        dark_traits TEXT,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS psychometric_evidence (
        id TEXT PRIMARY KEY,
        contact_id TEXT NOT NULL,
        source_type TEXT NOT NULL,
        origin_id TEXT NOT NULL,
        raw_text TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE(contact_id, origin_id)
    );

    CREATE INDEX IF NOT EXISTS idx_evidence_contact
    ON psychometric_evidence(contact_id, created_at);

    CREATE TABLE IF NOT EXISTS credit_balances (
        tenant_id TEXT PRIMARY KEY,
        credits INTEGER NOT NULL DEFAULT 10,
        bonus_credits INTEGER NOT NULL DEFAULT 0,
        total_purchased INTEGER NOT NULL DEFAULT 0,
        total_used INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS credit_transactions (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        type TEXT NOT NULL,
        amount INTEGER NOT NULL,
        description TEXT NOT NULL,
        scan_report_id TEXT,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_credit_transactions_tenant
    ON credit_transactions(tenant_id, created_at);
"""

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "tenant_billing": {"tenant_id", "current_plan_tier", "billing_status", "valid_until"},
    "processed_webhooks": {"event_id", "event_type", "processed_at"},
    "contacts": {"id", "full_name", "status", "frame_score", "frame_trend"},
    "notes": {"id", "title", "content", "deleted_at", "pinned"},
    "tasks": {"id", "contact_id", "title", "due_at", "status"},
    "system_log": {"id", "type", "severity", "is_read"},
    "notification_settings": {"settings_key", "show_announcements"},
    "framescan_reports": {"id", "modality", "domain", "frame_score", "raw_result"},
    "psychometric_profiles": {"contact_id", "status", "big_five"},
    "psychometric_evidence": {"id", "contact_id", "origin_id", "raw_text"},
    "credit_balances": {"tenant_id", "credits", "bonus_credits"},
    "credit_transactions": {"id", "tenant_id", "type", "amount"},
}


def _seed_defaults(conn: sqlite3.Connection) -> None:
    now = datetime.now(UTC).isoformat()
    conn.execute(
        """
        INSERT OR IGNORE INTO contacts (
            id, full_name, relationship_domain, relationship_role, status,
            frame_score, frame_trend, tags, created_at, updated_at
        ) VALUES (?, 'You', 'hybrid', 'self', 'active', 50, 'flat', '[]', ?, ?)
        """,
        (CONTACT_ZERO_ID, now, now),
    )
    conn.execute("INSERT OR IGNORE INTO notification_settings (settings_key) VALUES ('default')")


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Args:
        db_path: Path to the database file

    Side Effects:
    - Creates the parent directory if needed
    - Creates tables and indexes that don't exist
    - Seeds Contact Zero and default notification settings
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        _seed_defaults(conn)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema ready at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Check that every required table and column exists.

    Raises:
        ValueError: Listing missing tables or columns
    """
    problems: list[str] = []

    for table, columns in REQUIRED_COLUMNS.items():
        rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
        if not rows:
            problems.append(f"missing table {table}")
            continue
        present = {row[1] for row in rows}
        missing = columns - present
        if missing:
            problems.append(f"{table} missing columns: {', '.join(sorted(missing))}")

    if problems:
        raise ValueError("Schema validation failed: " + "; ".join(problems))

    return True
