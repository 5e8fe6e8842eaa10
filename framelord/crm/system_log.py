"""
System log (notification stream) repository.

Entries are listed newest first. list_filtered() applies the user's
notification settings, except that billing entries are always shown.
"""

from __future__ import annotations

import uuid

from framelord.crm.models import (
    LogEntryType,
    LogSeverity,
    LogSource,
    NotificationSettings,
    SystemLogEntry,
)
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.observability.logging import get_logger

logger = get_logger(__name__)

_SETTINGS_KEY = "default"

# Entry type -> settings flag that controls it
_TYPE_FLAGS: dict[str, str] = {
    LogEntryType.ANNOUNCEMENT.value: "show_announcements",
    LogEntryType.SYSTEM.value: "show_system_events",
    LogEntryType.TASK.value: "show_tasks",
    LogEntryType.CUSTOM.value: "show_custom",
}


class LogEntryNotFoundError(LookupError):
    pass


class SystemLogRepository:
    """Static-method repository over system_log and notification_settings."""

    @staticmethod
    @retry_on_db_lock()
    def add_entry(
        entry_type: str,
        title: str,
        message: str,
        severity: str = LogSeverity.INFO.value,
        source: str = LogSource.SYSTEM.value,
        tenant_id: str | None = None,
    ) -> SystemLogEntry:
        """
        Append an entry to the log.

        Side Effects:
            - Inserts a system_log row
        """
        entry = SystemLogEntry(
            id=f"log_{uuid.uuid4().hex[:16]}",
            type=entry_type,
            title=title,
            message=message,
            severity=severity,
            source=source,
            tenant_id=tenant_id,
        )
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO system_log (
                    id, type, title, message, severity, source, is_read, tenant_id, created_at
                ) VALUES (
                    :id, :type, :title, :message, :severity, :source, :is_read, :tenant_id,
                    :created_at
                )
                """,
                entry.to_db_dict(),
            )

        logger.debug("System log entry %s (%s): %s", entry.id, entry.type, title)
        return entry

    @staticmethod
    def add_owner_announcement(
        title: str, message: str, severity: str = LogSeverity.INFO.value
    ) -> SystemLogEntry:
        return SystemLogRepository.add_entry(
            LogEntryType.ANNOUNCEMENT.value,
            title,
            message,
            severity=severity,
            source=LogSource.OWNER.value,
        )

    @staticmethod
    def get_entry(entry_id: str) -> SystemLogEntry | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM system_log WHERE id = ?", (entry_id,)).fetchone()
        return SystemLogEntry.from_db_row(dict(row)) if row else None

    @staticmethod
    def list_entries(limit: int | None = None) -> list[SystemLogEntry]:
        query = "SELECT * FROM system_log ORDER BY created_at DESC, rowid DESC"
        params: tuple[int, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [SystemLogEntry.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def list_unread() -> list[SystemLogEntry]:
        return [entry for entry in SystemLogRepository.list_entries() if not entry.is_read]

    @staticmethod
    def list_filtered() -> list[SystemLogEntry]:
        settings = SystemLogRepository.get_settings()
        return [
            entry
            for entry in SystemLogRepository.list_entries()
            if _is_visible(entry, settings)
        ]

    @staticmethod
    @retry_on_db_lock()
    def mark_read(entry_id: str) -> SystemLogEntry:
        with db_transaction() as conn:
            cursor = conn.execute("UPDATE system_log SET is_read = 1 WHERE id = ?", (entry_id,))
            if cursor.rowcount == 0:
                raise LogEntryNotFoundError(f"Log entry {entry_id} not found")
        entry = SystemLogRepository.get_entry(entry_id)
        if entry is None:
            raise LogEntryNotFoundError(f"Log entry {entry_id} not found")
        return entry

    @staticmethod
    @retry_on_db_lock()
    def mark_all_read() -> int:
        with db_transaction() as conn:
            cursor = conn.execute("UPDATE system_log SET is_read = 1 WHERE is_read = 0")
            return cursor.rowcount

    @staticmethod
    def unread_count(entry_type: str | None = None) -> int:
        query = "SELECT COUNT(*) FROM system_log WHERE is_read = 0"
        params: tuple[str, ...] = ()
        if entry_type:
            query += " AND type = ?"
            params = (entry_type,)
        with get_db_connection() as conn:
            return conn.execute(query, params).fetchone()[0]

    @staticmethod
    def get_settings() -> NotificationSettings:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM notification_settings WHERE settings_key = ?",
                (_SETTINGS_KEY,),
            ).fetchone()
        if not row:
            return NotificationSettings()
        data = dict(row)
        return NotificationSettings(
            **{field: bool(data[field]) for field in NotificationSettings.model_fields}
        )

    @staticmethod
    @retry_on_db_lock()
    def update_settings(**changes: bool) -> NotificationSettings:
        """Merge changes into the stored settings; unknown keys raise ValueError."""
        unknown = set(changes) - set(NotificationSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown notification settings: {', '.join(sorted(unknown))}")

        merged = SystemLogRepository.get_settings().model_copy(update=changes)
        values = {field: int(value) for field, value in merged.model_dump().items()}
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO notification_settings (
                    settings_key, show_announcements, show_system_events, show_tasks,
                    show_billing_alerts, show_custom
                ) VALUES (
                    :settings_key, :show_announcements, :show_system_events, :show_tasks,
                    :show_billing_alerts, :show_custom
                )
                ON CONFLICT(settings_key) DO UPDATE SET
                    show_announcements = excluded.show_announcements,
                    show_system_events = excluded.show_system_events,
                    show_tasks = excluded.show_tasks,
                    show_billing_alerts = excluded.show_billing_alerts,
                    show_custom = excluded.show_custom
                """,
                {"settings_key": _SETTINGS_KEY, **values},
            )
        return merged

    @staticmethod
    @retry_on_db_lock()
    def clear() -> None:
        with db_transaction() as conn:
            conn.execute("DELETE FROM system_log")


def _is_visible(entry: SystemLogEntry, settings: NotificationSettings) -> bool:
    if entry.type == LogEntryType.BILLING.value:
        return True
    flag = _TYPE_FLAGS.get(entry.type)
    return getattr(settings, flag) if flag else True


def log_billing_notification(
    title: str,
    message: str,
    severity: str = LogSeverity.INFO.value,
    tenant_id: str | None = None,
) -> SystemLogEntry:
    """User-facing billing notification (always visible)."""
    return SystemLogRepository.add_entry(
        LogEntryType.BILLING.value, title, message, severity=severity, tenant_id=tenant_id
    )

