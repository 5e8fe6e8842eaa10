"""
Task repository. Every task belongs to an existing contact.

Listings sort by due date ascending with undated tasks last; undated tasks
(and same-due-date ties) sort newest first.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, time

from framelord.crm.contacts import ContactRepository
from framelord.crm.models import Task, TaskStatus
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.infrastructure.database_schema import CONTACT_ZERO_ID
from framelord.observability.logging import get_logger

logger = get_logger(__name__)


class TaskNotFoundError(LookupError):
    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


def _sort_key(task: Task) -> tuple[int, float, float]:
    if task.due_at is None:
        return (1, 0.0, -task.created_at.timestamp())
    return (0, task.due_at.timestamp(), -task.created_at.timestamp())


def sort_tasks(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=_sort_key)


def _parse_date_key(date_key: str) -> date:
    """
    Raises:
        ValueError: date_key is not YYYY-MM-DD
    """
    try:
        return date.fromisoformat(date_key)
    except ValueError:
        raise ValueError(f"Invalid date, expected YYYY-MM-DD: {date_key}") from None


class TaskRepository:
    """Static-method repository over the tasks table."""

    @staticmethod
    def _all() -> list[Task]:
        with get_db_connection() as conn:
            rows = conn.execute("SELECT * FROM tasks").fetchall()
        return [Task.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def list_tasks() -> list[Task]:
        return sort_tasks(TaskRepository._all())

    @staticmethod
    def list_by_contact(contact_id: str) -> list[Task]:
        return [t for t in TaskRepository.list_tasks() if t.contact_id == contact_id]

    @staticmethod
    def list_open(contact_id: str | None = None) -> list[Task]:
        tasks = (
            TaskRepository.list_by_contact(contact_id)
            if contact_id is not None
            else TaskRepository.list_tasks()
        )
        return [t for t in tasks if t.status == TaskStatus.OPEN.value]

    @staticmethod
    def open_count_by_contact(contact_id: str) -> int:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM tasks WHERE contact_id = ? AND status = 'open'",
                (contact_id,),
            ).fetchone()
        return row["n"]

    @staticmethod
    def get_task(task_id: str) -> Task | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return Task.from_db_row(dict(row)) if row else None

    @staticmethod
    @retry_on_db_lock()
    def create_task(contact_id: str, title: str, due_at: datetime | None = None) -> Task:
        """
        Create an open task for an existing contact.

        Raises:
            ContactNotFoundError: Unknown contact_id
            ValueError: Blank title
        """
        ContactRepository.require_contact(contact_id)
        if due_at is not None and due_at.tzinfo is None:
            due_at = due_at.replace(tzinfo=UTC)

        task = Task(
            id=f"task_{uuid.uuid4().hex[:12]}",
            contact_id=contact_id,
            title=title,
            due_at=due_at,
        )
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO tasks (id, contact_id, title, due_at, status, created_at)
                VALUES (:id, :contact_id, :title, :due_at, :status, :created_at)
                """,
                task.to_db_dict(),
            )
        logger.info("Created task %s for contact %s", task.id, contact_id)
        return task

    @staticmethod
    @retry_on_db_lock()
    def update_status(task_id: str, status: str) -> Task:
        """
        Raises:
            TaskNotFoundError: Unknown task_id
            ValueError: status is not open, done or blocked
        """
        status = TaskStatus(status).value
        task = TaskRepository.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        with db_transaction() as conn:
            conn.execute("UPDATE tasks SET status = ? WHERE id = ?", (status, task_id))
        return task.model_copy(update={"status": status})

    @staticmethod
    def list_by_date(date_key: str) -> list[Task]:
        """Tasks due on a UTC calendar day (YYYY-MM-DD)."""
        day = _parse_date_key(date_key)
        return [
            t
            for t in TaskRepository.list_tasks()
            if t.due_at is not None and t.due_at.astimezone(UTC).date() == day
        ]

    @staticmethod
    def list_by_date_range(start_key: str, end_key: str) -> list[Task]:
        """Tasks due between two UTC days, both inclusive."""
        start = datetime.combine(_parse_date_key(start_key), time.min, tzinfo=UTC)
        end = datetime.combine(_parse_date_key(end_key), time.max, tzinfo=UTC)
        return [
            t
            for t in TaskRepository.list_tasks()
            if t.due_at is not None and start <= t.due_at <= end
        ]

    @staticmethod
    def open_grouped_by_contact() -> dict[str, list[Task]]:
        """Open tasks keyed by contact, excluding Contact Zero's own to-dos."""
        grouped: dict[str, list[Task]] = {}
        for task in TaskRepository.list_open():
            if task.contact_id == CONTACT_ZERO_ID:
                continue
            grouped.setdefault(task.contact_id, []).append(task)
        return grouped

    @staticmethod
    def clear() -> None:
        with db_transaction() as conn:
            conn.execute("DELETE FROM tasks")
