"""Task endpoints. Dates in query strings are UTC days (YYYY-MM-DD)."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from framelord.api.errors import bad_request, not_found
from framelord.crm.contacts import ContactNotFoundError
from framelord.crm.models import Task, TaskStatus
from framelord.crm.tasks import TaskNotFoundError, TaskRepository

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


class TaskCreateRequest(BaseModel):
    contact_id: str
    title: str = Field(..., min_length=1, max_length=500)
    due_at: datetime | None = None


class TaskStatusRequest(BaseModel):
    # Plain str so an invalid status is a 400 from the repository
    status: str


class TaskListResponse(BaseModel):
    tasks: list[Task]
    total: int


def _list(tasks: list[Task]) -> TaskListResponse:
    return TaskListResponse(tasks=tasks, total=len(tasks))


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    contact_id: str | None = Query(None),
    status: TaskStatus | None = Query(None),
    date: str | None = Query(None, description="Due on this UTC day (YYYY-MM-DD)"),
    start: str | None = Query(None, description="Range start (YYYY-MM-DD), inclusive"),
    end: str | None = Query(None, description="Range end (YYYY-MM-DD), inclusive"),
) -> TaskListResponse:
    try:
        if date:
            tasks = TaskRepository.list_by_date(date)
        elif start or end:
            if not (start and end):
                raise ValueError("start and end are both required for a date range")
            tasks = TaskRepository.list_by_date_range(start, end)
        elif contact_id:
            tasks = TaskRepository.list_by_contact(contact_id)
        else:
            tasks = TaskRepository.list_tasks()
    except ValueError as e:
        raise bad_request(e) from None

    if contact_id:
        tasks = [t for t in tasks if t.contact_id == contact_id]
    if status is not None:
        tasks = [t for t in tasks if t.status == status.value]
    return _list(tasks)


@router.get("/open", response_model=TaskListResponse)
async def list_open(contact_id: str | None = Query(None)) -> TaskListResponse:
    return _list(TaskRepository.list_open(contact_id))


@router.get("/open/by-contact", response_model=dict[str, list[Task]])
async def open_by_contact() -> dict[str, list[Task]]:
    """Open tasks grouped by contact (Contact Zero's own tasks excluded)."""
    return TaskRepository.open_grouped_by_contact()


@router.get("/{task_id}", response_model=Task)
async def get_task(task_id: str) -> Task:
    task = TaskRepository.get_task(task_id)
    if task is None:
        raise not_found(TaskNotFoundError(task_id))
    return task


@router.post("", response_model=Task, status_code=201)
async def create_task(request: TaskCreateRequest) -> Task:
    try:
        return TaskRepository.create_task(request.contact_id, request.title, request.due_at)
    except ContactNotFoundError as e:
        raise not_found(e) from None
    except ValueError as e:
        raise bad_request(e) from None


@router.patch("/{task_id}/status", response_model=Task)
async def update_status(task_id: str, request: TaskStatusRequest) -> Task:
    try:
        return TaskRepository.update_status(task_id, request.status)
    except TaskNotFoundError as e:
        raise not_found(e) from None
    except ValueError as e:
        raise bad_request(e) from None
