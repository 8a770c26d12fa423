"""
api/routes/v1/tasks.py -- Task manager REST endpoints.

Routes:
  GET    /api/v1/tasks                              -- caller's tasks, filtered and sorted
  GET    /api/v1/tasks/stats                        -- caller's task counts
  GET    /api/v1/tasks/overdue                      -- open tasks due before today
  GET    /api/v1/tasks/due-today                    -- open tasks due today
  POST   /api/v1/tasks/bulk-update                  -- one change to many of the caller's tasks
  DELETE /api/v1/tasks/bulk-delete                  -- delete many of the caller's tasks
  POST   /api/v1/tasks                              -- create a task owned by the caller
  GET    /api/v1/tasks/{id}                         -- one task (ownership checked)
  PUT    /api/v1/tasks/{id}                         -- partial update (ownership checked)
  PUT    /api/v1/tasks/{id}/toggle                  -- flip completed (ownership checked)
  PUT    /api/v1/tasks/{id}/archive                 -- hide from lists and stats
  PUT    /api/v1/tasks/{id}/unarchive               -- bring back
  POST   /api/v1/tasks/{id}/subtasks                -- add a subtask
  PUT    /api/v1/tasks/{id}/subtasks/{sid}/toggle   -- flip a subtask
  DELETE /api/v1/tasks/{id}/subtasks/{sid}          -- remove a subtask
  DELETE /api/v1/tasks/{id}                         -- delete (ownership checked)

Every route needs a caller: a bearer token, an anonymous session id, or both
(require_caller -> missing_session otherwise). Logged-in callers own tasks by
identity; anonymous callers by session id. Lists, stats and bulk operations
are scoped to the caller's own tasks; single-task routes go through
check_access so an admin can reach any task.

Archived tasks are left out of lists, stats, the due-date views and bulk
updates, but can still be read, changed and deleted by id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import (
    BulkDeleteResponse,
    BulkUpdateResponse,
    SubtaskCreate,
    TaskBulkDelete,
    TaskBulkUpdate,
    TaskCategoryEnum,
    TaskCreate,
    TaskListResponse,
    TaskPriorityEnum,
    TaskResponse,
    TaskSortEnum,
    TaskStatsResponse,
    TaskUpdate,
)
from auth.dependencies import require_caller
from auth.ownership import Caller, check_access
from content.models import Task
from content.store import ContentStore
from content.tasks import add_subtask_fields, completion_fields, remove_subtask_fields, toggle_subtask_fields
from core.errors import InvalidRequest

router = APIRouter()

# Columns that may be cleared with an explicit null; every other null in an
# update body means "leave unchanged".
_NULLABLE_UPDATES = {"due_date"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _load_task(request: Request, task_id: int, caller: Caller) -> Task:
    store: ContentStore = request.app.state.content_store
    return check_access(caller, store.get_task(task_id))


def _task_list(tasks: list[Task]) -> TaskListResponse:
    return TaskListResponse(tasks=[TaskResponse.from_task(t) for t in tasks], count=len(tasks))


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    request: Request,
    completed: Optional[bool] = Query(default=None),
    category: Optional[TaskCategoryEnum] = Query(default=None),
    priority: Optional[TaskPriorityEnum] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    sort: TaskSortEnum = Query(default=TaskSortEnum.newest),
    archived: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=1000),
    caller: Caller = Depends(require_caller),
) -> TaskListResponse:
    store: ContentStore = request.app.state.content_store
    owner = caller.owner_fields()
    tasks = store.list_tasks(
        owner_identity_id=owner["owner_identity_id"],
        owner_session_id=owner["owner_session_id"],
        completed=completed,
        category=category.value if category else None,
        priority=priority.value if priority else None,
        search=search,
        sort=sort.value,
        archived=archived,
        limit=limit,
    )
    return _task_list(tasks)


@router.get("/tasks/stats", response_model=TaskStatsResponse)
def task_stats(request: Request, caller: Caller = Depends(require_caller)) -> TaskStatsResponse:
    store: ContentStore = request.app.state.content_store
    owner = caller.owner_fields()
    counts = store.task_stats(
        owner_identity_id=owner["owner_identity_id"],
        owner_session_id=owner["owner_session_id"],
        today=_today(),
    )
    return TaskStatsResponse(**counts)


@router.get("/tasks/overdue", response_model=TaskListResponse)
def overdue_tasks(request: Request, caller: Caller = Depends(require_caller)) -> TaskListResponse:
    store: ContentStore = request.app.state.content_store
    return _task_list(store.overdue_tasks(**caller.owner_fields(), today=_today()))


@router.get("/tasks/due-today", response_model=TaskListResponse)
def tasks_due_today(request: Request, caller: Caller = Depends(require_caller)) -> TaskListResponse:
    store: ContentStore = request.app.state.content_store
    return _task_list(store.tasks_due_today(**caller.owner_fields(), today=_today()))


@router.post("/tasks/bulk-update", response_model=BulkUpdateResponse)
def bulk_update_tasks(
    request: Request,
    body: TaskBulkUpdate,
    caller: Caller = Depends(require_caller),
) -> BulkUpdateResponse:
    """Apply one change to several tasks. Ids the caller does not own are skipped."""
    if not body.task_ids:
        raise InvalidRequest("Task IDs array is required.")
    changes = body.updates.model_dump(mode="json", exclude_unset=True)
    changes = {k: v for k, v in changes.items() if v is not None or k in _NULLABLE_UPDATES}
    if not changes:
        raise InvalidRequest("Updates object is required.")

    store: ContentStore = request.app.state.content_store
    modified = store.bulk_update_tasks(body.task_ids, **caller.owner_fields(), **changes)
    return BulkUpdateResponse(message=f"{modified} tasks updated successfully", modified_count=modified)


@router.delete("/tasks/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_tasks(
    request: Request,
    body: TaskBulkDelete,
    caller: Caller = Depends(require_caller),
) -> BulkDeleteResponse:
    if not body.task_ids:
        raise InvalidRequest("Task IDs array is required.")
    store: ContentStore = request.app.state.content_store
    deleted = store.bulk_delete_tasks(body.task_ids, **caller.owner_fields())
    return BulkDeleteResponse(message=f"{deleted} tasks deleted successfully", deleted_count=deleted)


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(request: Request, body: TaskCreate, caller: Caller = Depends(require_caller)) -> TaskResponse:
    store: ContentStore = request.app.state.content_store
    task = Task(
        title=body.title,
        description=body.description,
        category=body.category.value,
        priority=body.priority.value,
        due_date=body.due_date.isoformat() if body.due_date else None,
        tags=body.tags,
        **caller.owner_fields(),
    )
    return TaskResponse.from_task(store.create_task(task))


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(request: Request, task_id: int, caller: Caller = Depends(require_caller)) -> TaskResponse:
    return TaskResponse.from_task(_load_task(request, task_id, caller))


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    request: Request,
    task_id: int,
    body: TaskUpdate,
    caller: Caller = Depends(require_caller),
) -> TaskResponse:
    store: ContentStore = request.app.state.content_store
    task = _load_task(request, task_id, caller)

    fields = {
        key: value
        for key, value in body.model_dump(mode="json", exclude_unset=True).items()
        if value is not None or key in _NULLABLE_UPDATES
    }
    completed = fields.pop("completed", None)
    status = fields.pop("status", None)
    fields.update(completion_fields(task, _now_iso(), completed=completed, status=status))
    if not fields:
        return TaskResponse.from_task(task)
    return TaskResponse.from_task(store.update_task(task_id, **fields))


@router.put("/tasks/{task_id}/toggle", response_model=TaskResponse)
def toggle_task(request: Request, task_id: int, caller: Caller = Depends(require_caller)) -> TaskResponse:
    """Flip completed. Completing stamps completed_at; reopening clears it."""
    store: ContentStore = request.app.state.content_store
    task = _load_task(request, task_id, caller)
    fields = completion_fields(task, _now_iso(), completed=not task.completed)
    return TaskResponse.from_task(store.update_task(task_id, **fields))


@router.put("/tasks/{task_id}/archive", response_model=TaskResponse)
def archive_task(request: Request, task_id: int, caller: Caller = Depends(require_caller)) -> TaskResponse:
    store: ContentStore = request.app.state.content_store
    _load_task(request, task_id, caller)
    return TaskResponse.from_task(store.set_task_archived(task_id, True))


@router.put("/tasks/{task_id}/unarchive", response_model=TaskResponse)
def unarchive_task(request: Request, task_id: int, caller: Caller = Depends(require_caller)) -> TaskResponse:
    store: ContentStore = request.app.state.content_store
    _load_task(request, task_id, caller)
    return TaskResponse.from_task(store.set_task_archived(task_id, False))


@router.post("/tasks/{task_id}/subtasks", response_model=TaskResponse, status_code=201)
def add_subtask(
    request: Request,
    task_id: int,
    body: SubtaskCreate,
    caller: Caller = Depends(require_caller),
) -> TaskResponse:
    store: ContentStore = request.app.state.content_store
    task = _load_task(request, task_id, caller)
    return TaskResponse.from_task(store.update_task(task_id, **add_subtask_fields(task, body.title)))


@router.put("/tasks/{task_id}/subtasks/{subtask_id}/toggle", response_model=TaskResponse)
def toggle_subtask(
    request: Request,
    task_id: int,
    subtask_id: str,
    caller: Caller = Depends(require_caller),
) -> TaskResponse:
    """Flip one subtask. Completing the last open one completes the task."""
    store: ContentStore = request.app.state.content_store
    task = _load_task(request, task_id, caller)
    fields = toggle_subtask_fields(task, subtask_id, _now_iso())
    return TaskResponse.from_task(store.update_task(task_id, **fields))


@router.delete("/tasks/{task_id}/subtasks/{subtask_id}", response_model=TaskResponse)
def delete_subtask(
    request: Request,
    task_id: int,
    subtask_id: str,
    caller: Caller = Depends(require_caller),
) -> TaskResponse:
    store: ContentStore = request.app.state.content_store
    task = _load_task(request, task_id, caller)
    return TaskResponse.from_task(store.update_task(task_id, **remove_subtask_fields(task, subtask_id)))


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(request: Request, task_id: int, caller: Caller = Depends(require_caller)) -> Response:
    store: ContentStore = request.app.state.content_store
    _load_task(request, task_id, caller)
    store.delete_task(task_id)
    return Response(status_code=204)
