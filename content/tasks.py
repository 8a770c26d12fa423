"""
content/tasks.py -- Completion state rules for tasks.

completed and status are two views of one fact. Whichever the caller changes,
completion_fields() returns the column values that keep them consistent:

  status given    -> completed follows status == "completed" (status wins over completed)
  completed=True  -> status "completed"
  completed=False -> status back to "pending" if it was "completed"

completed_at is stamped on the transition to completed and cleared when a
task is reopened.

Subtasks live inside their task. Checking off the last open subtask completes
the task; reopening a subtask leaves the task as it is.
"""

import uuid
from dataclasses import replace
from typing import Optional

from content.models import Subtask, Task
from core.errors import NotFound


def completion_fields(task: Task, now_iso: str, completed: Optional[bool] = None, status: Optional[str] = None) -> dict:
    if completed is None and status is None:
        return {}
    if status is not None:
        completed = status == "completed"
    elif completed:
        status = "completed"
    else:
        status = "pending" if task.status == "completed" else task.status

    if completed:
        completed_at = task.completed_at if task.completed else now_iso
    else:
        completed_at = None
    return {"completed": completed, "status": status, "completed_at": completed_at}


def progress(task: Task) -> int:
    """Percentage of subtasks done, 0 for a task without subtasks."""
    if not task.subtasks:
        return 0
    done = sum(1 for s in task.subtasks if s.completed)
    return round(done * 100 / len(task.subtasks))


def add_subtask_fields(task: Task, title: str) -> dict:
    return {"subtasks": [*task.subtasks, Subtask(id=uuid.uuid4().hex, title=title)]}


def toggle_subtask_fields(task: Task, subtask_id: str, now_iso: str) -> dict:
    """Flip one subtask. Raises NotFound for an unknown subtask id."""
    subtasks = []
    found = False
    for subtask in task.subtasks:
        if subtask.id == subtask_id:
            found = True
            done = not subtask.completed
            subtask = replace(subtask, completed=done, completed_at=now_iso if done else None)
        subtasks.append(subtask)
    if not found:
        raise NotFound("Subtask not found.")

    fields: dict = {"subtasks": subtasks}
    if all(s.completed for s in subtasks):
        fields.update(completion_fields(task, now_iso, completed=True))
    return fields


def remove_subtask_fields(task: Task, subtask_id: str) -> dict:
    remaining = [s for s in task.subtasks if s.id != subtask_id]
    if len(remaining) == len(task.subtasks):
        raise NotFound("Subtask not found.")
    return {"subtasks": remaining}
