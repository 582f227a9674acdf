"""
Task Actions

Small task mutations the UI performs often. Each one is a partial
upsert, so only the touched fields change and the task goes back to
pending for the next push.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

from devlife.models.records import (
    Collection,
    Priority,
    RepeatType,
    Task,
    new_record_id,
    parse_timestamp,
    utc_now,
)
from devlife.services.storage.interface import NotFoundError
from devlife.store import LocalStore


class TaskService:
    """Create, complete and snooze tasks."""

    def __init__(
        self,
        store: LocalStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or utc_now

    def save_task(
        self,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        due_date: Optional[date] = None,
        reminder_time: Optional[datetime] = None,
        repeat_type: RepeatType = RepeatType.NONE,
        task_id: Optional[str] = None,
    ) -> Task:
        """
        Create a task, or update the editable fields of an existing one.

        The completed flag of an existing task is left alone.
        """
        if not title.strip():
            raise ValueError("Task title is required")

        fields = {
            "id": task_id or new_record_id(),
            "title": title.strip(),
            "description": description,
            "priority": priority,
            "due_date": due_date or parse_timestamp(self._clock()).date(),
            "reminder_time": reminder_time,
            "repeat_type": repeat_type,
        }
        if task_id is None:
            fields["completed"] = False
        return self._store.upsert(Collection.TASKS, fields)

    def toggle_completed(self, task_id: str) -> Task:
        task = self._get(task_id)
        return self._store.upsert(Collection.TASKS, {
            "id": task_id,
            "completed": not task.completed,
        })

    def snooze(self, task_id: str, minutes: int) -> Task:
        """Move the reminder to `minutes` from now."""
        if minutes <= 0:
            raise ValueError("Snooze duration must be positive")
        self._get(task_id)
        reminder = parse_timestamp(self._clock()) + timedelta(minutes=minutes)
        return self._store.upsert(Collection.TASKS, {
            "id": task_id,
            "reminder_time": reminder,
        })

    def due_reminders(self, now: Optional[datetime] = None) -> list[Task]:
        """Open tasks whose reminder time has passed, earliest first."""
        now = parse_timestamp(now or self._clock())
        due = [
            task
            for task in self._store.tasks.list()
            if not task.completed
            and task.reminder_time is not None
            and task.reminder_time <= now
        ]
        return sorted(due, key=lambda t: t.reminder_time)

    def _get(self, task_id: str) -> Task:
        task = self._store.tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return task
