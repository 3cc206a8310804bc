"""Shortcuts for seeding and reading a real task store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from cronq.core.models.tasks import NewTask, TaskRecord
from cronq.core.store.sqlalchemy_store import SqlTaskStore
from tests.helpers.fakes import T0


async def enqueue(
    store: SqlTaskStore,
    task_type: str,
    task_name: str = 'task',
    *,
    parameters: Optional[dict[str, Any]] = None,
    priority: int = 5,
    max_attempts: int = 3,
    scheduled_for: Optional[datetime] = None,
) -> TaskRecord:
    """Enqueue a task created at T0 (eligible at T0 unless scheduled_for is given)."""
    return await store.enqueue(
        NewTask(
            task_type=task_type,
            task_name=task_name,
            parameters=parameters or {},
            priority=priority,
            max_attempts=max_attempts,
            scheduled_for=scheduled_for,
        ),
        now=T0,
    )


async def fetch(store: SqlTaskStore, task_id: str) -> TaskRecord:
    record = await store.get(task_id)
    assert record is not None
    return record
