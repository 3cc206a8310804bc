"""Persistence boundary of the engine."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from cronq.core.models.tasks import NewTask, Resolution, TaskRecord
from cronq.core.types.status import TaskStatus


class TaskStore(Protocol):
    """What the engine needs from durable task storage.

    Implementations raise StoreUnavailableError when the backing database
    cannot be reached. Every mutation affects at most one task row, except
    delete_terminal_before which removes all rows matching its predicate.
    """

    # select-matching-and-claim
    async def claim_batch(self, limit: int, now: datetime) -> list[TaskRecord]: ...

    # update-by-id, guarded by status = PROCESSING; False when the guard missed
    async def resolve(self, task_id: str, resolution: Resolution) -> bool: ...

    async def find_stale_processing(self, cutoff: datetime) -> list[TaskRecord]: ...

    # delete-matching-predicate
    async def delete_terminal_before(
        self, statuses: Iterable[TaskStatus], cutoff: datetime
    ) -> int: ...

    async def enqueue(self, task: NewTask, now: Optional[datetime] = None) -> TaskRecord: ...

    async def get(self, task_id: str) -> Optional[TaskRecord]: ...

    async def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        task_type: Optional[str] = None,
        limit: int = 50,
    ) -> list[TaskRecord]: ...

    async def queue_stats(self) -> dict[str, int]: ...

    async def cancel(self, task_id: str, now: Optional[datetime] = None) -> bool: ...

    async def close(self) -> None: ...
