# cronq/core/models/tasks.py
from __future__ import annotations
import datetime
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Annotated
from pydantic import BaseModel, ConfigDict, Field, field_validator

from cronq.core.defaults import DEFAULT_MAX_ATTEMPTS, DEFAULT_PRIORITY
from cronq.core.types.status import TaskStatus
from cronq.core.utils.clock import as_utc


@dataclass
class TaskRecord:
    """Snapshot of one row of the task store."""

    id: str
    task_type: str
    task_name: str
    # Stored document as-is; handlers decide whether its shape is usable
    parameters: Any
    priority: int
    scheduled_for: datetime.datetime
    status: TaskStatus
    attempts: int
    max_attempts: int
    started_at: datetime.datetime | None = None
    completed_at: datetime.datetime | None = None
    result: Any = None
    error_message: str | None = None
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> TaskRecord:
        scheduled_for = as_utc(row['scheduled_for'])
        if scheduled_for is None:
            raise ValueError(f'task {row["id"]} has no scheduled_for')
        return cls(
            id=row['id'],
            task_type=row['task_type'],
            task_name=row['task_name'],
            parameters=row['parameters'],
            priority=row['priority'],
            scheduled_for=scheduled_for,
            status=TaskStatus(row['status']),
            attempts=row['attempts'],
            max_attempts=row['max_attempts'],
            started_at=as_utc(row['started_at']),
            completed_at=as_utc(row['completed_at']),
            result=row['result'],
            error_message=row['error_message'],
            created_at=as_utc(row['created_at']),
            updated_at=as_utc(row['updated_at']),
        )

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def to_dict(self) -> dict[str, Any]:
        def _iso(value: datetime.datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            'id': self.id,
            'task_type': self.task_type,
            'task_name': self.task_name,
            'parameters': self.parameters,
            'priority': self.priority,
            'scheduled_for': _iso(self.scheduled_for),
            'status': self.status.value,
            'attempts': self.attempts,
            'max_attempts': self.max_attempts,
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
            'result': self.result,
            'error_message': self.error_message,
            'created_at': _iso(self.created_at),
        }


class NewTask(BaseModel):
    """Producer-side description of a task to enqueue.

    task_type is not checked against the known types here: a task with an
    unknown type is stored and fails cleanly when dispatched.
    """

    model_config = ConfigDict(extra='forbid')

    task_type: Annotated[str, Field(min_length=1, max_length=64)]
    task_name: Annotated[str, Field(min_length=1, max_length=255)]
    parameters: dict[str, Any] = Field(default_factory=dict)
    priority: int = DEFAULT_PRIORITY
    max_attempts: Annotated[int, Field(ge=1, le=100)] = DEFAULT_MAX_ATTEMPTS
    # None = eligible immediately
    scheduled_for: Optional[datetime.datetime] = None

    @field_validator('scheduled_for')
    @classmethod
    def normalize_scheduled_for(
        cls, value: Optional[datetime.datetime]
    ) -> Optional[datetime.datetime]:
        """Store UTC only; a naive value is taken to be UTC already."""
        return as_utc(value)


@dataclass(frozen=True)
class Outcome:
    """What a handler reports back for one execution."""

    success: bool
    message: str
    data: Any = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> Outcome:
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, data: Any = None) -> Outcome:
        return cls(success=False, message=message, data=data)


@dataclass(frozen=True)
class Resolution:
    """Next persisted state of a task after one attempt.

    scheduled_for is only set when the task goes back to QUEUED.
    """

    status: TaskStatus
    completed_at: datetime.datetime
    result: Any = None
    error_message: str | None = None
    scheduled_for: datetime.datetime | None = None
    retry_delay_s: float | None = None

    @property
    def is_retry(self) -> bool:
        return self.status == TaskStatus.QUEUED


@dataclass(frozen=True)
class TaskRunResult:
    id: str
    task_name: str
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {'id': self.id, 'task_name': self.task_name, 'success': self.success}


@dataclass
class RunSummary:
    """Aggregate report of one run_batch call.

    Requeued tasks count as failed for the run that attempted them.
    `reclaimed` counts stale PROCESSING rows recovered before claiming.
    """

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[TaskRunResult] = field(default_factory=lambda: [])
    reclaimed: int = 0

    def record(self, task: TaskRecord, success: bool) -> None:
        self.processed += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        self.results.append(
            TaskRunResult(id=task.id, task_name=task.task_name, success=success)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'processed': self.processed,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'results': [r.to_dict() for r in self.results],
            'reclaimed': self.reclaimed,
        }
