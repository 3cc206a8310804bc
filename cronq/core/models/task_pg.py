from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import (
    JSON,
    String,
    Text,
    DateTime,
    Integer,
    Index,
    Enum as SQLAlchemyEnum,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from cronq.core.defaults import DEFAULT_MAX_ATTEMPTS, DEFAULT_PRIORITY
from cronq.core.types.status import TaskStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite stores it as text)
JsonDocument = JSON().with_variant(JSONB(), 'postgresql')


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for cronq tables"""

    pass


class TaskModel(Base):
    """
    SQLAlchemy model for storing tasks in the database.

    - id: str # uuid4
    - task_type: str # handler selector; kept as text so unknown types can be stored and fail cleanly
    - task_name: str # human-readable label for logs and audit
    - parameters: json # handler-owned payload, never inspected by the engine
    - priority: int # lower value = more urgent, ties broken by scheduled_for
    - scheduled_for: datetime # not claimable before this time; pushed forward on retry
    - status: TaskStatus # QUEUED, PROCESSING, COMPLETED, FAILED, CANCELLED
    - attempts: int # number of claims so far, incremented at claim time
    - max_attempts: int # failures become terminal once attempts reaches this
    - started_at: datetime # when the latest claim happened
    - completed_at: datetime # end of the latest attempt (success or failure)
    - result: json # handler success payload
    - error_message: str # failure reason of the latest attempt
    - created_at: datetime # when the task was created
    - updated_at: datetime # when the task was last updated
    """

    __tablename__ = 'cronq_tasks'
    __table_args__ = (
        Index(
            'idx_cronq_tasks_claim_order',
            'status',
            'priority',
            'scheduled_for',
        ),
        Index('idx_cronq_tasks_status_completed', 'status', 'completed_at'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    task_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    task_name: Mapped[str] = mapped_column(String(255), nullable=False)
    parameters: Mapped[dict[str, Any]] = mapped_column(
        JsonDocument, nullable=False, default=dict,
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
        server_default=text(str(DEFAULT_PRIORITY)),
    )
    scheduled_for: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    status: Mapped[TaskStatus] = mapped_column(
        SQLAlchemyEnum(
            TaskStatus,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=TaskStatus.QUEUED,
    )

    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text('0'),
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_ATTEMPTS,
        server_default=text(str(DEFAULT_MAX_ATTEMPTS)),
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    result: Mapped[Optional[Any]] = mapped_column(JsonDocument, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )


TASKS = TaskModel.__table__
