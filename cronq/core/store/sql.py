"""SQL statements for the task store.

Written with SQLAlchemy Core against the task table so the same statements
run on PostgreSQL (psycopg) and SQLite (aiosqlite). Every mutation touches a
single row, guarded by the status it expects to find.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import (
    BindParameter,
    Delete,
    DateTime,
    Select,
    bindparam,
    delete,
    func,
    select,
    update,
)

from cronq.core.models.task_pg import TASKS
from cronq.core.types.status import TaskStatus


def _ts(name: str) -> BindParameter[Any]:
    return bindparam(name, type_=DateTime(timezone=True))


# ---------- Claim (priority + scheduled_for) ----------
# Candidate selection. On PostgreSQL rows locked by an overlapping run are
# skipped; SQLite ignores FOR UPDATE and relies on the guarded update below.

def select_claim_candidates_sql(limit: int) -> Select[Any]:
    return (
        select(TASKS.c.id)
        .where(
            TASKS.c.status == TaskStatus.QUEUED,
            TASKS.c.scheduled_for <= _ts('now'),
        )
        .order_by(
            TASKS.c.priority.asc(), TASKS.c.scheduled_for.asc(), TASKS.c.id.asc()
        )
        .limit(limit)
        .with_for_update(skip_locked=True)
    )

# Matches zero rows when another run claimed the task first.
CLAIM_TASK_SQL = (
    update(TASKS)
    .where(
        TASKS.c.id == bindparam('task_id'),
        TASKS.c.status == TaskStatus.QUEUED,
    )
    .values(
        status=TaskStatus.PROCESSING,
        attempts=TASKS.c.attempts + 1,
        started_at=_ts('now'),
        updated_at=_ts('now'),
    )
)

SELECT_TASKS_BY_IDS_SQL = select(TASKS).where(
    TASKS.c.id.in_(bindparam('ids', expanding=True))
)

SELECT_TASK_SQL = select(TASKS).where(TASKS.c.id == bindparam('task_id'))


# ---------- Resolution (guarded by status = PROCESSING) ----------

COMPLETE_TASK_SQL = (
    update(TASKS)
    .where(
        TASKS.c.id == bindparam('task_id'),
        TASKS.c.status == TaskStatus.PROCESSING,
    )
    .values(
        status=TaskStatus.COMPLETED,
        completed_at=_ts('resolved_at'),
        result=bindparam('result_doc', type_=TASKS.c.result.type),
        error_message=None,
        updated_at=_ts('resolved_at'),
    )
)

FAIL_TASK_SQL = (
    update(TASKS)
    .where(
        TASKS.c.id == bindparam('task_id'),
        TASKS.c.status == TaskStatus.PROCESSING,
    )
    .values(
        status=TaskStatus.FAILED,
        completed_at=_ts('resolved_at'),
        error_message=bindparam('reason'),
        updated_at=_ts('resolved_at'),
    )
)

# Failed attempt with attempts remaining: straight back to QUEUED.
REQUEUE_TASK_SQL = (
    update(TASKS)
    .where(
        TASKS.c.id == bindparam('task_id'),
        TASKS.c.status == TaskStatus.PROCESSING,
    )
    .values(
        status=TaskStatus.QUEUED,
        completed_at=_ts('resolved_at'),
        error_message=bindparam('reason'),
        scheduled_for=_ts('retry_at'),
        updated_at=_ts('resolved_at'),
    )
)


# ---------- Operator / producer ----------

CANCEL_TASK_SQL = (
    update(TASKS)
    .where(
        TASKS.c.id == bindparam('task_id'),
        TASKS.c.status == TaskStatus.QUEUED,
    )
    .values(
        status=TaskStatus.CANCELLED,
        completed_at=_ts('now'),
        updated_at=_ts('now'),
    )
)

COUNT_BY_STATUS_SQL = select(TASKS.c.status, func.count()).group_by(TASKS.c.status)

SELECT_STALE_PROCESSING_SQL = (
    select(TASKS)
    .where(
        TASKS.c.status == TaskStatus.PROCESSING,
        TASKS.c.started_at < _ts('cutoff'),
    )
    .order_by(TASKS.c.started_at.asc())
)

def delete_terminal_before_sql(statuses: Iterable[TaskStatus]) -> Delete:
    return delete(TASKS).where(
        TASKS.c.status.in_(list(statuses)),
        TASKS.c.completed_at < _ts('cutoff'),
    )
