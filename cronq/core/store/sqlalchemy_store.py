# cronq/core/store/sqlalchemy_store.py
from __future__ import annotations
import uuid, hashlib
from typing import Any, Iterable, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, text
from cronq.core.defaults import DEFAULT_LIST_LIMIT
from cronq.core.errors import StoreUnavailableError, store_unavailable
from cronq.core.models.store import StoreConfig
from cronq.core.models.task_pg import TASKS, TaskModel, Base
from cronq.core.models import records_pg  # noqa: F401
from cronq.core.models.tasks import NewTask, Resolution, TaskRecord
from cronq.core.store.sql import (
    CANCEL_TASK_SQL,
    CLAIM_TASK_SQL,
    COMPLETE_TASK_SQL,
    COUNT_BY_STATUS_SQL,
    FAIL_TASK_SQL,
    REQUEUE_TASK_SQL,
    SELECT_STALE_PROCESSING_SQL,
    SELECT_TASK_SQL,
    SELECT_TASKS_BY_IDS_SQL,
    delete_terminal_before_sql,
    select_claim_candidates_sql,
)
from cronq.core.types.status import TaskStatus
from cronq.core.utils.clock import as_utc, to_utc, utc_now
from cronq.core.utils.url import mask_database_url
from cronq.core.logging import get_logger


class SqlTaskStore:
    """
    Task store backed by SQLAlchemy's async engine.

    Works against PostgreSQL (psycopg) and SQLite (aiosqlite):
      - Claims use FOR UPDATE SKIP LOCKED where supported, plus a
        status-guarded single-row update so overlapping runs never
        claim the same task
      - Resolutions are guarded by status = PROCESSING
      - Driver errors surface as StoreUnavailableError

    The store owns its engine; callers close it with close() or use it as an
    async context manager.
    """

    def __init__(self, config: StoreConfig):
        self.config = config
        self.logger = get_logger('store')

        self.async_engine = create_async_engine(
            self.config.database_url, **self.config.engine_kwargs()
        )
        self.session_factory = async_sessionmaker(
            self.async_engine, expire_on_commit=False
        )

        self.logger.info(
            f'SqlTaskStore initialized ({mask_database_url(self.config.database_url)})'
        )

    async def __aenter__(self) -> SqlTaskStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _schema_advisory_key(self) -> int:
        """
        Compute a stable 64-bit advisory lock key for schema initialization.

        Uses the database URL as a basis so that different clusters do not
        contend on the same advisory lock key.
        """
        basis = self.config.database_url.encode('utf-8', errors='ignore')
        h = hashlib.sha256(b'cronq-schema:' + basis).digest()
        return int.from_bytes(h[:8], byteorder='big', signed=True)

    def _unavailable(self, operation: str, exc: BaseException) -> StoreUnavailableError:
        self.logger.error(f'Store error during {operation}: {type(exc).__name__}: {exc}')
        return store_unavailable(operation, exc)

    async def ensure_schema(self) -> None:
        """
        Create the task table and the auxiliary tables if missing.

        Safe to call multiple times. On PostgreSQL concurrent callers are
        serialized by an advisory lock to avoid DDL races.
        """
        try:
            async with self.async_engine.begin() as conn:
                if self.config.is_postgres:
                    await conn.execute(
                        text('SELECT pg_advisory_xact_lock(CAST(:key AS BIGINT))'),
                        {'key': self._schema_advisory_key()},
                    )
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('schema initialization', exc) from exc

    async def ping(self) -> None:
        """Round-trip a trivial query; raises StoreUnavailableError on failure."""
        try:
            async with self.session_factory() as session:
                await session.execute(text('SELECT 1'))
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('ping', exc) from exc

    # ----------------- Engine operations -----------------

    async def claim_batch(self, limit: int, now: datetime) -> list[TaskRecord]:
        """
        Select up to `limit` due QUEUED tasks and mark them PROCESSING.

        Candidates are ordered by priority, then scheduled_for. A candidate
        whose guarded update matches no row was claimed by an overlapping run
        and is dropped. Returned records reflect the post-claim state, in
        claim order.
        """
        now = to_utc(now)
        try:
            async with self.session_factory() as session:
                candidate_ids = await self._select_candidate_ids(session, limit, now)
                claimed: list[str] = []
                for task_id in candidate_ids:
                    res = await session.execute(
                        CLAIM_TASK_SQL, {'task_id': task_id, 'now': now}
                    )
                    if res.rowcount == 1:
                        claimed.append(task_id)
                    else:
                        self.logger.debug(
                            f'Task {task_id} claimed by another run, skipping'
                        )
                await session.commit()

                if not claimed:
                    return []
                rows = await session.execute(SELECT_TASKS_BY_IDS_SQL, {'ids': claimed})
                by_id = {
                    record.id: record
                    for record in (TaskRecord.from_row(r._mapping) for r in rows)
                }
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('claim', exc) from exc

        return [by_id[task_id] for task_id in claimed if task_id in by_id]

    async def _select_candidate_ids(
        self, session: Any, limit: int, now: datetime
    ) -> list[str]:
        result = await session.execute(select_claim_candidates_sql(limit), {'now': now})
        return list(result.scalars().all())

    async def resolve(self, task_id: str, resolution: Resolution) -> bool:
        """Persist the outcome of one attempt. False if the task is no longer PROCESSING."""
        resolved_at = to_utc(resolution.completed_at)
        if resolution.status == TaskStatus.COMPLETED:
            stmt, params = COMPLETE_TASK_SQL, {
                'task_id': task_id,
                'resolved_at': resolved_at,
                'result_doc': resolution.result,
            }
        elif resolution.status == TaskStatus.QUEUED:
            stmt, params = REQUEUE_TASK_SQL, {
                'task_id': task_id,
                'resolved_at': resolved_at,
                'reason': resolution.error_message,
                'retry_at': as_utc(resolution.scheduled_for),
            }
        elif resolution.status == TaskStatus.FAILED:
            stmt, params = FAIL_TASK_SQL, {
                'task_id': task_id,
                'resolved_at': resolved_at,
                'reason': resolution.error_message,
            }
        else:
            raise ValueError(f'cannot resolve a task to {resolution.status.value}')

        try:
            async with self.session_factory() as session:
                res = await session.execute(stmt, params)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('resolve', exc) from exc
        return res.rowcount == 1

    async def find_stale_processing(self, cutoff: datetime) -> list[TaskRecord]:
        try:
            async with self.session_factory() as session:
                rows = await session.execute(
                    SELECT_STALE_PROCESSING_SQL, {'cutoff': to_utc(cutoff)}
                )
                return [TaskRecord.from_row(r._mapping) for r in rows]
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('stale reclaim', exc) from exc

    async def delete_terminal_before(
        self, statuses: Iterable[TaskStatus], cutoff: datetime
    ) -> int:
        """Delete terminal tasks in `statuses` completed before `cutoff`."""
        wanted = list(statuses)
        for status in wanted:
            if not status.is_terminal:
                raise ValueError(f'refusing to delete non-terminal status {status.value}')
        try:
            async with self.session_factory() as session:
                res = await session.execute(
                    delete_terminal_before_sql(wanted), {'cutoff': to_utc(cutoff)}
                )
                await session.commit()
                return res.rowcount or 0
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('delete', exc) from exc

    # ----------------- Producer / operator API -----------------

    async def enqueue(self, task: NewTask, now: Optional[datetime] = None) -> TaskRecord:
        now = to_utc(now or utc_now())
        model = TaskModel(
            id=str(uuid.uuid4()),
            task_type=task.task_type,
            task_name=task.task_name,
            parameters=dict(task.parameters),
            priority=task.priority,
            scheduled_for=as_utc(task.scheduled_for) or now,
            status=TaskStatus.QUEUED,
            attempts=0,
            max_attempts=task.max_attempts,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.session_factory() as session:
                session.add(model)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('enqueue', exc) from exc

        self.logger.debug(f'Enqueued {model.task_name} ({model.task_type}) as {model.id}')
        return TaskRecord.from_row({c.key: getattr(model, c.key) for c in TASKS.columns})

    async def get(self, task_id: str) -> Optional[TaskRecord]:
        try:
            async with self.session_factory() as session:
                row = (await session.execute(SELECT_TASK_SQL, {'task_id': task_id})).first()
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('get', exc) from exc
        return TaskRecord.from_row(row._mapping) if row is not None else None

    async def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        task_type: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[TaskRecord]:
        """Most recently created tasks first."""
        stmt = select(TASKS)
        if status is not None:
            stmt = stmt.where(TASKS.c.status == status)
        if task_type is not None:
            stmt = stmt.where(TASKS.c.task_type == task_type)
        stmt = stmt.order_by(TASKS.c.created_at.desc(), TASKS.c.id.desc()).limit(limit)
        try:
            async with self.session_factory() as session:
                rows = await session.execute(stmt)
                return [TaskRecord.from_row(r._mapping) for r in rows]
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('list', exc) from exc

    async def queue_stats(self) -> dict[str, int]:
        """Task counts per status; every status is present."""
        stats = {status.value: 0 for status in TaskStatus}
        try:
            async with self.session_factory() as session:
                rows = await session.execute(COUNT_BY_STATUS_SQL)
                for status, count in rows:
                    stats[TaskStatus(status).value] = count
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('stats', exc) from exc
        return stats

    async def cancel(self, task_id: str, now: Optional[datetime] = None) -> bool:
        """QUEUED -> CANCELLED. False if the task is missing or no longer queued."""
        try:
            async with self.session_factory() as session:
                res = await session.execute(
                    CANCEL_TASK_SQL,
                    {'task_id': task_id, 'now': to_utc(now or utc_now())},
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable('cancel', exc) from exc
        return res.rowcount == 1

    async def close(self) -> None:
        await self.async_engine.dispose()
