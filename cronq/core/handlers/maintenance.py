"""maintenance: the engine cleaning up its own storage through its own task type.

Retention windows are constants of this handler, not engine configuration.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import delete

from cronq.core.handlers.base import TaskHandler
from cronq.core.models.records_pg import SystemHealthModel
from cronq.core.models.tasks import Outcome
from cronq.core.types.status import TaskStatus, TaskType

TASK_RETENTION = timedelta(days=30)
HEALTH_RETENTION = timedelta(days=7)
PURGEABLE_TASK_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class MaintenanceParams(BaseModel):
    model_config = ConfigDict(extra='ignore')

    action: str = Field(min_length=1)


class MaintenanceHandler(TaskHandler[MaintenanceParams]):
    task_type = TaskType.MAINTENANCE
    params_model = MaintenanceParams

    async def run(self, params: MaintenanceParams) -> Outcome:
        match params.action:
            case 'cleanup_old_tasks':
                return await self._cleanup_old_tasks()
            case 'cleanup_old_health':
                return await self._cleanup_old_health()
            case _:
                return Outcome.fail(f'Unknown maintenance action: {params.action}')

    async def _cleanup_old_tasks(self) -> Outcome:
        cutoff = self.ctx.clock() - TASK_RETENTION
        deleted = await self.ctx.store.delete_terminal_before(
            PURGEABLE_TASK_STATUSES, cutoff
        )
        self.logger.info(f'Deleted {deleted} tasks finished before {cutoff.isoformat()}')
        return Outcome.ok(f'Cleaned up {deleted} old tasks', {'deleted': deleted})

    async def _cleanup_old_health(self) -> Outcome:
        cutoff = self.ctx.clock() - HEALTH_RETENTION
        async with self.ctx.session_factory() as session:
            res = await session.execute(
                delete(SystemHealthModel)
                .where(SystemHealthModel.checked_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        deleted = res.rowcount or 0
        return Outcome.ok(
            f'Cleaned up {deleted} old health records', {'deleted': deleted}
        )
