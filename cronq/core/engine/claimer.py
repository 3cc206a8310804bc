# cronq/core/engine/claimer.py
from __future__ import annotations

from cronq.core.logging import get_logger
from cronq.core.models.tasks import TaskRecord
from cronq.core.store.protocols import TaskStore
from cronq.core.utils.clock import Clock, utc_now

logger = get_logger('claimer')


def check_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f'limit must be a positive integer, got {limit!r}')
    return limit


class Claimer:
    """Claims due QUEUED tasks for one run.

    Claimed tasks come back PROCESSING with started_at set and attempts
    incremented, ordered by priority then scheduled_for. Store failures
    propagate as StoreUnavailableError and no task is returned.
    """

    def __init__(self, store: TaskStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def claim_batch(self, limit: int) -> list[TaskRecord]:
        check_limit(limit)
        tasks = await self._store.claim_batch(limit, self._clock())
        if tasks:
            logger.info(f'Claimed {len(tasks)} task(s) (limit={limit})')
        else:
            logger.debug('No eligible tasks')
        return tasks
