# cronq/core/engine/runner.py
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from cronq.core.codec.serde import SerializationError, to_jsonable
from cronq.core.engine.claimer import Claimer, check_limit
from cronq.core.engine.dispatcher import Dispatcher
from cronq.core.engine.retry import RetryManager
from cronq.core.errors import StoreUnavailableError
from cronq.core.logging import get_logger
from cronq.core.models.app import EngineConfig
from cronq.core.models.tasks import Outcome, RunSummary, TaskRecord
from cronq.core.registry.handlers import HandlerRegistry
from cronq.core.store.protocols import TaskStore
from cronq.core.types.status import TaskStatus
from cronq.core.utils.clock import Clock, utc_now

logger = get_logger('runner')

BUDGET_EXHAUSTED_MESSAGE = 'run budget exhausted before execution'
STALE_RECLAIMED_MESSAGE = 'stale processing reclaimed'


class Engine:
    """
    One-shot batch runner, invoked by an external trigger.

    run_batch():
      1. reclaims PROCESSING rows orphaned by killed runs
      2. claims up to `limit` due tasks
      3. dispatches them one at a time, in claim order
      4. persists each outcome through the RetryManager
      5. returns a RunSummary covering every claimed task

    The store is injected and owned by the caller.
    """

    def __init__(
        self,
        store: TaskStore,
        registry: HandlerRegistry,
        config: EngineConfig,
        *,
        clock: Clock = utc_now,
        retry_manager: Optional[RetryManager] = None,
    ) -> None:
        registry.validate_complete()
        self.store = store
        self.registry = registry
        self.config = config
        self._clock = clock
        self._claimer = Claimer(store, clock)
        self._dispatcher = Dispatcher(registry)
        self._retry = retry_manager or RetryManager.from_config(config)

    async def run_batch(self, limit: Optional[int] = None) -> RunSummary:
        """Run one batch. Raises StoreUnavailableError if claiming fails."""
        limit = check_limit(self.config.default_batch_limit if limit is None else limit)
        started = self._clock()
        deadline = self._deadline(started)

        summary = RunSummary()
        summary.reclaimed = await self.reclaim_stale()

        tasks = await self._claimer.claim_batch(limit)
        logger.info(f'Processing {len(tasks)} tasks')

        for task in tasks:
            if deadline is not None and self._clock() >= deadline:
                outcome = Outcome.fail(BUDGET_EXHAUSTED_MESSAGE)
            else:
                outcome = await self._dispatcher.dispatch(task)
            summary.record(task, await self._finalize(task, outcome))

        logger.info(
            f'Completed - Success: {summary.succeeded}, Failed: {summary.failed}'
        )
        return summary

    def _deadline(self, started: datetime) -> Optional[datetime]:
        if self.config.run_budget_ms is None:
            return None
        return started + timedelta(milliseconds=self.config.run_budget_ms)

    async def _finalize(self, task: TaskRecord, outcome: Outcome) -> bool:
        """Persist one attempt. Returns whether it counts as a success for this run."""
        if outcome.success:
            try:
                outcome = replace(outcome, data=to_jsonable(outcome.data))
            except SerializationError as exc:
                outcome = Outcome.fail(f'SerializationError: {exc}')

        resolution = self._retry.resolve(task, outcome, self._clock())
        try:
            applied = await self.store.resolve(task.id, resolution)
        except StoreUnavailableError as exc:
            logger.error(
                f'Task {task.id} ({task.task_name}): could not persist '
                f'{resolution.status.value}: {exc.message}'
            )
            return False

        if not applied:
            logger.warning(
                f'Task {task.id} is no longer processing (reclaimed?); '
                f'{resolution.status.value} not persisted'
            )
        elif resolution.is_retry:
            logger.warning(
                f'Task {task.id} ({task.task_name}) failed attempt '
                f'{task.attempts}/{task.max_attempts}, retry at '
                f'{resolution.scheduled_for.isoformat() if resolution.scheduled_for else "now"}: '
                f'{outcome.message}'
            )
        elif resolution.status == TaskStatus.FAILED:
            logger.error(
                f'Task {task.id} ({task.task_name}) failed permanently after '
                f'{task.attempts} attempt(s): {outcome.message}'
            )
        else:
            logger.info(f'Task {task.id} ({task.task_name}) completed: {outcome.message}')
        return outcome.success

    async def reclaim_stale(self) -> int:
        """
        Recover PROCESSING tasks whose run died before resolving them.

        Each stale task counts as a failed attempt: requeued for immediate
        eligibility when attempts remain, otherwise failed terminally.
        Returns the number of tasks recovered.
        """
        if self.config.stale_processing_ms is None:
            return 0

        now = self._clock()
        cutoff = now - timedelta(milliseconds=self.config.stale_processing_ms)
        stale = await self.store.find_stale_processing(cutoff)

        reclaimed = 0
        for task in stale:
            resolution = self._retry.resolve(
                task, Outcome.fail(STALE_RECLAIMED_MESSAGE), now, immediate=True
            )
            if await self.store.resolve(task.id, resolution):
                reclaimed += 1
                logger.warning(
                    f'Reclaimed stale task {task.id} ({task.task_name}), '
                    f'started {task.started_at.isoformat() if task.started_at else "?"}: '
                    f'now {resolution.status.value}'
                )
        return reclaimed
