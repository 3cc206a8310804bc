# cronq/core/engine/dispatcher.py
from __future__ import annotations

import asyncio

from cronq.core.errors import CronqError
from cronq.core.logging import get_logger
from cronq.core.models.tasks import Outcome, TaskRecord
from cronq.core.registry.handlers import HandlerRegistry, NotRegistered
from cronq.core.types.status import TaskType

logger = get_logger('dispatcher')


def describe_exception(exc: BaseException) -> str:
    """'<ExceptionType>: <text>', single line even for CronqError."""
    if isinstance(exc, CronqError):
        text = '; '.join([exc.message, *exc.notes])
    else:
        text = str(exc)
    return f'{type(exc).__name__}: {text}' if text else type(exc).__name__


class Dispatcher:
    """Routes a claimed task to its handler and always returns an Outcome.

    Unknown task types and handler exceptions become failure Outcomes so a
    single bad task never aborts the batch. CancelledError is re-raised.
    """

    def __init__(self, registry: HandlerRegistry) -> None:
        self._registry = registry

    async def dispatch(self, task: TaskRecord) -> Outcome:
        task_type = TaskType.parse(task.task_type)
        if task_type is None:
            logger.warning(f'Task {task.id}: unknown task type {task.task_type!r}')
            return Outcome.fail(f'unknown task type: {task.task_type}')

        try:
            handler = self._registry[task_type]
        except NotRegistered:
            return Outcome.fail(f'no handler registered for task type: {task_type.value}')

        logger.info(f'Executing: {task.task_name} ({task_type.value})')
        try:
            outcome = await handler.handle(task.parameters)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception(f'Task {task.id} ({task.task_name}) raised')
            return Outcome.fail(describe_exception(exc))

        if not isinstance(outcome, Outcome):
            return Outcome.fail(
                f'handler for {task_type.value} returned {type(outcome).__name__}, expected Outcome'
            )
        return outcome
