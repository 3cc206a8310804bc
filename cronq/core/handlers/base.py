# cronq/core/handlers/base.py
"""Handler contract.

A handler owns the typed view of its task's parameters: it validates the
opaque parameter document with its own pydantic model and reports back an
Outcome. Handlers receive their collaborators through HandlerContext at
construction time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, Mapping, Optional, Protocol, Sequence, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cronq.core.logging import get_logger
from cronq.core.models.tasks import Outcome
from cronq.core.store.protocols import TaskStore
from cronq.core.types.status import TaskType
from cronq.core.utils.clock import Clock, utc_now

P = TypeVar('P', bound=BaseModel)


class Notifier(Protocol):
    """Delivery channel for notification tasks."""

    async def send(
        self,
        kind: str,
        recipients: Optional[Sequence[str]],
        message: Optional[str],
        *,
        content_id: Optional[str] = None,
    ) -> None: ...


@dataclass
class HandlerContext:
    """Collaborators shared by all handlers of one engine."""

    store: TaskStore
    session_factory: async_sessionmaker[AsyncSession]
    notifier: Notifier
    clock: Clock = utc_now


class TaskHandler(ABC, Generic[P]):
    """Base class for the handler of one TaskType."""

    task_type: ClassVar[TaskType]
    params_model: ClassVar[type[BaseModel]]

    def __init__(self, ctx: HandlerContext) -> None:
        self.ctx = ctx
        self.logger = get_logger(f'handler.{self.task_type.value}')

    async def handle(self, parameters: Any) -> Outcome:
        """Validate the stored parameter document, then run.

        A null document reads as an empty object. Anything else that is not
        a JSON object fails the attempt without reaching run().
        """
        if parameters is None:
            parameters = {}
        if not isinstance(parameters, Mapping):
            return Outcome.fail(
                f'invalid parameters: expected a JSON object, got {type(parameters).__name__}'
            )
        try:
            params = self.params_model.model_validate(dict(parameters))
        except ValidationError as exc:
            problems = '; '.join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            )
            return Outcome.fail(f'invalid parameters: {problems}')
        return await self.run(params)  # type: ignore[arg-type]

    @abstractmethod
    async def run(self, params: P) -> Outcome: ...
