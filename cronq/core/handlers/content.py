"""content_generation: queue draft content items for editorial review."""

from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from cronq.core.handlers.base import TaskHandler
from cronq.core.models.records_pg import ContentQueueModel
from cronq.core.models.tasks import Outcome
from cronq.core.types.status import TaskType

CONTENT_SOURCE = 'task_engine'


class ContentGenerationParams(BaseModel):
    model_config = ConfigDict(extra='ignore')

    content_type: Annotated[str, Field(min_length=1, max_length=64)]
    count: Annotated[int, Field(ge=1, le=100)] = 1
    template: Optional[dict[str, Any]] = None


class ContentGenerationHandler(TaskHandler[ContentGenerationParams]):
    task_type = TaskType.CONTENT_GENERATION
    params_model = ContentGenerationParams

    async def run(self, params: ContentGenerationParams) -> Outcome:
        now = self.ctx.clock()
        stamp = int(now.timestamp() * 1000)
        items = [
            ContentQueueModel(
                content_type=params.content_type,
                title=f'Auto-generated {params.content_type} #{stamp}-{i}',
                content=dict(params.template or {}),
                source=CONTENT_SOURCE,
                status='pending',
                created_at=now,
            )
            for i in range(params.count)
        ]
        async with self.ctx.session_factory() as session:
            session.add_all(items)
            await session.commit()

        generated = len(items)
        self.logger.info(f'Queued {generated} {params.content_type} drafts for review')
        return Outcome.ok(
            f'Generated {generated} {params.content_type} items',
            {'generated': generated},
        )
