"""notification: hand a message to the configured Notifier."""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from cronq.core.handlers.base import TaskHandler
from cronq.core.logging import get_logger
from cronq.core.models.tasks import Outcome
from cronq.core.types.status import TaskType


class LoggingNotifier:
    """Notifier that only writes the notification to the log."""

    def __init__(self) -> None:
        self.logger = get_logger('notifier')

    async def send(
        self,
        kind: str,
        recipients: Optional[Sequence[str]],
        message: Optional[str],
        *,
        content_id: Optional[str] = None,
    ) -> None:
        audience = 'all' if recipients is None else len(recipients)
        self.logger.info(
            f'[Notification] Type: {kind}, Recipients: {audience}'
            + (f', content: {content_id}' if content_id else '')
        )


class NotificationParams(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    kind: str = Field(alias='type', min_length=1)
    # None = broadcast
    recipients: Optional[list[str]] = None
    message: Optional[str] = None
    content_id: Optional[str] = None


class NotificationHandler(TaskHandler[NotificationParams]):
    task_type = TaskType.NOTIFICATION
    params_model = NotificationParams

    async def run(self, params: NotificationParams) -> Outcome:
        await self.ctx.notifier.send(
            params.kind,
            params.recipients,
            params.message,
            content_id=params.content_id,
        )
        return Outcome.ok(
            'Notification queued',
            {
                'type': params.kind,
                'recipients': 'all' if params.recipients is None else len(params.recipients),
                'queued_at': self.ctx.clock().isoformat(),
            },
        )
