"""investigation: correlate an error against past tickets and annotate the ticket.

The analysis document replaces error_details['analysis'] on every run, so
running the same investigation twice leaves one analysis, not two.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select

from cronq.core.handlers.base import TaskHandler
from cronq.core.models.records_pg import TicketModel
from cronq.core.models.tasks import Outcome
from cronq.core.types.status import TaskType

SIGNATURE_LENGTH = 50
SIMILAR_LIMIT = 10
RECURRING_THRESHOLD = 5


class InvestigationParams(BaseModel):
    model_config = ConfigDict(extra='ignore')

    ticket_id: str
    error_message: Optional[str] = None
    source: Optional[str] = None


def _escape_like(value: str) -> str:
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def suggest_action(error_message: Optional[str], similar: Sequence[Any]) -> str:
    """First matching rule wins."""
    msg = (error_message or '').lower()

    if 'database' in msg or 'connection' in msg:
        return 'Check database connectivity and connection pool settings'
    if 'timeout' in msg:
        return 'Increase timeout limits or optimize query performance'
    if 'memory' in msg or 'heap' in msg:
        return 'Review memory usage and consider increasing instance resources'
    if 'rate limit' in msg:
        return 'Implement request throttling or increase rate limits'
    if len(similar) > RECURRING_THRESHOLD:
        return 'Recurring issue - prioritize permanent fix'
    return 'Review error details and implement appropriate fix'


class InvestigationHandler(TaskHandler[InvestigationParams]):
    task_type = TaskType.INVESTIGATION
    params_model = InvestigationParams

    async def run(self, params: InvestigationParams) -> Outcome:
        async with self.ctx.session_factory() as session:
            ticket = await session.get(TicketModel, params.ticket_id)
            if ticket is None:
                return Outcome.fail(f'ticket not found: {params.ticket_id}')

            similar: list[str] = []
            signature = (params.error_message or '')[:SIGNATURE_LENGTH]
            if signature:
                rows = await session.execute(
                    select(TicketModel.id)
                    .where(
                        TicketModel.title.ilike(f'%{_escape_like(signature)}%', escape='\\'),
                        TicketModel.id != ticket.id,
                    )
                    .limit(SIMILAR_LIMIT)
                )
                similar = list(rows.scalars().all())

            analysis = {
                'ticket_id': ticket.id,
                'error_pattern': params.error_message,
                'source': params.source,
                'similar_tickets': len(similar),
                'suggested_action': suggest_action(params.error_message, similar),
                'analyzed_at': self.ctx.clock().isoformat(),
            }

            # Assign a new dict so the JSON column is flagged dirty
            ticket.error_details = {**(ticket.error_details or {}), 'analysis': analysis}
            await session.commit()

        self.logger.info(
            f'Ticket {params.ticket_id}: {len(similar)} similar, '
            f'suggested: {analysis["suggested_action"]}'
        )
        return Outcome.ok('Investigation complete', analysis)
