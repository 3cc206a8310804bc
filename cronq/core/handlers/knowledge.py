"""knowledge_creation: turn resolved tickets into draft help articles."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select

from cronq.core.handlers.base import TaskHandler
from cronq.core.models.records_pg import KnowledgeArticleModel, TicketModel
from cronq.core.models.tasks import Outcome
from cronq.core.types.status import TaskType

# Default source set: tickets resolved within this window, newest first
RESOLVED_LOOKBACK = timedelta(hours=24)
RESOLVED_LOOKBACK_LIMIT = 10
FALLBACK_SOLUTION = 'Contact support for assistance'


class KnowledgeCreationParams(BaseModel):
    model_config = ConfigDict(extra='ignore')

    ticket_id: Optional[str] = None
    source_tickets: Optional[list[str]] = None


class KnowledgeCreationHandler(TaskHandler[KnowledgeCreationParams]):
    task_type = TaskType.KNOWLEDGE_CREATION
    params_model = KnowledgeCreationParams

    async def run(self, params: KnowledgeCreationParams) -> Outcome:
        now = self.ctx.clock()

        if params.ticket_id:
            stmt = select(TicketModel).where(TicketModel.id == params.ticket_id)
        elif params.source_tickets is not None:
            stmt = select(TicketModel).where(TicketModel.id.in_(params.source_tickets))
        else:
            stmt = (
                select(TicketModel)
                .where(
                    TicketModel.status == 'resolved',
                    TicketModel.resolved_at >= now - RESOLVED_LOOKBACK,
                )
                .order_by(TicketModel.resolved_at.desc())
                .limit(RESOLVED_LOOKBACK_LIMIT)
            )

        async with self.ctx.session_factory() as session:
            tickets = list((await session.execute(stmt)).scalars().all())
            if not tickets:
                return Outcome.ok('No tickets to process', {'articles_created': 0})

            articles = [
                KnowledgeArticleModel(
                    title=f'How to resolve: {ticket.title}',
                    content={
                        'problem': ticket.description,
                        'solution': (ticket.error_details or {}).get('resolution')
                        or FALLBACK_SOLUTION,
                        'category': ticket.ticket_type,
                    },
                    category='troubleshooting',
                    tags=[ticket.ticket_type, ticket.severity],
                    status='draft',
                    source='auto_generated',
                    created_at=now,
                )
                for ticket in tickets
            ]
            session.add_all(articles)
            await session.commit()

        return Outcome.ok(
            f'Created {len(articles)} knowledge articles',
            {'articles_created': len(articles)},
        )
