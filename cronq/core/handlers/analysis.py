"""analysis: read-only summaries over a recent window."""

from __future__ import annotations

from collections import Counter
from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select

from cronq.core.handlers.base import TaskHandler
from cronq.core.models.records_pg import GrowthMetricModel, TicketModel
from cronq.core.models.tasks import Outcome
from cronq.core.types.status import TaskType

ERROR_PATTERN_WINDOW = timedelta(days=7)
GROWTH_WINDOW = timedelta(days=30)


class AnalysisParams(BaseModel):
    model_config = ConfigDict(extra='ignore')

    analysis_type: str = Field(min_length=1)


class AnalysisHandler(TaskHandler[AnalysisParams]):
    task_type = TaskType.ANALYSIS
    params_model = AnalysisParams

    async def run(self, params: AnalysisParams) -> Outcome:
        match params.analysis_type:
            case 'error_patterns':
                data = await self._error_patterns()
            case 'growth_summary':
                data = await self._growth_summary()
            case _:
                return Outcome.fail(f'Unknown analysis type: {params.analysis_type}')
        return Outcome.ok('Analysis complete', data)

    async def _error_patterns(self) -> dict:
        now = self.ctx.clock()
        async with self.ctx.session_factory() as session:
            rows = await session.execute(
                select(TicketModel.source, TicketModel.severity).where(
                    TicketModel.ticket_type == 'error',
                    TicketModel.created_at >= now - ERROR_PATTERN_WINDOW,
                )
            )
            errors = rows.all()

        patterns = Counter(f'{source}-{severity}' for source, severity in errors)
        return {
            'total_errors': len(errors),
            'patterns': dict(patterns),
            'analyzed_at': now.isoformat(),
        }

    async def _growth_summary(self) -> dict:
        now = self.ctx.clock()
        since = (now - GROWTH_WINDOW).date()
        async with self.ctx.session_factory() as session:
            rows = await session.execute(
                select(GrowthMetricModel.metric_type).where(
                    GrowthMetricModel.metric_date >= since
                )
            )
            types = list(rows.scalars().all())

        return {
            'metrics_count': len(types),
            'types': sorted(set(types)),
            'analyzed_at': now.isoformat(),
        }
