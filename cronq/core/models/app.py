# cronq/core/models/app.py
from typing import Optional
from pydantic import BaseModel, model_validator, Field, ConfigDict
from cronq.core.defaults import (
    DEFAULT_BATCH_LIMIT,
    DEFAULT_RUN_BUDGET_MS,
    DEFAULT_STALE_PROCESSING_MS,
)
from cronq.core.models.retry import RetryPolicy
from cronq.core.models.store import StoreConfig
from cronq.core.types.status import TaskType
from cronq.core.errors import (
    ConfigurationError,
    ErrorCode,
    ValidationReport,
    raise_collected,
)
from cronq.core.logging import get_logger
from cronq.core.utils.url import mask_database_url
import logging


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    store: StoreConfig
    # Batch size used when run_batch is called without a limit
    default_batch_limit: int = DEFAULT_BATCH_LIMIT
    # Soft deadline for one run, checked before each task starts. None = unlimited.
    run_budget_ms: Optional[int] = DEFAULT_RUN_BUDGET_MS
    # PROCESSING rows started longer ago than this are reclaimed. None = disabled.
    stale_processing_ms: Optional[int] = DEFAULT_STALE_PROCESSING_MS
    default_retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    retry_policies: dict[TaskType, RetryPolicy] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_engine_configuration(self):
        """Validate batch, budget and reclaim settings.

        Collects all independent errors and raises them together.
        """
        report = ValidationReport('config')

        if self.default_batch_limit < 1:
            report.add(
                ConfigurationError(
                    message='default_batch_limit must be positive',
                    code=ErrorCode.CONFIG_INVALID_LIMIT,
                    notes=[f'default_batch_limit={self.default_batch_limit}'],
                    help_text='set default_batch_limit >= 1',
                )
            )

        if self.run_budget_ms is not None and self.run_budget_ms < 1:
            report.add(
                ConfigurationError(
                    message='run_budget_ms must be positive',
                    code=ErrorCode.CONFIG_INVALID_BUDGET,
                    notes=[f'run_budget_ms={self.run_budget_ms}'],
                    help_text='set run_budget_ms >= 1, or None for no deadline',
                )
            )

        if self.stale_processing_ms is not None:
            if self.stale_processing_ms < 1_000:
                report.add(
                    ConfigurationError(
                        message='stale_processing_ms too low',
                        code=ErrorCode.CONFIG_INVALID_STALE_THRESHOLD,
                        notes=[
                            f'stale_processing_ms={self.stale_processing_ms}ms',
                            'a task still running in another process would be reclaimed',
                        ],
                        help_text='set stale_processing_ms >= 1000, or None to disable reclaim',
                    )
                )
            elif (
                self.run_budget_ms is not None
                and self.stale_processing_ms <= self.run_budget_ms
            ):
                report.add(
                    ConfigurationError(
                        message='stale_processing_ms must exceed run_budget_ms',
                        code=ErrorCode.CONFIG_INVALID_STALE_THRESHOLD,
                        notes=[
                            f'stale_processing_ms={self.stale_processing_ms}ms ({self.stale_processing_ms/1000:.1f}s)',
                            f'run_budget_ms={self.run_budget_ms}ms ({self.run_budget_ms/1000:.1f}s)',
                            'tasks of a healthy run could be reclaimed while still executing',
                        ],
                        help_text=f'set stale_processing_ms > {self.run_budget_ms}ms',
                    )
                )

        raise_collected(report)
        return self

    def log_config(self, logger: Optional[logging.Logger] = None) -> None:
        """Log the configuration at startup, with secrets masked."""
        if logger is None:
            logger = get_logger('config')
        logger.info('cronq engine configuration:\n%s', self._format_for_logging())

    def _format_for_logging(self) -> str:
        lines = [
            f'  store: {mask_database_url(self.store.database_url)}',
            f'  default_batch_limit: {self.default_batch_limit}',
            f'  run_budget_ms: {self.run_budget_ms}',
            f'  stale_processing_ms: {self.stale_processing_ms}',
            f'  default_retry_policy: {self._format_policy(self.default_retry_policy)}',
        ]
        for task_type, policy in sorted(
            self.retry_policies.items(), key=lambda item: item[0].value
        ):
            lines.append(f'  retry_policy[{task_type.value}]: {self._format_policy(policy)}')
        return '\n'.join(lines)

    @staticmethod
    def _format_policy(policy: RetryPolicy) -> str:
        if policy.strategy == 'exponential':
            text = f'exponential base={policy.delay_seconds}s cap={policy.max_delay_seconds}s'
        else:
            text = f'constant {policy.delay_seconds}s'
        return text + (' +jitter' if policy.jitter else '')
