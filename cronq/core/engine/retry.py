# cronq/core/engine/retry.py
from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from cronq.core.models.app import EngineConfig
from cronq.core.models.retry import RetryPolicy
from cronq.core.models.tasks import Outcome, Resolution, TaskRecord
from cronq.core.types.status import TaskStatus, TaskType


class RetryManager:
    """Turns an attempt's Outcome into the task's next persisted state.

    Terminal vs retryable is decided only by attempts vs max_attempts:
    attempts < max_attempts requeues after the task type's policy delay,
    anything else fails terminally.
    """

    def __init__(
        self,
        default_policy: Optional[RetryPolicy] = None,
        policies: Optional[Mapping[TaskType, RetryPolicy]] = None,
        *,
        uniform: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self._default = default_policy or RetryPolicy()
        self._policies = dict(policies or {})
        self._uniform = uniform

    @classmethod
    def from_config(cls, config: EngineConfig) -> RetryManager:
        return cls(config.default_retry_policy, config.retry_policies)

    def policy_for(self, task_type: str) -> RetryPolicy:
        parsed = TaskType.parse(task_type)
        if parsed is not None and parsed in self._policies:
            return self._policies[parsed]
        return self._default

    def resolve(
        self,
        task: TaskRecord,
        outcome: Outcome,
        now: datetime,
        *,
        immediate: bool = False,
    ) -> Resolution:
        """
        Compute the next state for `task` after `outcome`.

        `immediate` requeues without delay (used for reclaimed tasks whose
        attempt never reported back).
        """
        if outcome.success:
            return Resolution(
                status=TaskStatus.COMPLETED,
                completed_at=now,
                result=outcome.data,
            )

        if not task.attempts_exhausted:
            delay = 0.0 if immediate else self.policy_for(task.task_type).delay_for(
                task.attempts, self._uniform
            )
            return Resolution(
                status=TaskStatus.QUEUED,
                completed_at=now,
                error_message=outcome.message,
                scheduled_for=now + timedelta(seconds=delay),
                retry_delay_s=delay,
            )

        return Resolution(
            status=TaskStatus.FAILED,
            completed_at=now,
            error_message=outcome.message,
        )
