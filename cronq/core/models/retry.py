# cronq/core/models/retry.py
from __future__ import annotations
import random
from typing import Annotated, Callable, Literal, Self
from pydantic import BaseModel, ConfigDict, Field, model_validator
from cronq.core.defaults import DEFAULT_RETRY_DELAY_S
from cronq.core.errors import ConfigurationError, ErrorCode


class RetryPolicy(BaseModel):
    """
    Delay applied between a failed attempt and the next eligibility time.

    Two strategies supported:
    1. Constant: every retry waits delay_seconds
    2. Exponential: delay_seconds * 2**(attempts-1), capped at max_delay_seconds

    Fields:
        strategy: 'constant' or 'exponential'
        delay_seconds: constant delay, or the base of the exponential curve
        max_delay_seconds: upper bound for exponential delays
        jitter: whether to add ±25% randomization to delays
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    strategy: Literal['constant', 'exponential'] = 'constant'
    delay_seconds: Annotated[
        int, Field(ge=1, le=86_400, description='Retry delay in seconds (1-86400)')
    ] = DEFAULT_RETRY_DELAY_S
    max_delay_seconds: Annotated[
        int, Field(ge=1, le=604_800, description='Exponential cap in seconds (1s-7d)')
    ] = 3_600
    jitter: bool = False

    @model_validator(mode='after')
    def validate_cap(self) -> Self:
        if self.strategy == 'exponential' and self.max_delay_seconds < self.delay_seconds:
            raise ConfigurationError(
                message='max_delay_seconds below delay_seconds',
                code=ErrorCode.CONFIG_INVALID_RETRY_POLICY,
                notes=[
                    f'delay_seconds={self.delay_seconds}',
                    f'max_delay_seconds={self.max_delay_seconds}',
                ],
                help_text='set max_delay_seconds >= delay_seconds for exponential backoff',
            )
        return self

    # Convenience constructors
    @classmethod
    def constant(cls, delay_seconds: int = DEFAULT_RETRY_DELAY_S, *, jitter: bool = False) -> 'RetryPolicy':
        return cls(strategy='constant', delay_seconds=delay_seconds, jitter=jitter)

    @classmethod
    def exponential(
        cls,
        base_seconds: int,
        *,
        max_delay_seconds: int = 3_600,
        jitter: bool = False,
    ) -> 'RetryPolicy':
        return cls(
            strategy='exponential',
            delay_seconds=base_seconds,
            max_delay_seconds=max_delay_seconds,
            jitter=jitter,
        )

    def delay_for(
        self,
        attempts: int,
        uniform: Callable[[float, float], float] = random.uniform,
    ) -> float:
        """Delay in seconds before a task that has made `attempts` attempts runs again."""
        if self.strategy == 'exponential':
            exponent = max(attempts - 1, 0)
            base_delay = min(
                self.delay_seconds * (2 ** exponent), self.max_delay_seconds
            )
        else:
            base_delay = self.delay_seconds

        # Apply jitter (±25% randomization)
        if self.jitter:
            jitter_range = base_delay * 0.25
            base_delay += uniform(-jitter_range, jitter_range)

        return float(max(1.0, base_delay))
