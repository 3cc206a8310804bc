"""Unit tests for RetryPolicy delay calculation and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cronq.core.errors import ConfigurationError, ErrorCode
from cronq.core.models.retry import RetryPolicy


def _upper(low: float, high: float) -> float:
    return high


def _lower(low: float, high: float) -> float:
    return low


@pytest.mark.unit
class TestConstantDelay:
    """Constant strategy."""

    def test_default_is_five_minutes(self) -> None:
        policy = RetryPolicy()
        assert policy.strategy == 'constant'
        assert policy.delay_for(1) == 300.0

    def test_same_delay_for_every_attempt(self) -> None:
        policy = RetryPolicy.constant(30)
        assert [policy.delay_for(n) for n in (1, 2, 5)] == [30.0, 30.0, 30.0]


@pytest.mark.unit
class TestExponentialDelay:
    """Exponential strategy doubles per attempt up to the cap."""

    def test_doubles_per_attempt(self) -> None:
        policy = RetryPolicy.exponential(10, max_delay_seconds=1_000)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [10.0, 20.0, 40.0, 80.0]

    def test_capped_at_max_delay(self) -> None:
        policy = RetryPolicy.exponential(10, max_delay_seconds=50)
        assert policy.delay_for(10) == 50.0

    def test_attempt_zero_uses_base(self) -> None:
        policy = RetryPolicy.exponential(10)
        assert policy.delay_for(0) == 10.0


@pytest.mark.unit
class TestJitter:
    """Jitter spreads delays by up to 25% either way."""

    def test_upper_bound(self) -> None:
        policy = RetryPolicy.constant(100, jitter=True)
        assert policy.delay_for(1, _upper) == 125.0

    def test_lower_bound(self) -> None:
        policy = RetryPolicy.constant(100, jitter=True)
        assert policy.delay_for(1, _lower) == 75.0

    def test_never_below_one_second(self) -> None:
        policy = RetryPolicy.constant(1, jitter=True)
        assert policy.delay_for(1, _lower) == 1.0

    def test_real_random_stays_in_range(self) -> None:
        policy = RetryPolicy.exponential(60, jitter=True)
        for _ in range(50):
            assert 90.0 <= policy.delay_for(2) <= 150.0


@pytest.mark.unit
class TestValidation:
    """Field and cross-field validation."""

    def test_delay_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(delay_seconds=0)

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(strategy='linear')  # type: ignore[arg-type]

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(intervals=[1, 2, 3])  # type: ignore[call-arg]

    def test_cap_below_base_rejected(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            RetryPolicy.exponential(600, max_delay_seconds=60)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_RETRY_POLICY

    def test_cap_ignored_for_constant(self) -> None:
        policy = RetryPolicy(delay_seconds=600, max_delay_seconds=60)
        assert policy.delay_for(3) == 600.0

    def test_frozen(self) -> None:
        policy = RetryPolicy()
        with pytest.raises(ValidationError):
            policy.delay_seconds = 1  # type: ignore[misc]
