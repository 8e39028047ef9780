"""Tests for the OpenAI circuit breaker.

- Starts CLOSED with zero failures
- Opens once the failure threshold is reached
- Lets one probe through after the recovery timeout (HALF_OPEN)
- A successful probe closes the circuit, a failed probe re-opens it
"""

import pytest

from product_optimizer.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)


def make_breaker(threshold: int = 2, recovery: float = 60.0) -> CircuitBreaker:
    return CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=threshold, recovery_timeout=recovery),
        name="openai",
    )


class TestCircuitBreakerState:
    """Closed/open transitions."""

    def test_starts_closed(self) -> None:
        cb = make_breaker()

        assert cb.state == CircuitState.CLOSED
        assert cb.is_closed is True
        assert cb.failure_count == 0
        assert cb.name == "openai"

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self) -> None:
        cb = make_breaker(threshold=2)

        await cb.record_failure()
        assert cb.is_closed is True

        await cb.record_failure()
        assert cb.is_open is True
        assert await cb.can_execute() is False

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self) -> None:
        cb = make_breaker(threshold=2)

        await cb.record_failure()
        await cb.record_success()
        await cb.record_failure()

        assert cb.is_closed is True
        assert cb.failure_count == 1


class TestCircuitBreakerRecovery:
    """Half-open probing after the recovery timeout."""

    @pytest.mark.asyncio
    async def test_half_open_after_recovery_timeout(self) -> None:
        cb = make_breaker(threshold=1, recovery=0.0)
        await cb.record_failure()
        assert cb.is_open is True

        assert await cb.can_execute() is True
        assert cb.is_half_open is True

    @pytest.mark.asyncio
    async def test_successful_probe_closes(self) -> None:
        cb = make_breaker(threshold=1, recovery=0.0)
        await cb.record_failure()
        await cb.can_execute()

        await cb.record_success()

        assert cb.is_closed is True
        assert cb.failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens(self) -> None:
        cb = make_breaker(threshold=1, recovery=0.0)
        await cb.record_failure()
        await cb.can_execute()

        await cb.record_failure()

        assert cb.is_open is True
