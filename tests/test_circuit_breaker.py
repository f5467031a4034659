import pytest

from bluesky_client.utils.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
)


class Boom(Exception):
    pass


async def fail(breaker):
    with pytest.raises(Boom):
        async with breaker:
            raise Boom()


@pytest.mark.asyncio
async def test_opens_after_threshold():
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)

    await fail(breaker)
    assert breaker.state == CircuitState.CLOSED
    await fail(breaker)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerError):
        async with breaker:
            pass


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    breaker = CircuitBreaker(failure_threshold=2)

    await fail(breaker)
    async with breaker:
        pass
    await fail(breaker)

    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_recovers_through_half_open():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0, success_threshold=2)
    await fail(breaker)
    assert breaker.state == CircuitState.OPEN

    async with breaker:
        pass
    assert breaker.state == CircuitState.HALF_OPEN
    async with breaker:
        pass

    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_failure_reopens():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
    await fail(breaker)

    await fail(breaker)

    assert breaker.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_ignored_exceptions_do_not_count():
    breaker = CircuitBreaker(
        failure_threshold=1, is_failure=lambda exc: not isinstance(exc, Boom)
    )

    await fail(breaker)
    await fail(breaker)

    assert breaker.state == CircuitState.CLOSED
