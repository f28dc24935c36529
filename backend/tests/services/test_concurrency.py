# backend/tests/services/test_concurrency.py
"""
Tests for cancellation tokens and bounded fan-out.

Key Properties Tested:
1. A cancelled token stops a call before and after the collaborator runs
2. The semaphore caps in-flight collaborator calls
3. gather_isolated keeps ordinary failures in place and re-raises cancellation
"""

import asyncio

import pytest

from fincatch.services.concurrency import (
    CalculationContext,
    CancellationToken,
    gather_isolated,
)
from fincatch.services.exceptions import OperationCancelledError


# =============================================================================
# CANCELLATION TOKEN
# =============================================================================

class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initially_active(self):
        token = CancellationToken()

        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_with_reason(self):
        token = CancellationToken()
        token.cancel("display currency changed")

        with pytest.raises(OperationCancelledError, match="display currency changed"):
            token.raise_if_cancelled()

    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")

        with pytest.raises(OperationCancelledError, match="first"):
            token.raise_if_cancelled()


# =============================================================================
# CALCULATION CONTEXT
# =============================================================================

class TestCalculationContext:
    """Tests for CalculationContext.call."""

    @pytest.mark.asyncio
    async def test_passes_arguments_through(self):
        async def add(a, b, scale=1):
            return (a + b) * scale

        context = CalculationContext.create()

        assert await context.call(add, 1, 2, scale=10) == 30

    @pytest.mark.asyncio
    async def test_cancelled_before_call(self):
        calls = []

        async def lookup():
            calls.append(1)

        token = CancellationToken()
        token.cancel()
        context = CalculationContext.create(token)

        with pytest.raises(OperationCancelledError):
            await context.call(lookup)
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancelled_during_call_discards_result(self):
        token = CancellationToken()
        context = CalculationContext.create(token)

        async def lookup():
            token.cancel("stale")
            return 42

        with pytest.raises(OperationCancelledError):
            await context.call(lookup)

    @pytest.mark.asyncio
    async def test_in_flight_calls_capped(self):
        context = CalculationContext.create(max_concurrent=2)
        in_flight = 0
        peak = 0

        async def lookup():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        await asyncio.gather(*(context.call(lookup) for _ in range(6)))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_collaborator_error_propagates(self):
        async def lookup():
            raise ValueError("bad quote")

        with pytest.raises(ValueError, match="bad quote"):
            await CalculationContext.create().call(lookup)


# =============================================================================
# GATHER ISOLATED
# =============================================================================

class TestGatherIsolated:
    """Tests for gather_isolated."""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        results = await gather_isolated([value("a", 0.02), value("b", 0), value("c", 0.01)])

        assert results == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_failure_isolated(self):
        async def ok():
            return 1

        async def fail():
            raise RuntimeError("provider down")

        results = await gather_isolated([ok(), fail(), ok()])

        assert results[0] == 1
        assert isinstance(results[1], RuntimeError)
        assert results[2] == 1

    @pytest.mark.asyncio
    async def test_cancellation_reraised(self):
        async def ok():
            return 1

        async def cancelled():
            raise OperationCancelledError()

        with pytest.raises(OperationCancelledError):
            await gather_isolated([ok(), cancelled()])

    @pytest.mark.asyncio
    async def test_generator_input(self):
        async def square(v):
            return v * v

        assert await gather_isolated(square(v) for v in range(4)) == [0, 1, 4, 9]
