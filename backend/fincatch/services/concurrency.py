# backend/fincatch/services/concurrency.py
"""
Bounded concurrency and cooperative cancellation for engine calls.

Every price lookup and currency conversion is a network round-trip. Instead
of awaiting them one by one, the engine fans out per entry and per history
point, and every collaborator call goes through CalculationContext.call():

    1. raise if the calculation was cancelled
    2. wait for a free in-flight slot (asyncio.Semaphore)
    3. await the collaborator
    4. raise if the calculation was cancelled while waiting

Only leaf collaborator calls take a slot; fan-out levels never hold one,
so nested fan-out cannot deadlock on the semaphore.

Usage:
    token = CancellationToken()
    context = CalculationContext.create(token, max_concurrent=8)
    price = await context.call(gateway.fetch_stock_history, request)

    # elsewhere, e.g. the user switched display currency
    token.cancel()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from fincatch.services.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CancellationToken:
    """
    One-shot flag checked at every await point of a calculation.

    Tokens are never reset; start a new calculation with a new token.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason
            logger.debug(f"Calculation cancelled: {reason or 'no reason given'}")

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancel() was called."""
        if self._cancelled:
            raise OperationCancelledError(
                f"Calculation was cancelled: {self._reason}" if self._reason
                else "Calculation was cancelled"
            )


@dataclass
class CalculationContext:
    """
    Per-call execution context shared by all tasks of one engine operation.

    Attributes:
        token: Cancellation token of the calculation
        semaphore: Cap on in-flight collaborator calls
    """

    token: CancellationToken = field(default_factory=CancellationToken)
    semaphore: asyncio.Semaphore = field(default_factory=lambda: asyncio.Semaphore(8))

    @classmethod
    def create(
            cls,
            token: CancellationToken | None = None,
            max_concurrent: int = 8,
    ) -> "CalculationContext":
        return cls(
            token=token or CancellationToken(),
            semaphore=asyncio.Semaphore(max_concurrent),
        )

    async def call(
            self,
            func: Callable[..., Awaitable[T]],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Await a collaborator call under the in-flight cap.

        Raises:
            OperationCancelledError: Token tripped before or during the call
        """
        self.token.raise_if_cancelled()
        async with self.semaphore:
            self.token.raise_if_cancelled()
            result = await func(*args, **kwargs)
        self.token.raise_if_cancelled()
        return result


async def gather_isolated(
        awaitables: Iterable[Awaitable[T]],
) -> list[T | BaseException]:
    """
    Run awaitables concurrently; one failure never cancels its siblings.

    Results come back in input order, each either a value or the exception
    that awaitable raised. Cancellation is not isolated: if any awaitable
    was cancelled the OperationCancelledError is re-raised after all finish.
    """
    results = await asyncio.gather(*awaitables, return_exceptions=True)

    for result in results:
        if isinstance(result, (OperationCancelledError, asyncio.CancelledError)):
            raise result

    return results
