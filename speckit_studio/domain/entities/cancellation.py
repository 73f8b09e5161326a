"""Cooperative cancellation for backend calls."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class OperationCancelledError(Exception):
    """The request was superseded or stopped. Never shown to the user as an error."""


class CancellationToken:
    """One token per in-flight turn. Once cancelled it stays cancelled.

    Usage:
        token = CancellationToken()
        text = await token.run(llm.generate(...))
        ...
        token.cancel()  # pending run() raises OperationCancelledError
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await awaitable unless the token fires first; the losing task is cancelled."""
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelledError("Operation cancelled")
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if self._event.is_set():
            if task.done():
                if not task.cancelled():
                    task.exception()  # mark retrieved; the result is discarded
            else:
                task.cancel()
            raise OperationCancelledError("Operation cancelled")
        return task.result()

    async def sleep(self, seconds: float) -> None:
        """Cancellable delay (offline mode latency)."""
        if seconds <= 0:
            self.raise_if_cancelled()
            return
        await self.run(asyncio.sleep(seconds))


def ensure_token(token: "CancellationToken | None") -> CancellationToken:
    """Return token, or a fresh never-fired token when None."""
    return token if token is not None else CancellationToken()
