"""In-flight guards and cancellation scopes for manager objects."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, Awaitable, Optional, TypeVar

from .errors import OperationInProgressException, ScopeClosedException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlight:
    """Tracks which named operations are running; rejects duplicates."""

    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_active(self, name: Optional[str] = None) -> bool:
        if name is None:
            return bool(self._active)
        return name in self._active

    @asynccontextmanager
    async def guard(self, name: str) -> AsyncIterator[None]:
        if name in self._active:
            raise OperationInProgressException(name)
        self._active.add(name)
        try:
            yield
        finally:
            self._active.discard(name)


class OperationScope:
    """
    Owns the tasks a manager starts so they can be abandoned together.

    After `aclose()`, running requests are cancelled and new ones refused,
    so a response that arrives late never lands in discarded state.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self, awaitable: Awaitable[T]) -> T:
        if self._closed:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ScopeClosedException()
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        result = await task
        if self._closed:
            # Finished after close; the owner is gone.
            raise asyncio.CancelledError()
        return result

    async def aclose(self) -> None:
        self._closed = True
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug("operation_scope_cancelled: %d task(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
