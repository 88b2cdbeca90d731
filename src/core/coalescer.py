# src/core/coalescer.py — v1
"""In-flight request coalescing.

Concurrent callers asking for the same key share one upstream task. Each
waiter awaits the task through asyncio.shield, so one caller's cancellation
does not abort the work for the others; the shared task itself is cancelled
once its last waiter has gone.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Flight(Generic[T]):
    task: asyncio.Task[T]
    waiters: int = 0


class InflightCoalescer:
    """Share one running coroutine per key among concurrent callers."""

    def __init__(self) -> None:
        self._flights: dict[str, _Flight[Any]] = {}
        self.coalesced = 0

    @property
    def in_flight(self) -> int:
        return len(self._flights)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Await factory() for key, joining an identical call already running."""
        flight = self._flights.get(key)
        if flight is None:
            flight = _Flight(task=asyncio.ensure_future(factory()))
            self._flights[key] = flight
            flight.task.add_done_callback(lambda _t, k=key, f=flight: self._forget(k, f))
        else:
            self.coalesced += 1
            logger.debug("Joined in-flight request %s", key)

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                logger.debug("Last waiter for %s left, cancelling upstream work", key)
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    def _forget(self, key: str, flight: _Flight[Any]) -> None:
        if self._flights.get(key) is flight:
            del self._flights[key]
        # Mark the error retrieved; every waiter already re-raised it
        if not flight.task.cancelled() and flight.task.exception() is not None:
            logger.debug("In-flight request %s failed: %s", key, flight.task.exception())
