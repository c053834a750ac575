"""
Detached units of work that run after a response has been handed back.

Design:
    - `spawn` schedules a coroutine as an asyncio task and returns at once.
      The task only starts running once the caller yields to the event loop.
    - Each task has its own error boundary: exceptions are logged and counted,
      never propagated to whoever spawned it.
    - Strong references are kept until completion so tasks are not garbage
      collected mid-flight.
    - `drain` awaits everything in flight (tests, application shutdown).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Set

from . import telemetry

LOG = logging.getLogger(__name__)


class BackgroundRunner:
    """Owns fire-and-forget tasks spawned by the enrichment funnel."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, work: Awaitable[None], *, name: str = "background") -> asyncio.Task:
        task = asyncio.create_task(self._guard(work, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, work: Awaitable[None], name: str) -> None:
        try:
            await work
        except asyncio.CancelledError:
            LOG.info("enrichment.background action=cancelled task=%s", name)
            raise
        except Exception as exc:
            telemetry.increment_counter("background_failures_total")
            LOG.error(
                "enrichment.background action=failed task=%s error_type=%s",
                name,
                exc.__class__.__name__,
                exc_info=True,
            )

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until all spawned work (including work spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["BackgroundRunner"]
