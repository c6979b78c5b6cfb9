"""Progress events for the reasoning orchestrator.

The orchestrator writes stage transitions to a ``ProgressChannel``. Writing
never blocks: when the buffer is full the event is dropped and counted, so a
slow or absent consumer cannot stall retrieval.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from loguru import logger

ProgressStage = Literal[
    "analyzing_query_complexity",
    "query_is_simple",
    "planning_query",
    "query_plan_generated",
    "executing_subqueries",
    "subqueries_completed",
    "synthesizing_context",
    "context_synthesis_completed",
]


@dataclass(frozen=True)
class ProgressEvent:
    stage: ProgressStage
    message: str
    depth: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class ProgressChannel:
    """Bounded buffer of progress events."""

    def __init__(self, maxsize: int = 256):
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=maxsize)
        self._dropped = 0

    @property
    def dropped(self) -> int:
        return self._dropped

    def emit(
        self, stage: ProgressStage, message: str, depth: int = 0, **metadata: Any
    ) -> bool:
        """Buffer an event without waiting.

        Returns:
            True if buffered, False if dropped because the buffer is full
        """
        try:
            self._queue.put_nowait(
                ProgressEvent(stage=stage, message=message, depth=depth, metadata=metadata)
            )
        except asyncio.QueueFull:
            self._dropped += 1
            logger.debug(f"Progress buffer full, dropped '{stage}' event")
            return False
        return True

    async def get(self) -> ProgressEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def drain(self) -> list[ProgressEvent]:
        """Return every buffered event without waiting."""
        events: list[ProgressEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events
