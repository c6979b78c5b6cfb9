"""QueryHistory protocol - optional store for reasoning plans."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class ReasoningPlanRecord:
    """Persisted record of one reasoning run."""

    query_id: str
    query_hash: str
    query_text: str
    scope_id: str
    plan: dict[str, Any]
    timing: dict[str, float]
    result_chunk_ids: list[str] = field(default_factory=list)
    query_vector: Sequence[float] | None = None
    created_at: float = 0.0


class QueryHistory(Protocol):
    """Store for reasoning plans. Failures are logged and ignored by callers."""

    async def save_reasoning_plan(self, record: ReasoningPlanRecord) -> None:
        """Persist a reasoning plan with its timing."""
        ...

    async def find_by_similar_query(
        self, vector: Sequence[float], scope_id: str, limit: int = 5
    ) -> list[ReasoningPlanRecord]:
        """Return past records whose query vectors are closest to ``vector``."""
        ...
