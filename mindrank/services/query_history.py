"""In-memory query history for reasoning plans.

Thread-safe; parallel sub-queries may write concurrently. Similar-query
lookup ranks stored query vectors by cosine similarity.
"""

import threading
from collections import deque
from collections.abc import Sequence

import numpy as np
from loguru import logger

from mindrank.interfaces.query_history import ReasoningPlanRecord

SIMILARITY_THRESHOLD = 0.7


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0 for mismatched or zero vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


class InMemoryQueryHistory:
    """Bounded store of reasoning plans, newest last."""

    def __init__(
        self,
        max_entries: int = 10000,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
    ):
        self._records: deque[ReasoningPlanRecord] = deque(maxlen=max_entries)
        self._similarity_threshold = similarity_threshold
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    async def save_reasoning_plan(self, record: ReasoningPlanRecord) -> None:
        """Store a plan, replacing earlier records of the same query in scope."""
        with self._lock:
            stale = [
                r
                for r in self._records
                if r.query_hash == record.query_hash and r.scope_id == record.scope_id
            ]
            for r in stale:
                self._records.remove(r)
            self._records.append(record)
        logger.debug(f"Saved reasoning plan {record.query_id} for scope '{record.scope_id}'")

    async def find_by_query(self, query_hash: str, scope_id: str) -> list[ReasoningPlanRecord]:
        with self._lock:
            return [
                r for r in self._records if r.query_hash == query_hash and r.scope_id == scope_id
            ]

    async def find_by_similar_query(
        self, vector: Sequence[float], scope_id: str, limit: int = 5
    ) -> list[ReasoningPlanRecord]:
        """Records in scope whose query vector is similar to ``vector``.

        Args:
            vector: Query embedding
            scope_id: Scope to search
            limit: Maximum records to return

        Returns:
            Records above the similarity threshold, most similar first
        """
        with self._lock:
            candidates = [
                r for r in self._records if r.scope_id == scope_id and r.query_vector is not None
            ]

        scored = []
        for record in candidates:
            assert record.query_vector is not None
            similarity = cosine_similarity(vector, record.query_vector)
            if similarity > self._similarity_threshold:
                scored.append((similarity, record))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [record for _, record in scored[:limit]]
