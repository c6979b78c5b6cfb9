"""ClassificationCache protocol - get/set with expiry."""

from typing import Protocol

from mindrank.core.models import QueryClassification


class ClassificationCache(Protocol):
    """Cache for LLM-assisted classifications keyed by normalized query."""

    def get(self, key: str) -> QueryClassification | None:
        """Return the cached value, or None if missing or expired."""
        ...

    def set(self, key: str, value: QueryClassification, ttl_seconds: float) -> None:
        """Store a value that expires after ``ttl_seconds``."""
        ...
