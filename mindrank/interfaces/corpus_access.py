"""CorpusAccess protocol - read-only access to the chunk corpus and vector index."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from mindrank.core.models import Chunk, Match, SearchFilters


class CorpusAccess(Protocol):
    """Caller-supplied corpus access.

    The retrieval core never writes through this interface. Implementations
    may be shared by concurrent sub-queries without locking.
    """

    async def vector_search(
        self,
        scope_id: str,
        embedding: Sequence[float],
        limit: int,
        filters: SearchFilters | None = None,
    ) -> list[Match]:
        """Return up to ``limit`` nearest chunks with similarity scores."""
        ...

    async def get_all_chunks(
        self, scope_id: str, filters: SearchFilters | None = None
    ) -> list[Chunk]:
        """Return every chunk in scope (input for keyword search)."""
        ...


@runtime_checkable
class EmbeddingCorpusAccess(CorpusAccess, Protocol):
    """Corpus access that can also embed query text."""

    async def embed(self, text: str) -> list[float]:
        """Embed query text into the corpus vector space."""
        ...
