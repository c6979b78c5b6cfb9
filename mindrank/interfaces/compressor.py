"""ContextCompressor protocol."""

from typing import Protocol

from mindrank.core.models import Chunk


class ContextCompressor(Protocol):
    """Compresses chunk text toward what a query needs."""

    async def compress(self, chunk: Chunk, query_text: str) -> str:
        """Return compressed text for ``chunk``; raise on failure."""
        ...
