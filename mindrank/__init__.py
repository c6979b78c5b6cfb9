"""MindRank - adaptive retrieval and multi-hop reasoning over pre-embedded chunks."""

from mindrank.core.models import (
    Chunk,
    ChunkMetadata,
    Match,
    RankedResult,
    SearchFilters,
    SearchQuery,
)
from mindrank.services.retrieval_service import RetrievalService

__version__ = "0.4.0"

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "Match",
    "RankedResult",
    "RetrievalService",
    "SearchFilters",
    "SearchQuery",
    "__version__",
]
