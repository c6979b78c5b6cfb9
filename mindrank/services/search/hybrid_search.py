"""Hybrid search: vector + BM25 combined with Reciprocal Rank Fusion.

Both channels fetch the same candidate pool (default ``2 x limit``) and run
concurrently. Each list contributes ``weight / (k + rank)`` per chunk (rank
starting at 1); chunks found by both channels get an extra multiplier and
sort ahead of single-channel chunks.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from mindrank.core.config.search_config import HybridSearchConfig, KeywordSearchConfig
from mindrank.core.models import ChannelWeights, Match, SearchFilters
from mindrank.interfaces.corpus_access import CorpusAccess
from mindrank.services.search.keyword_search import keyword_search


def rrf_score(rank: int, k: int) -> float:
    """Reciprocal rank score for a 1-based rank."""
    return 1.0 / (k + rank)


@dataclass
class _Fused:
    match: Match
    score: float
    in_both: bool


def fuse_rankings(
    vector_results: Sequence[Match],
    keyword_results: Sequence[Match],
    weights: ChannelWeights,
    limit: int,
    rrf_k: int = 60,
    both_channels_bonus: float = 1.2,
) -> list[Match]:
    """Fuse two ranked lists with weighted RRF.

    Args:
        vector_results: Vector channel results, best first
        keyword_results: Keyword channel results, best first
        weights: Channel weights (renormalized here)
        limit: Maximum fused results
        rrf_k: RRF rank offset
        both_channels_bonus: Multiplier for chunks present in both lists

    Returns:
        Fused matches: both-channel chunks first, then by descending score
    """
    weights = weights.normalized()

    vector_map = {m.chunk_id: m for m in vector_results}
    keyword_map = {m.chunk_id: m for m in keyword_results}

    scores: dict[str, float] = {}
    for rank, match in enumerate(vector_results, start=1):
        scores[match.chunk_id] = scores.get(match.chunk_id, 0.0) + rrf_score(rank, rrf_k) * weights.vector
    for rank, match in enumerate(keyword_results, start=1):
        scores[match.chunk_id] = scores.get(match.chunk_id, 0.0) + rrf_score(rank, rrf_k) * weights.keyword

    fused: list[_Fused] = []
    for chunk_id in dict.fromkeys([*vector_map, *keyword_map]):
        vector_match = vector_map.get(chunk_id)
        keyword_match = keyword_map.get(chunk_id)
        in_both = vector_match is not None and keyword_match is not None
        score = scores.get(chunk_id, 0.0)
        if in_both:
            score *= both_channels_bonus
        # Vector matches carry the embedding, prefer them.
        match = vector_match if vector_match is not None else keyword_match
        fused.append(_Fused(match=match, score=score, in_both=in_both))

    fused.sort(key=lambda f: (not f.in_both, -f.score))
    return [f.match.with_score(f.score) for f in fused[:limit]]


async def hybrid_search(
    corpus: CorpusAccess,
    scope_id: str,
    query_text: str,
    embedding: Sequence[float] | None,
    limit: int,
    filters: SearchFilters | None = None,
    weights: ChannelWeights | None = None,
    config: HybridSearchConfig | None = None,
    keyword_config: KeywordSearchConfig | None = None,
) -> list[Match]:
    """Run vector and keyword search concurrently and fuse the results.

    When ``embedding`` is None the vector channel contributes nothing and the
    result is keyword-only.
    """
    config = config or HybridSearchConfig()
    weights = weights or ChannelWeights(config.vector_weight, config.keyword_weight)
    candidate_limit = config.candidate_limit or limit * 2

    async def run_vector() -> list[Match]:
        if embedding is None:
            return []
        return await corpus.vector_search(scope_id, embedding, candidate_limit, filters)

    async def run_keyword() -> list[Match]:
        chunks = await corpus.get_all_chunks(scope_id, filters)
        return await asyncio.to_thread(
            keyword_search, chunks, query_text, candidate_limit, keyword_config, filters
        )

    vector_results, keyword_results = await asyncio.gather(run_vector(), run_keyword())
    logger.debug(
        f"Hybrid search: {len(vector_results)} vector, {len(keyword_results)} keyword "
        f"candidates (limit={limit}, candidates={candidate_limit})"
    )

    return fuse_rankings(
        vector_results,
        keyword_results,
        weights,
        limit,
        rrf_k=config.rrf_k,
        both_channels_bonus=config.both_channels_bonus,
    )
