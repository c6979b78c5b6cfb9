"""Tests for RRF fusion and concurrent hybrid search."""

import pytest

from mindrank.core.config.search_config import HybridSearchConfig
from mindrank.core.models import ChannelWeights, Match
from mindrank.services.search.hybrid_search import fuse_rankings, hybrid_search, rrf_score
from tests.helpers.fake_corpus import FakeCorpus, make_chunk


def _match(chunk_id: str, score: float = 0.5) -> Match:
    return Match(chunk=make_chunk(chunk_id, f"text {chunk_id}"), score=score)


class TestFuseRankings:
    def test_rrf_score(self):
        assert rrf_score(1, 60) == pytest.approx(1 / 61)

    def test_chunk_in_both_lists_outranks_single_list_chunk(self):
        fused = fuse_rankings(
            [_match("x"), _match("y")],
            [_match("y")],
            ChannelWeights(vector=0.7, keyword=0.3),
            limit=10,
        )

        assert [m.chunk_id for m in fused] == ["y", "x"]
        assert fused[0].score == pytest.approx((0.7 / 62 + 0.3 / 61) * 1.2)
        assert fused[1].score == pytest.approx(0.7 / 61)

    def test_weights_are_normalized(self):
        fused = fuse_rankings(
            [_match("x")], [], ChannelWeights(vector=7, keyword=3), limit=10
        )

        assert fused[0].score == pytest.approx(0.7 / 61)

    def test_keyword_weight_dominates_for_lookup_weights(self):
        fused = fuse_rankings(
            [_match("v")],
            [_match("k")],
            ChannelWeights(vector=0.3, keyword=0.7),
            limit=10,
        )

        assert [m.chunk_id for m in fused] == ["k", "v"]

    def test_limit(self):
        fused = fuse_rankings(
            [_match(str(i)) for i in range(5)], [], ChannelWeights(1, 0), limit=3
        )
        assert len(fused) == 3


class TestHybridSearch:
    @pytest.mark.asyncio
    async def test_runs_both_channels_with_candidate_pool(self):
        corpus = FakeCorpus(
            [
                make_chunk("a", "vector store search", embedding=[1.0, 0.0]),
                make_chunk("b", "keyword index", embedding=[0.0, 1.0]),
            ]
        )

        results = await hybrid_search(
            corpus, "default", "vector store", [1.0, 0.0], limit=2
        )

        assert corpus.vector_calls == [("default", 4)]
        assert corpus.keyword_calls == ["default"]
        assert results[0].chunk_id == "a"

    @pytest.mark.asyncio
    async def test_explicit_candidate_limit(self):
        corpus = FakeCorpus([make_chunk("a", "text", embedding=[1.0])])

        await hybrid_search(
            corpus,
            "default",
            "text",
            [1.0],
            limit=2,
            config=HybridSearchConfig(candidate_limit=50),
        )

        assert corpus.vector_calls == [("default", 50)]

    @pytest.mark.asyncio
    async def test_missing_embedding_is_keyword_only(self):
        corpus = FakeCorpus(
            [
                make_chunk("a", "fusion ranking"),
                make_chunk("b", "unrelated"),
            ]
        )

        results = await hybrid_search(corpus, "default", "fusion", None, limit=5)

        assert corpus.vector_calls == []
        assert results[0].chunk_id == "a"
