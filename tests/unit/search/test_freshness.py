"""Tests for freshness and trust ranking."""

import pytest

from mindrank.core.config.search_config import FreshnessConfig
from mindrank.core.models import Match
from mindrank.services.search.freshness import (
    UNKNOWN_RECENCY_SCORE,
    apply_freshness_ranking,
    freshness_score,
    mode_multiplier,
    resolve_retrieval_mode,
    staleness_level,
)
from tests.helpers.fake_corpus import make_chunk

NOW = 1_700_000_000.0
HOUR = 3600.0


def _match(chunk_id: str, score: float, path: str | None = None, **metadata) -> Match:
    return Match(chunk=make_chunk(chunk_id, "text", path=path, **metadata), score=score)


class TestHelpers:
    def test_resolve_retrieval_mode(self):
        assert resolve_retrieval_mode("thinking") == "thinking"
        assert resolve_retrieval_mode("fast") == "auto"
        assert resolve_retrieval_mode(None) == "auto"

    def test_mode_multiplier(self):
        assert mode_multiplier("instant") == 0.7
        assert mode_multiplier("auto") == 1.0
        assert mode_multiplier("thinking") == 1.2

    @pytest.mark.parametrize(
        "age_hours, expected",
        [(2, 1.0), (48, 0.8), (100, 0.5), (400, 0.2)],
    )
    def test_freshness_steps(self, age_hours, expected):
        match = _match("a", 0.5, file_mtime=NOW - age_hours * HOUR)

        assert freshness_score(match, NOW) == expected

    def test_unknown_recency(self):
        assert freshness_score(_match("a", 0.5), NOW) == UNKNOWN_RECENCY_SCORE

    def test_newest_timestamp_wins(self):
        match = _match(
            "a", 0.5, file_mtime=NOW - 400 * HOUR, effectiveDate=NOW - 1 * HOUR
        )

        assert freshness_score(match, NOW) == 1.0


class TestStaleness:
    @pytest.mark.parametrize(
        "age_hours, level",
        [(1, "fresh"), (100, "soft-stale"), (200, "hard-stale")],
    )
    def test_levels(self, age_hours, level):
        matches = [_match("a", 0.5, indexed_at=NOW - age_hours * HOUR)]

        assert staleness_level(matches, FreshnessConfig(), NOW) == level

    def test_first_match_with_indexed_at_decides(self):
        matches = [
            _match("a", 0.9),
            _match("b", 0.5, indexed_at=NOW - 200 * HOUR),
            _match("c", 0.4, indexed_at=NOW),
        ]

        assert staleness_level(matches, FreshnessConfig(), NOW) == "hard-stale"

    def test_no_indexed_at_is_fresh(self):
        assert staleness_level([_match("a", 0.5)], FreshnessConfig(), NOW) == "fresh"


class TestApplyFreshnessRanking:
    def test_recent_trusted_chunk_outranks_stale_higher_scoring_chunk(self):
        recent = _match("recent", 0.5, file_mtime=NOW - 2 * HOUR, source_trust=0.9)
        stale = _match("stale", 0.55, file_mtime=NOW - 14 * 24 * HOUR)

        ranked, diagnostics = apply_freshness_ranking(
            [stale, recent], FreshnessConfig(), "auto", now=NOW
        )

        assert [m.chunk_id for m in ranked] == ["recent", "stale"]
        assert ranked[0].score == pytest.approx(0.5 + 1.0 * 0.1 + 0.9 * 0.1)
        assert ranked[1].score == pytest.approx(0.55 + 0.2 * 0.1 + 0.5 * 0.1)
        assert diagnostics.applied
        assert diagnostics.boosted_candidates == 2

    def test_docs_get_docs_weight_and_boost_is_capped(self):
        doc = _match("doc", 0.5, path="docs/guide.md", file_mtime=NOW, source_trust=1.0)

        ranked, _ = apply_freshness_ranking(
            [doc], FreshnessConfig(max_boost=0.3), "thinking", now=NOW
        )

        # 1.2 * (1.0 * 0.25 + 1.0 * 0.1) = 0.42, capped at 0.3
        assert ranked[0].score == pytest.approx(0.8)

    def test_instant_mode_scales_boost_down(self):
        match = _match("a", 0.5, file_mtime=NOW, source_trust=1.0)

        ranked, _ = apply_freshness_ranking([match], FreshnessConfig(), "instant", now=NOW)

        assert ranked[0].score == pytest.approx(0.5 + 0.7 * 0.2)

    def test_disabled_is_passthrough(self):
        match = _match("a", 0.5, file_mtime=NOW)

        ranked, diagnostics = apply_freshness_ranking(
            [match], FreshnessConfig(enabled=False), "auto", now=NOW
        )

        assert ranked == [match]
        assert not diagnostics.applied
        assert diagnostics.staleness_level == "fresh"

    def test_iso_timestamps_accepted(self):
        match = _match("a", 0.5, fileMtime="2023-11-14T20:13:20Z")

        ranked, _ = apply_freshness_ranking([match], FreshnessConfig(), "auto", now=NOW)

        assert ranked[0].score == pytest.approx(0.5 + 1.0 * 0.1 + 0.5 * 0.1)

    def test_inverted_thresholds_rejected(self):
        with pytest.raises(ValueError):
            FreshnessConfig(soft_stale_hours=200, hard_stale_hours=100)
