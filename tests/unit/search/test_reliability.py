"""Tests for reliability evaluation."""

import pytest

from mindrank.core.config.search_config import ReliabilityConfig
from mindrank.services.search.reliability import (
    FAIL_CLOSED_HINTS,
    LOW_CONFIDENCE_HINTS,
    build_confidence_adjustments,
    calculate_confidence,
    evaluate_reliability,
    is_agent_mode,
)

AGENT = {"agentMode": True}


class TestConfidence:
    def test_mean_of_top_three(self):
        assert calculate_confidence([0.1, 0.9, 0.8, 0.7]) == pytest.approx(0.8)

    def test_fewer_than_three(self):
        assert calculate_confidence([0.6, 0.4]) == pytest.approx(0.5)

    def test_empty(self):
        assert calculate_confidence([]) == 0.0


class TestAgentMode:
    @pytest.mark.parametrize(
        "metadata",
        [{"agentMode": True}, {"agent_mode": True}, {"consumer": "agent"}, {"actor": "agent"}],
    )
    def test_agent_flags(self, metadata):
        assert is_agent_mode(metadata)

    def test_non_agent(self):
        assert not is_agent_mode(None)
        assert not is_agent_mode({"agentMode": "yes"})


class TestEvaluateReliability:
    def test_strict_hard_stale_fails_closed(self):
        decision = evaluate_reliability(
            "hard-stale", "auto", [0.9, 0.9, 0.9], ReliabilityConfig(), AGENT
        )

        assert decision.strict_mode
        assert decision.fail_closed
        assert "reindex_scope" in decision.recoverable_hints
        assert decision.recoverable_hints == list(FAIL_CLOSED_HINTS)

    def test_thinking_mode_is_strict(self):
        decision = evaluate_reliability("hard-stale", "thinking", [0.9], ReliabilityConfig())

        assert decision.strict_mode
        assert decision.fail_closed

    def test_thinking_mode_not_strict_when_configured_off(self):
        decision = evaluate_reliability(
            "hard-stale", "thinking", [0.9], ReliabilityConfig(thinking_mode_strict=False)
        )

        assert not decision.strict_mode
        assert not decision.fail_closed

    def test_fail_closed_can_be_disabled(self):
        decision = evaluate_reliability(
            "hard-stale", "auto", [0.9], ReliabilityConfig(hard_stale_fail_closed=False), AGENT
        )

        assert not decision.fail_closed

    def test_strict_low_confidence_flags_without_failing(self):
        decision = evaluate_reliability("fresh", "auto", [0.2, 0.1], ReliabilityConfig(), AGENT)

        assert not decision.fail_closed
        assert decision.below_confidence_floor
        assert decision.recoverable_hints == list(LOW_CONFIDENCE_HINTS)

    def test_non_strict_low_scores(self):
        decision = evaluate_reliability("hard-stale", "auto", [0.2, 0.1], ReliabilityConfig())

        assert decision.below_confidence_floor is True
        assert decision.fail_closed is False
        assert decision.recoverable_hints == []


class TestConfidenceAdjustments:
    def test_breakdown_in_strict_mode(self):
        decision = evaluate_reliability("soft-stale", "auto", [0.5], ReliabilityConfig(), AGENT)

        adjustments = build_confidence_adjustments("soft-stale", 2, 0.75, decision)

        assert adjustments.staleness_penalty == pytest.approx(0.1)
        assert adjustments.conflict_penalty == pytest.approx(0.06)
        assert adjustments.floor_gap == pytest.approx(0.25)
        assert adjustments.final_confidence == pytest.approx(0.5)

    def test_conflict_penalty_capped_and_no_gap_outside_strict(self):
        decision = evaluate_reliability("hard-stale", "auto", [0.5], ReliabilityConfig())

        adjustments = build_confidence_adjustments("hard-stale", 20, 0.75, decision)

        assert adjustments.staleness_penalty == pytest.approx(0.25)
        assert adjustments.conflict_penalty == pytest.approx(0.2)
        assert adjustments.floor_gap == 0.0
