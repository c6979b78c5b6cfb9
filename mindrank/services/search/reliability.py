"""Reliability evaluation: confidence, strict mode and fail-closed verdicts.

A fail-closed verdict is not an error. It is returned as part of the result
so the caller can decide whether to refuse to answer.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from mindrank.core.config.search_config import ReliabilityConfig
from mindrank.core.models import RetrievalMode, StalenessLevel

FAIL_CLOSED_HINTS = ("reindex_scope", "refresh_docs_sources", "retry_query_after_index")
LOW_CONFIDENCE_HINTS = ("narrow_query_scope", "ask_follow_up_subquery", "retry_in_thinking_mode")

_STALENESS_PENALTIES: dict[str, float] = {"hard-stale": 0.25, "soft-stale": 0.1, "fresh": 0.0}


@dataclass(frozen=True)
class ReliabilityDecision:
    """Whether the result set can be trusted.

    Attributes:
        confidence: Mean of the top three scores
        agent_mode: Caller identified itself as an agent
        strict_mode: Agent mode, or thinking mode with strict config
        fail_closed: Caller should refuse to answer
        below_confidence_floor: Confidence is under the configured floor
        recoverable_hints: Actions that may recover a better answer
    """

    confidence: float
    agent_mode: bool
    strict_mode: bool
    fail_closed: bool
    below_confidence_floor: bool
    recoverable_hints: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConfidenceAdjustments:
    staleness_penalty: float
    conflict_penalty: float
    floor_gap: float
    final_confidence: float


def calculate_confidence(scores: Sequence[float]) -> float:
    """Mean of the top three scores; 0 for an empty list."""
    if not scores:
        return 0.0
    top = sorted(scores, reverse=True)[:3]
    return sum(top) / len(top)


def is_agent_mode(metadata: Mapping[str, Any] | None) -> bool:
    if not metadata:
        return False
    return (
        metadata.get("agentMode") is True
        or metadata.get("agent_mode") is True
        or metadata.get("consumer") == "agent"
        or metadata.get("actor") == "agent"
    )


def evaluate_reliability(
    staleness: StalenessLevel,
    mode: RetrievalMode,
    scores: Sequence[float],
    config: ReliabilityConfig,
    query_metadata: Mapping[str, Any] | None = None,
) -> ReliabilityDecision:
    """Decide whether a result set is trustworthy for this caller.

    Strict callers fail closed on a hard-stale corpus when configured to.
    Otherwise, strict callers below the confidence floor get low-confidence
    hints. ``below_confidence_floor`` is reported for every caller.
    """
    confidence = calculate_confidence(scores)
    agent_mode = is_agent_mode(query_metadata)
    strict_mode = agent_mode or (config.thinking_mode_strict and mode == "thinking")

    fail_closed = strict_mode and config.hard_stale_fail_closed and staleness == "hard-stale"
    below_floor = confidence < config.confidence_floor

    hints: list[str] = []
    if fail_closed:
        hints.extend(FAIL_CLOSED_HINTS)
    elif strict_mode and below_floor:
        hints.extend(LOW_CONFIDENCE_HINTS)

    return ReliabilityDecision(
        confidence=confidence,
        agent_mode=agent_mode,
        strict_mode=strict_mode,
        fail_closed=fail_closed,
        below_confidence_floor=below_floor,
        recoverable_hints=hints,
    )


def build_confidence_adjustments(
    staleness: StalenessLevel,
    penalized_conflicts: int,
    confidence_floor: float,
    decision: ReliabilityDecision,
) -> ConfidenceAdjustments:
    """Explain the confidence in terms of staleness, conflicts and floor gap."""
    floor_gap = (
        max(0.0, confidence_floor - decision.confidence) if decision.strict_mode else 0.0
    )
    return ConfidenceAdjustments(
        staleness_penalty=_STALENESS_PENALTIES.get(staleness, 0.0),
        conflict_penalty=min(0.2, max(0, penalized_conflicts) * 0.03),
        floor_gap=floor_gap,
        final_confidence=decision.confidence,
    )
