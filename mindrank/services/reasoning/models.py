"""Data model for the reasoning orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from mindrank.core.models import Match


@dataclass(frozen=True, slots=True)
class SubQuery:
    """One planned sub-query.

    Attributes:
        text: Sub-query text
        priority: Planner rank, higher is more important
        group_id: Sub-queries sharing a group run concurrently
        relevance: Planner's estimate of relevance to the original query
    """

    text: str
    priority: int = 1
    group_id: int = 0
    relevance: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "priority": self.priority,
            "group_id": self.group_id,
            "relevance": self.relevance,
        }


@dataclass(frozen=True)
class QueryPlan:
    original_query: str
    subqueries: list[SubQuery]
    complexity_score: float

    @classmethod
    def single(cls, text: str, complexity_score: float = 0.0) -> QueryPlan:
        """Plan that runs the query itself as its only sub-query."""
        return cls(
            original_query=text,
            subqueries=[SubQuery(text=text)],
            complexity_score=complexity_score,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_query": self.original_query,
            "subqueries": [sq.to_dict() for sq in self.subqueries],
            "complexity_score": self.complexity_score,
        }


@dataclass(frozen=True)
class ComplexityResult:
    score: float
    needs_reasoning: bool
    reasons: list[str] = field(default_factory=list)


@dataclass
class SubQueryResult:
    """Outcome of one executed sub-query."""

    subquery: SubQuery
    matches: list[Match]
    context: str = ""

    @property
    def mean_score(self) -> float:
        if not self.matches:
            return 0.0
        return sum(m.score for m in self.matches) / len(self.matches)


@dataclass
class ReasoningBudget:
    """Mutable counters shared by every branch of one top-level query."""

    max_total_queries: int
    total_queries: int = 0
    query_path: list[str] = field(default_factory=list)
    tokens_by_depth: dict[int, int] = field(default_factory=dict)


@dataclass
class ReasoningContext:
    """Position of a reasoning branch within its run.

    A context is created per top-level query and handed down the call tree.
    ``descend`` produces the context for the next level; the budget object
    is shared, so limits apply to the whole run rather than per branch.
    """

    budget: ReasoningBudget
    max_depth: int
    max_tokens_per_depth: int
    depth: int = 0

    @classmethod
    def start(
        cls,
        query_text: str,
        max_depth: int,
        max_total_queries: int,
        max_tokens_per_depth: int,
    ) -> ReasoningContext:
        return cls(
            budget=ReasoningBudget(
                max_total_queries=max_total_queries, query_path=[query_text]
            ),
            max_depth=max_depth,
            max_tokens_per_depth=max_tokens_per_depth,
        )

    def descend(self) -> ReasoningContext:
        return ReasoningContext(
            budget=self.budget,
            max_depth=self.max_depth,
            max_tokens_per_depth=self.max_tokens_per_depth,
            depth=self.depth + 1,
        )

    @property
    def at_max_depth(self) -> bool:
        return self.depth >= self.max_depth

    @property
    def queries_exhausted(self) -> bool:
        return self.budget.total_queries >= self.budget.max_total_queries

    def record_tokens(self, tokens: int) -> int:
        """Add tokens spent at this depth and return the running total."""
        total = self.budget.tokens_by_depth.get(self.depth, 0) + tokens
        self.budget.tokens_by_depth[self.depth] = total
        if total > self.max_tokens_per_depth:
            logger.warning(
                f"Reasoning depth {self.depth} used {total} tokens "
                f"(budget {self.max_tokens_per_depth})"
            )
        return total


@dataclass(frozen=True)
class ReasoningTiming:
    planning_ms: float = 0.0
    execution_ms: float = 0.0
    synthesis_ms: float = 0.0
    total_ms: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "planning_ms": self.planning_ms,
            "execution_ms": self.execution_ms,
            "synthesis_ms": self.synthesis_ms,
            "total_ms": self.total_ms,
        }


@dataclass(frozen=True)
class ReasoningMetadata:
    """Reasoning block attached to a ranked result."""

    complexity_score: float
    plan: QueryPlan
    depth: int
    subqueries_count: int
    parallel_executed: int
    timing: ReasoningTiming
    tokens_saved: int | None = None
    fallbacks: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "complexity_score": self.complexity_score,
            "plan": self.plan.to_dict(),
            "depth": self.depth,
            "subqueries_count": self.subqueries_count,
            "parallel_executed": self.parallel_executed,
            "timing": self.timing.to_dict(),
        }
        if self.tokens_saved is not None:
            data["tokens_saved"] = self.tokens_saved
        if self.fallbacks:
            data["fallbacks"] = dict(self.fallbacks)
        return data


@dataclass(frozen=True)
class SynthesisResult:
    """Merged context built from sub-query results."""

    context: str
    matches: list[Match]
    original_count: int
    deduplicated_count: int
