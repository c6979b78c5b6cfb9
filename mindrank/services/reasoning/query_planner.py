"""Query planning - decompose a complex query into focused sub-queries."""

import json
import math
import re
from typing import Any

from loguru import logger

from mindrank.core.config.reasoning_config import PlannerConfig
from mindrank.core.outcome import Fallback, Ok, Outcome
from mindrank.interfaces.llm_provider import LLMProvider
from mindrank.services.reasoning.models import QueryPlan, SubQuery

PLANNER_PROMPT = """Break down this query into {count} focused sub-queries for vector search. Each sub-query should:
1. Target a specific aspect of the original query
2. Be concise and searchable (5-15 words)
3. Be independent enough for parallel execution
4. Cover different angles of the topic

Original query: "{query}"

Respond with ONLY a JSON array of strings, each string being a sub-query. No explanations, no markdown, just the array.
Example format: ["sub-query 1", "sub-query 2", "sub-query 3"]"""

_CODE_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_CLOSE_RE = re.compile(r"\s*```$")
_JSON_ARRAY_RE = re.compile(r"\[(.*?)\]", re.DOTALL)
_LIST_SPLIT_RE = re.compile(r"[,\n]")


def target_subquery_count(complexity_score: float, max_subqueries: int) -> int:
    """Sub-queries to request: scales with complexity, at least 2."""
    return min(max_subqueries, max(2, math.ceil(complexity_score * max_subqueries)))


def parse_subqueries(content: str, fallback: str, max_subqueries: int) -> list[str]:
    """Parse the planner's answer into sub-query strings.

    Accepts a clean JSON array, an array embedded in prose or a code fence,
    and, as a last resort, a comma or newline separated list inside brackets.
    """
    cleaned = _CODE_FENCE_CLOSE_RE.sub("", _CODE_FENCE_OPEN_RE.sub("", content.strip()))

    parsed: Any
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        match = _JSON_ARRAY_RE.search(cleaned)
        if not match:
            return [fallback]
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            parts = (p.strip().strip("\"'").strip() for p in _LIST_SPLIT_RE.split(match.group(1)))
            parsed = [p for p in parts if p][:max_subqueries]

    if not isinstance(parsed, list):
        return [fallback]

    texts = [str(item).strip() for item in parsed if str(item).strip()]
    if not texts:
        return [fallback]
    return texts[:max_subqueries]


class QueryPlanner:
    """LLM-backed planner with a single-query fallback."""

    def __init__(
        self,
        config: PlannerConfig | None = None,
        llm: LLMProvider | None = None,
    ):
        self._config = config or PlannerConfig()
        self._llm = llm

    async def plan(self, query: str, complexity_score: float) -> Outcome[QueryPlan]:
        """Build a plan for a query.

        Args:
            query: Original query text
            complexity_score: Score from the complexity detector

        Returns:
            Ok with the LLM plan, or Fallback with a single-sub-query plan
            of the original text
        """
        if self._llm is None:
            return Fallback(QueryPlan.single(query, complexity_score), "llm_unavailable")

        count = target_subquery_count(complexity_score, self._config.max_subqueries)
        try:
            response = await self._llm.complete(
                PLANNER_PROMPT.format(count=count, query=query),
                max_completion_tokens=200,
                temperature=self._config.temperature,
            )
        except Exception as e:
            logger.warning(f"Query planning failed, running query as-is: {e}")
            return Fallback(QueryPlan.single(query, complexity_score), "llm_error")

        texts = parse_subqueries(response.content, query, self._config.max_subqueries)
        if texts == [query]:
            return Fallback(QueryPlan.single(query, complexity_score), "llm_malformed_output")

        subqueries = [
            SubQuery(
                text=text,
                priority=len(texts) - index,
                group_id=0,
                relevance=max(0.0, 1.0 - index * 0.1),
            )
            for index, text in enumerate(texts)
        ]
        logger.debug(f"Planned {len(subqueries)} sub-queries for '{query[:60]}'")
        return Ok(
            QueryPlan(
                original_query=query,
                subqueries=subqueries,
                complexity_score=complexity_score,
            )
        )
