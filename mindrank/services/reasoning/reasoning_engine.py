"""Reasoning orchestrator for multi-hop retrieval.

State machine per query::

    Init -> ComplexityCheck -> DirectExecute                        -> Done
                            -> Plan -> Execute -> Synthesize          -> Done

A branch entered at ``max_depth`` goes straight to DirectExecute. Simple
queries and plans that fell back to the original text do the same. Every
result carries a ``ReasoningMetadata`` block, including direct executions,
which report a one-sub-query plan so callers see a uniform shape.

Limit errors (depth, total queries, cycles) propagate to the caller.
Compressor and history failures are logged and never fail the query.
"""

import hashlib
import time
import uuid
from collections.abc import Awaitable, Callable

from loguru import logger

from mindrank.core.config.reasoning_config import ReasoningConfig
from mindrank.core.config.search_config import ContextOptimizerConfig
from mindrank.core.exceptions import CyclicReasoningError
from mindrank.core.models import Chunk, Match, RankedResult, SearchQuery
from mindrank.core.utils.text_similarity import jaccard_similarity, word_set
from mindrank.core.utils.token_utils import estimate_tokens
from mindrank.interfaces.compressor import ContextCompressor
from mindrank.interfaces.llm_provider import LLMProvider
from mindrank.interfaces.query_history import QueryHistory, ReasoningPlanRecord
from mindrank.services.context_optimizer import ContextOptimizer
from mindrank.services.reasoning.complexity_detector import ComplexityDetector
from mindrank.services.reasoning.models import (
    QueryPlan,
    ReasoningContext,
    ReasoningMetadata,
    ReasoningTiming,
    SubQuery,
    SubQueryResult,
)
from mindrank.services.reasoning.parallel_executor import ParallelExecutor
from mindrank.services.reasoning.progress import ProgressChannel, ProgressStage
from mindrank.services.reasoning.query_planner import QueryPlanner
from mindrank.services.reasoning.synthesizer import ResultSynthesizer

QueryRunner = Callable[[SearchQuery], Awaitable[RankedResult]]

SYNTHESIS_CHUNK_ID = "reasoning-synthesis"
SYNTHESIS_CHUNK_PATH = "reasoning-context"


def query_hash(text: str) -> str:
    return hashlib.sha256(text.lower().strip().encode("utf-8")).hexdigest()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class ReasoningEngine:
    """Orchestrates complexity detection, planning, execution and synthesis."""

    def __init__(
        self,
        run_query: QueryRunner,
        config: ReasoningConfig | None = None,
        optimizer: ContextOptimizer | None = None,
        llm: LLMProvider | None = None,
        history: QueryHistory | None = None,
        compressor: ContextCompressor | None = None,
        progress: ProgressChannel | None = None,
    ):
        """Initialize the engine.

        Args:
            run_query: Single-pass retrieval for one query (no reasoning)
            config: Reasoning configuration
            optimizer: Context optimizer reused for the merged pool
            llm: Optional LLM for complexity, planning and synthesis
            history: Optional store for reasoning plans
            compressor: Optional compressor for the synthesized context
            progress: Optional progress channel
        """
        self._run_query = run_query
        self._config = config or ReasoningConfig()
        self._optimizer = optimizer or ContextOptimizer()
        self._history = history
        self._compressor = compressor
        self._progress = progress

        self._detector = ComplexityDetector(self._config.complexity, llm)
        self._planner = QueryPlanner(self._config.planner, llm)
        self._executor = ParallelExecutor(self._config.executor)
        self._synthesizer = ResultSynthesizer(llm, self._config.llm_synthesis)

    def new_context(self, query_text: str) -> ReasoningContext:
        """Fresh context for a top-level query."""
        return ReasoningContext.start(
            query_text,
            max_depth=self._config.max_depth,
            max_total_queries=self._config.max_total_queries,
            max_tokens_per_depth=self._config.max_tokens_per_depth,
        )

    def _emit(
        self, stage: ProgressStage, message: str, context: ReasoningContext, **metadata
    ) -> None:
        if self._progress is None:
            return
        self._progress.emit(stage, message, depth=context.depth, **metadata)

    async def execute(
        self, query: SearchQuery, context: ReasoningContext | None = None
    ) -> RankedResult:
        """Answer a query, decomposing it when it is complex enough.

        Args:
            query: Query to answer
            context: Branch context; a new one is created when omitted

        Returns:
            Ranked result with the ``reasoning`` block populated

        Raises:
            ReasoningLimitError: A depth, query-count or cycle limit was hit
        """
        context = context or self.new_context(query.text)
        started = time.perf_counter()

        if context.at_max_depth:
            return await self._direct(query, context, QueryPlan.single(query.text), started)

        self._emit("analyzing_query_complexity", "Analyzing query complexity", context)
        planning_start = time.perf_counter()
        complexity = await self._detector.detect(query.text)

        if not complexity.needs_reasoning:
            self._emit(
                "query_is_simple",
                f"Query is simple (score {complexity.score:.2f})",
                context,
                complexity_score=complexity.score,
            )
            return await self._direct(
                query,
                context,
                QueryPlan.single(query.text, complexity.score),
                started,
                planning_ms=_elapsed_ms(planning_start),
            )

        self._emit("planning_query", "Planning sub-queries", context)
        outcome = await self._planner.plan(query.text, complexity.score)
        plan = outcome.value
        planning_ms = _elapsed_ms(planning_start)
        self._emit(
            "query_plan_generated",
            f"Generated {len(plan.subqueries)} sub-queries",
            context,
            subqueries=len(plan.subqueries),
        )

        if outcome.is_fallback:
            logger.debug(f"Planner fell back ({outcome.reason}), executing query directly")
            return await self._direct(
                query,
                context,
                plan,
                started,
                planning_ms=planning_ms,
                fallbacks={"planner": outcome.reason},
            )

        if self._config.cycle_detection:
            self._check_cycles(plan.subqueries, context)
        context.budget.query_path.extend(sq.text for sq in plan.subqueries)

        self._emit(
            "executing_subqueries",
            f"Executing {len(plan.subqueries)} sub-queries",
            context,
            parallel=self._config.executor.parallel,
        )
        execution_start = time.perf_counter()

        async def run_subquery(subquery: SubQuery, child: ReasoningContext) -> SubQueryResult:
            return await self._run_subquery(query, subquery, child)

        sub_results = await self._executor.execute(plan.subqueries, context, run_subquery)
        execution_ms = _elapsed_ms(execution_start)
        self._emit(
            "subqueries_completed",
            f"Completed {len(sub_results)} sub-queries",
            context,
            completed=len(sub_results),
        )

        synthesis_start = time.perf_counter()
        self._emit("synthesizing_context", "Synthesizing context", context)
        merged = sorted(
            (m for result in sub_results for m in result.matches),
            key=lambda m: m.score,
            reverse=True,
        )
        if self._config.optimize_merged and merged:
            merged = self._optimizer.optimize(merged, self._merged_optimizer_config(query))

        synthesis_outcome = await self._synthesizer.synthesize(query.text, merged)
        synthesis = synthesis_outcome.value
        fallbacks: dict[str, str] = {}
        if synthesis_outcome.is_fallback:
            fallbacks["synthesis"] = synthesis_outcome.reason

        context_text = synthesis.context
        if self._config.compress_context and self._compressor is not None and context_text:
            context_text = await self._compress(query.text, context_text, fallbacks)

        synthesis_ms = _elapsed_ms(synthesis_start)
        self._emit(
            "context_synthesis_completed",
            f"Synthesized {synthesis.deduplicated_count} chunks",
            context,
            chunks=synthesis.deduplicated_count,
        )

        timing = ReasoningTiming(
            planning_ms=planning_ms,
            execution_ms=execution_ms,
            synthesis_ms=synthesis_ms,
            total_ms=_elapsed_ms(started),
        )
        tokens_saved = synthesis.original_count - synthesis.deduplicated_count
        metadata = ReasoningMetadata(
            complexity_score=complexity.score,
            plan=plan,
            depth=context.depth,
            subqueries_count=len(plan.subqueries),
            parallel_executed=len(sub_results),
            timing=timing,
            tokens_saved=tokens_saved if tokens_saved > 0 else None,
            fallbacks=fallbacks,
        )

        if self._config.save_history and self._history is not None:
            await self._save_history(query, metadata, synthesis.matches, fallbacks)

        logger.info(
            f"Reasoning for '{query.text[:60]}': {len(sub_results)}/{len(plan.subqueries)} "
            f"sub-queries, {synthesis.deduplicated_count} chunks in {timing.total_ms:.0f}ms"
        )
        return RankedResult(
            query=query.text,
            matches=synthesis.matches,
            context=context_text,
            diagnostics={
                "subqueries": [
                    {
                        "text": r.subquery.text,
                        "matches": len(r.matches),
                        "mean_score": r.mean_score,
                    }
                    for r in sub_results
                ],
            },
            reasoning=metadata,
        )

    async def _direct(
        self,
        query: SearchQuery,
        context: ReasoningContext,
        plan: QueryPlan,
        started: float,
        planning_ms: float = 0.0,
        fallbacks: dict[str, str] | None = None,
    ) -> RankedResult:
        result = await self._run_query(query)
        context.record_tokens(sum(estimate_tokens(m.chunk.text) for m in result.matches))
        result.reasoning = ReasoningMetadata(
            complexity_score=plan.complexity_score,
            plan=plan,
            depth=context.depth,
            subqueries_count=1,
            parallel_executed=1,
            timing=ReasoningTiming(planning_ms=planning_ms, total_ms=_elapsed_ms(started)),
            fallbacks=dict(fallbacks or {}),
        )
        return result

    async def _run_subquery(
        self, parent: SearchQuery, subquery: SubQuery, context: ReasoningContext
    ) -> SubQueryResult:
        sub_search = parent.for_subquery(subquery.text)
        if self._config.recursive_subqueries:
            result = await self.execute(sub_search, context)
        else:
            result = await self._run_query(sub_search)
            context.record_tokens(sum(estimate_tokens(m.chunk.text) for m in result.matches))
        return SubQueryResult(subquery=subquery, matches=result.matches, context=result.context)

    def _check_cycles(self, subqueries: list[SubQuery], context: ReasoningContext) -> None:
        threshold = self._config.cycle_threshold
        path_words = [word_set(p) for p in context.budget.query_path]
        for subquery in subqueries:
            words = word_set(subquery.text)
            for previous, previous_words in zip(context.budget.query_path, path_words):
                if not words or not previous_words:
                    continue
                if jaccard_similarity(words, previous_words) > threshold:
                    raise CyclicReasoningError(
                        f"Cyclic reasoning detected: '{subquery.text}' repeats '{previous}'"
                    )

    def _merged_optimizer_config(self, query: SearchQuery) -> ContextOptimizerConfig:
        limit = query.limit or self._optimizer.config.max_chunks
        return self._optimizer.config.model_copy(
            update={
                "max_chunks": limit * 2,
                "dedup_threshold": 0.9,
                "diversity_threshold": 0.3,
                "max_chunks_per_file": self._config.merged_max_chunks_per_file,
                "adaptive_selection": False,
            }
        )

    async def _compress(self, query_text: str, text: str, fallbacks: dict[str, str]) -> str:
        assert self._compressor is not None
        chunk = Chunk(
            chunk_id=SYNTHESIS_CHUNK_ID,
            path=SYNTHESIS_CHUNK_PATH,
            text=text,
            end_line=text.count("\n") + 1,
        )
        try:
            compressed = await self._compressor.compress(chunk, query_text)
        except Exception as e:
            logger.warning(f"Context compression failed, keeping uncompressed text: {e}")
            fallbacks["compression"] = "compressor_error"
            return text
        return compressed or text

    async def _save_history(
        self,
        query: SearchQuery,
        metadata: ReasoningMetadata,
        matches: list[Match],
        fallbacks: dict[str, str],
    ) -> None:
        assert self._history is not None
        record = ReasoningPlanRecord(
            query_id=uuid.uuid4().hex[:16],
            query_hash=query_hash(query.text),
            query_text=query.text,
            scope_id=query.scope_id,
            plan={
                **metadata.plan.to_dict(),
                "subqueries_count": metadata.subqueries_count,
                "parallel_executed": metadata.parallel_executed,
            },
            timing=metadata.timing.to_dict(),
            result_chunk_ids=[m.chunk_id for m in matches],
            query_vector=query.embedding,
            created_at=time.time(),
        )
        try:
            await self._history.save_reasoning_plan(record)
        except Exception as e:
            logger.warning(f"Failed to save reasoning plan to query history: {e}")
            fallbacks["history"] = "history_error"
