"""Retrieval service - the ``search(query, corpus)`` entry point.

Single pass (every query, and every sub-query when reasoning is on)::

    embed -> adaptive hybrid search -> freshness -> conflicts
          -> context optimizer -> reliability -> RankedResult

With reasoning enabled and a mode other than ``instant``, the query goes
through the reasoning engine, which calls the single pass for each
sub-query it issues.

Reasoning limit errors and an expired deadline come back as
``RankedResult.failure`` with a machine-readable reason and hints. A
fail-closed reliability verdict is not a failure; it is reported in
``diagnostics["reliability"]`` next to the matches.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import asdict
from typing import Any

from loguru import logger

from mindrank.core.config.settings import MindrankSettings
from mindrank.core.exceptions import ReasoningLimitError
from mindrank.core.models import (
    RankedResult,
    RetrievalFailure,
    RetrievalMode,
    SearchQuery,
    StalenessLevel,
)
from mindrank.core.outcome import Fallback, Ok, Outcome
from mindrank.interfaces.classification_cache import ClassificationCache
from mindrank.interfaces.compressor import ContextCompressor
from mindrank.interfaces.corpus_access import CorpusAccess, EmbeddingCorpusAccess
from mindrank.interfaces.llm_provider import LLMProvider
from mindrank.interfaces.query_history import QueryHistory
from mindrank.services.context_optimizer import ContextOptimizer
from mindrank.services.reasoning.progress import ProgressChannel
from mindrank.services.reasoning.reasoning_engine import ReasoningEngine
from mindrank.services.reasoning.synthesizer import format_context
from mindrank.services.search.adaptive_search import AdaptiveHybridSearch
from mindrank.services.search.classifier_cache import InMemoryClassificationCache
from mindrank.services.search.conflicts import apply_conflict_resolution
from mindrank.services.search.freshness import (
    apply_freshness_ranking,
    resolve_retrieval_mode,
    staleness_level,
)
from mindrank.services.search.query_classifier import QueryClassifier
from mindrank.services.search.reliability import (
    build_confidence_adjustments,
    evaluate_reliability,
)

DEADLINE_HINTS = ("retry_in_instant_mode", "narrow_query_scope")

# Candidates fetched per requested result, leaving the optimizer room to
# drop duplicates and over-represented files.
CANDIDATE_MULTIPLIER = 2


class RetrievalService:
    """Query-aware retrieval over a caller-supplied corpus."""

    def __init__(
        self,
        settings: MindrankSettings | None = None,
        llm: LLMProvider | None = None,
        history: QueryHistory | None = None,
        compressor: ContextCompressor | None = None,
        classifier_cache: ClassificationCache | None = None,
        progress: ProgressChannel | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the retrieval service.

        Args:
            settings: Pipeline settings (defaults read MINDRANK_* env vars)
            llm: Optional LLM for classification, planning and synthesis
            history: Optional store for reasoning plans
            compressor: Optional compressor for reasoning context
            classifier_cache: Cache for LLM classifications
            progress: Optional channel receiving reasoning progress events
            clock: Current time in epoch seconds (freshness and staleness)
        """
        self._settings = settings or MindrankSettings()
        self._llm = llm
        self._history = history
        self._compressor = compressor
        self._progress = progress
        self._clock = clock

        cache = classifier_cache if classifier_cache is not None else InMemoryClassificationCache()
        self._classifier = QueryClassifier(llm, self._settings.classifier, cache)
        self._adaptive = AdaptiveHybridSearch(
            self._classifier,
            self._settings.adaptive,
            self._settings.hybrid,
            self._settings.keyword,
        )
        self._optimizer = ContextOptimizer(self._settings.optimizer)

    @property
    def settings(self) -> MindrankSettings:
        return self._settings

    async def search(self, query: SearchQuery, corpus: CorpusAccess) -> RankedResult:
        """Search the corpus.

        Args:
            query: Query with text, mode, limit and caller metadata
            corpus: Read-only corpus access

        Returns:
            Ranked result. ``failure`` is set when the query was aborted.
        """
        if query.deadline_seconds is None:
            return await self._search_guarded(query, corpus)

        try:
            return await asyncio.wait_for(
                self._search_guarded(query, corpus), timeout=query.deadline_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Search deadline of {query.deadline_seconds}s exceeded: {query.text[:60]}"
            )
            return RankedResult(
                query=query.text,
                failure=RetrievalFailure(
                    reason="deadline_exceeded",
                    message=f"Search did not finish within {query.deadline_seconds}s",
                    hints=DEADLINE_HINTS,
                ),
            )

    async def _search_guarded(self, query: SearchQuery, corpus: CorpusAccess) -> RankedResult:
        try:
            return await self._search(query, corpus)
        except ReasoningLimitError as e:
            logger.warning(f"Reasoning aborted ({e.reason}): {e}")
            return RankedResult(
                query=query.text,
                failure=RetrievalFailure(reason=e.reason, message=str(e), hints=tuple(e.hints)),
            )

    async def _search(self, query: SearchQuery, corpus: CorpusAccess) -> RankedResult:
        mode = resolve_retrieval_mode(query.mode)

        if not self._settings.reasoning.enabled or mode == "instant":
            return await self.search_once(query, corpus)

        async def run_query(sub_query: SearchQuery) -> RankedResult:
            return await self.search_once(sub_query, corpus)

        engine = ReasoningEngine(
            run_query,
            config=self._settings.reasoning,
            optimizer=self._optimizer,
            llm=self._llm,
            history=self._history,
            compressor=self._compressor,
            progress=self._progress,
        )
        result = await engine.execute(query)
        if "reliability" not in result.diagnostics:
            self._attach_reliability(result, query, mode)
        return result

    async def search_once(self, query: SearchQuery, corpus: CorpusAccess) -> RankedResult:
        """Run the single-pass pipeline without reasoning."""
        mode = resolve_retrieval_mode(query.mode)
        limit = query.limit or self._settings.default_limit
        fallbacks: dict[str, str] = {}

        embedding_outcome = await self._resolve_embedding(query, corpus)
        if embedding_outcome.is_fallback:
            fallbacks["embedding"] = embedding_outcome.reason

        adaptive = await self._adaptive.search(
            corpus,
            query.scope_id,
            query.text,
            embedding_outcome.value,
            limit * CANDIDATE_MULTIPLIER,
            filters=query.filters,
        )
        if adaptive.classification_fallback:
            fallbacks["classifier"] = adaptive.classification_fallback

        matches, freshness = apply_freshness_ranking(
            adaptive.matches, self._settings.freshness, mode, now=self._clock()
        )
        matches, conflicts = apply_conflict_resolution(matches, self._settings.conflicts, mode)

        candidates = len(matches)
        token_budget = query.token_budget or self._settings.optimizer.token_budget
        optimizer_config = self._settings.optimizer.model_copy(
            update={
                "max_chunks": limit,
                "token_budget": token_budget,
                "adaptive_selection": self._settings.optimizer.adaptive_selection
                or query.token_budget is not None,
            }
        )
        matches = self._optimizer.optimize(matches, optimizer_config)

        result = RankedResult(
            query=query.text,
            matches=matches,
            context=format_context(matches),
            diagnostics={
                "mode": mode,
                "classification": asdict(adaptive.classification),
                "weights": asdict(adaptive.used_weights),
                "identifiers": adaptive.identifiers,
                "categories": adaptive.category_stats,
                "freshness": asdict(freshness),
                "conflicts": asdict(conflicts),
                "optimizer": {"candidates": candidates, "selected": len(matches)},
                "fallbacks": fallbacks,
            },
        )
        self._attach_reliability(
            result,
            query,
            mode,
            staleness=freshness.staleness_level,
            penalized_conflicts=conflicts.penalized_chunks,
        )

        logger.debug(
            f"Search '{query.text[:60]}' mode={mode}: {candidates} candidates -> "
            f"{len(matches)} matches, staleness={freshness.staleness_level}"
        )
        return result

    async def _resolve_embedding(
        self, query: SearchQuery, corpus: CorpusAccess
    ) -> Outcome[list[float] | None]:
        if query.embedding is not None:
            return Ok(list(query.embedding))

        if not isinstance(corpus, EmbeddingCorpusAccess):
            return Fallback(None, "no_query_embedding")

        try:
            return Ok(await corpus.embed(query.text))
        except Exception as e:
            logger.warning(f"Query embedding failed, using keyword search only: {e}")
            return Fallback(None, "embedding_error")

    def _attach_reliability(
        self,
        result: RankedResult,
        query: SearchQuery,
        mode: RetrievalMode,
        staleness: StalenessLevel | None = None,
        penalized_conflicts: int | None = None,
    ) -> None:
        if staleness is None:
            staleness = (
                staleness_level(result.matches, self._settings.freshness, self._clock())
                if self._settings.freshness.enabled and result.matches
                else "fresh"
            )
        if penalized_conflicts is None:
            penalized_conflicts = sum(
                1 for m in result.matches if m.chunk.metadata.conflict_winner is False
            )

        config = self._settings.reliability
        decision = evaluate_reliability(
            staleness,
            mode,
            [m.score for m in result.matches],
            config,
            query.metadata,
        )
        adjustments = build_confidence_adjustments(
            staleness, penalized_conflicts, config.confidence_floor, decision
        )

        diagnostics: dict[str, Any] = result.diagnostics
        diagnostics["staleness_level"] = staleness
        diagnostics["reliability"] = asdict(decision)
        diagnostics["confidence_adjustments"] = asdict(adjustments)

        if decision.fail_closed:
            logger.info(
                f"Failing closed for '{query.text[:60]}': corpus is {staleness}, "
                f"hints={decision.recoverable_hints}"
            )
