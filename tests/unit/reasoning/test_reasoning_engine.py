"""Tests for the reasoning orchestrator."""

import pytest

from mindrank.core.config.reasoning_config import (
    ComplexityConfig,
    ExecutorConfig,
    ReasoningConfig,
)
from mindrank.core.exceptions import CyclicReasoningError
from mindrank.core.models import Match, RankedResult, SearchQuery
from mindrank.services.query_history import InMemoryQueryHistory
from mindrank.services.reasoning.progress import ProgressChannel
from mindrank.services.reasoning.reasoning_engine import ReasoningEngine, query_hash
from tests.helpers.fake_corpus import make_chunk
from tests.helpers.fake_llm_providers import ScriptedLLMProvider

COMPLEX_QUERY = (
    "How does the hybrid search architecture work and why does the reranker "
    "compare vector and keyword scores in the design?"
)
PLAN = '["hybrid search fusion weights", "reranker score normalization"]'
FILLERS = ("alpha beta gamma", "delta epsilon zeta")


class RecordingRunner:
    """Single-pass retrieval stub returning two matches per query."""

    def __init__(self):
        self.queries: list[SearchQuery] = []

    async def __call__(self, query: SearchQuery) -> RankedResult:
        self.queries.append(query)
        slug = query.text.replace(" ", "_")
        matches = [
            Match(
                chunk=make_chunk(f"{slug}-{i}", f"{slug} {filler}", path=f"src/{slug}_{i}.py"),
                score=0.6 - i * 0.1,
            )
            for i, filler in enumerate(FILLERS)
        ]
        return RankedResult(query=query.text, matches=matches, context="ctx")

    @property
    def texts(self) -> list[str]:
        return [q.text for q in self.queries]


class StubCompressor:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    async def compress(self, chunk, query_text):
        self.calls.append((chunk, query_text))
        if self.error:
            raise self.error
        return "compressed context"


class FailingHistory:
    async def save_reasoning_plan(self, record):
        raise OSError("disk full")

    async def find_by_similar_query(self, vector, scope_id, limit=5):
        return []


def make_config(**overrides) -> ReasoningConfig:
    values = {
        "enabled": True,
        "complexity": ComplexityConfig(threshold=0.5),
        "executor": ExecutorConfig(early_stopping=False),
    }
    values.update(overrides)
    return ReasoningConfig(**values)


def stages(channel: ProgressChannel) -> list[str]:
    return [event.stage for event in channel.drain()]


class TestDirectExecution:
    @pytest.mark.asyncio
    async def test_simple_query_runs_once(self):
        runner = RecordingRunner()
        progress = ProgressChannel()
        engine = ReasoningEngine(runner, make_config(), progress=progress)

        result = await engine.execute(SearchQuery(text="VectorStore"))

        assert runner.texts == ["VectorStore"]
        assert stages(progress) == ["analyzing_query_complexity", "query_is_simple"]
        assert result.reasoning.subqueries_count == 1
        assert result.reasoning.parallel_executed == 1
        assert result.reasoning.plan.subqueries[0].text == "VectorStore"

    @pytest.mark.asyncio
    async def test_branch_at_max_depth_skips_analysis(self):
        runner = RecordingRunner()
        llm = ScriptedLLMProvider(default_response=PLAN)
        progress = ProgressChannel()
        engine = ReasoningEngine(runner, make_config(max_depth=2), llm=llm, progress=progress)
        context = engine.new_context(COMPLEX_QUERY)
        context.depth = 2

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY), context)

        assert runner.texts == [COMPLEX_QUERY]
        assert llm.calls == []
        assert stages(progress) == []
        assert result.reasoning.depth == 2
        assert result.reasoning.subqueries_count == 1

    @pytest.mark.asyncio
    async def test_planner_fallback_runs_query_directly(self):
        runner = RecordingRunner()
        engine = ReasoningEngine(runner, make_config())

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert runner.texts == [COMPLEX_QUERY]
        assert result.reasoning.fallbacks == {"planner": "llm_unavailable"}
        assert result.reasoning.complexity_score >= 0.5


class TestDecomposition:
    @pytest.mark.asyncio
    async def test_complex_query_is_decomposed(self):
        runner = RecordingRunner()
        llm = ScriptedLLMProvider(responses=[PLAN])
        progress = ProgressChannel()
        engine = ReasoningEngine(runner, make_config(), llm=llm, progress=progress)

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY, scope_id="repo"))

        assert sorted(runner.texts) == [
            "hybrid search fusion weights",
            "reranker score normalization",
        ]
        assert all(q.scope_id == "repo" for q in runner.queries)
        assert stages(progress) == [
            "analyzing_query_complexity",
            "planning_query",
            "query_plan_generated",
            "executing_subqueries",
            "subqueries_completed",
            "synthesizing_context",
            "context_synthesis_completed",
        ]
        assert len(result.matches) == 4
        assert [m.score for m in result.matches] == sorted(
            (m.score for m in result.matches), reverse=True
        )
        assert "Path: src/" in result.context
        assert result.reasoning.subqueries_count == 2
        assert result.reasoning.parallel_executed == 2
        assert result.reasoning.depth == 0
        assert len(result.diagnostics["subqueries"]) == 2

    @pytest.mark.asyncio
    async def test_cycle_is_detected(self):
        runner = RecordingRunner()
        llm = ScriptedLLMProvider(responses=[f'["{COMPLEX_QUERY}", "reranker internals"]'])
        engine = ReasoningEngine(runner, make_config(), llm=llm)

        with pytest.raises(CyclicReasoningError) as exc_info:
            await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert exc_info.value.reason == "cyclic_reasoning"
        assert runner.texts == []

    @pytest.mark.asyncio
    async def test_cycle_detection_can_be_disabled(self):
        runner = RecordingRunner()
        llm = ScriptedLLMProvider(responses=[f'["{COMPLEX_QUERY}", "reranker internals"]'])
        engine = ReasoningEngine(runner, make_config(cycle_detection=False), llm=llm)

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert len(runner.texts) == 2
        assert result.ok

    @pytest.mark.asyncio
    async def test_recursive_subqueries_run_one_level_deeper(self):
        runner = RecordingRunner()
        llm = ScriptedLLMProvider(default_response=PLAN)
        progress = ProgressChannel()
        engine = ReasoningEngine(
            runner, make_config(recursive_subqueries=True), llm=llm, progress=progress
        )

        await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        events = progress.drain()
        simple_depths = [e.depth for e in events if e.stage == "query_is_simple"]
        assert simple_depths == [1, 1]
        assert len(runner.texts) == 2


class TestOptionalDependencies:
    @pytest.mark.asyncio
    async def test_compressor_output_becomes_context(self):
        compressor = StubCompressor()
        engine = ReasoningEngine(
            RecordingRunner(),
            make_config(),
            llm=ScriptedLLMProvider(responses=[PLAN]),
            compressor=compressor,
        )

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert result.context == "compressed context"
        chunk, query_text = compressor.calls[0]
        assert chunk.chunk_id == "reasoning-synthesis"
        assert query_text == COMPLEX_QUERY

    @pytest.mark.asyncio
    async def test_compressor_failure_keeps_text(self):
        engine = ReasoningEngine(
            RecordingRunner(),
            make_config(),
            llm=ScriptedLLMProvider(responses=[PLAN]),
            compressor=StubCompressor(error=RuntimeError("llm down")),
        )

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert result.context.startswith("Path: ")
        assert result.reasoning.fallbacks["compression"] == "compressor_error"

    @pytest.mark.asyncio
    async def test_history_saved(self):
        history = InMemoryQueryHistory()
        engine = ReasoningEngine(
            RecordingRunner(),
            make_config(),
            llm=ScriptedLLMProvider(responses=[PLAN]),
            history=history,
        )

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY, scope_id="repo"))

        records = await history.find_by_query(query_hash(COMPLEX_QUERY), "repo")
        assert len(records) == 1
        record = records[0]
        assert record.plan["subqueries_count"] == 2
        assert record.result_chunk_ids == [m.chunk_id for m in result.matches]
        assert set(record.timing) == {"planning_ms", "execution_ms", "synthesis_ms", "total_ms"}

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_query(self, log_messages):
        engine = ReasoningEngine(
            RecordingRunner(),
            make_config(),
            llm=ScriptedLLMProvider(responses=[PLAN]),
            history=FailingHistory(),
        )

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert result.ok
        assert result.reasoning.fallbacks["history"] == "history_error"
        assert any("disk full" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_llm_synthesis_failure_falls_back(self):
        llm = ScriptedLLMProvider(responses=[PLAN, RuntimeError("synthesis down")])
        engine = ReasoningEngine(
            RecordingRunner(), make_config(llm_synthesis=True), llm=llm
        )

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert result.reasoning.fallbacks == {"synthesis": "llm_error"}
        assert result.context.startswith("Path: ")


def test_query_hash_normalizes_case_and_whitespace():
    assert query_hash("  Hello World ") == query_hash("hello world")


class TestMergedPool:
    @pytest.mark.asyncio
    async def test_higher_scored_copy_of_shared_chunk_survives(self):
        scores = {"indexing pipeline stages": 0.3, "search cache invalidation": 0.9}

        async def runner(query: SearchQuery) -> RankedResult:
            shared = make_chunk("shared", "cache entries are dropped on reindex", path="src/cache.py")
            return RankedResult(
                query=query.text, matches=[Match(chunk=shared, score=scores[query.text])]
            )

        llm = ScriptedLLMProvider(
            responses=['["indexing pipeline stages", "search cache invalidation"]']
        )
        config = make_config(executor=ExecutorConfig(parallel=False, early_stopping=False))
        engine = ReasoningEngine(runner, config, llm=llm)

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert [m.score for m in result.matches] == [0.9]

    @pytest.mark.asyncio
    async def test_file_seeded_with_its_best_chunk(self):
        async def runner(query: SearchQuery) -> RankedResult:
            if query.text == "indexing pipeline stages":
                matches = [
                    Match(make_chunk("weak", "cache warmup loop", path="src/cache.py"), 0.5)
                ]
            else:
                matches = [
                    Match(
                        make_chunk("strong", "cache warmup loop helper", path="src/cache.py",
                                   start_line=20, end_line=30),
                        0.55,
                    )
                ]
            return RankedResult(query=query.text, matches=matches)

        llm = ScriptedLLMProvider(
            responses=['["indexing pipeline stages", "search cache invalidation"]']
        )
        config = make_config(executor=ExecutorConfig(parallel=False, early_stopping=False))
        engine = ReasoningEngine(runner, config, llm=llm)

        result = await engine.execute(SearchQuery(text=COMPLEX_QUERY))

        assert [m.chunk_id for m in result.matches] == ["strong"]
