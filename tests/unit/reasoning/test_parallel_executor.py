"""Tests for bounded-concurrency sub-query execution."""

import asyncio

import pytest

from mindrank.core.config.reasoning_config import ExecutorConfig
from mindrank.core.exceptions import (
    CyclicReasoningError,
    MaxDepthExceededError,
    MaxQueriesExceededError,
)
from mindrank.core.models import Match
from mindrank.services.reasoning.models import ReasoningContext, SubQuery, SubQueryResult
from mindrank.services.reasoning.parallel_executor import ParallelExecutor
from tests.helpers.fake_corpus import make_chunk


def make_context(max_total_queries=20, max_depth=3):
    return ReasoningContext.start(
        "original", max_depth=max_depth, max_total_queries=max_total_queries,
        max_tokens_per_depth=10000,
    )


def result_for(subquery, count=1, score=0.5):
    matches = [
        Match(chunk=make_chunk(f"{subquery.text}-{i}", f"text {i}"), score=score)
        for i in range(count)
    ]
    return SubQueryResult(subquery=subquery, matches=matches)


def subqueries(*texts, group_id=0):
    return [SubQuery(text=t, group_id=group_id) for t in texts]


class TestShouldStopEarly:
    def test_needs_count_and_confidence(self):
        executor = ParallelExecutor(ExecutorConfig(min_chunks_found=2, min_confidence=0.8))
        sq = SubQuery(text="a")

        assert executor.should_stop_early(result_for(sq, count=2, score=0.9))
        assert not executor.should_stop_early(result_for(sq, count=1, score=0.9))
        assert not executor.should_stop_early(result_for(sq, count=2, score=0.5))

    def test_disabled(self):
        executor = ParallelExecutor(ExecutorConfig(early_stopping=False))

        assert not executor.should_stop_early(result_for(SubQuery(text="a"), 10, 1.0))


class TestLimits:
    @pytest.mark.asyncio
    async def test_max_depth(self):
        context = make_context(max_depth=1).descend()

        async def runner(sq, ctx):
            return result_for(sq)

        with pytest.raises(MaxDepthExceededError) as exc_info:
            await ParallelExecutor().execute(subqueries("a"), context, runner)
        assert exc_info.value.reason == "max_depth_exceeded"

    @pytest.mark.asyncio
    async def test_budget_already_spent(self):
        context = make_context(max_total_queries=1)
        context.budget.total_queries = 1

        async def runner(sq, ctx):
            return result_for(sq)

        with pytest.raises(MaxQueriesExceededError):
            await ParallelExecutor().execute(subqueries("a"), context, runner)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [True, False])
    async def test_budget_caps_issued_queries(self, parallel):
        context = make_context(max_total_queries=3)
        calls = []

        async def runner(sq, ctx):
            calls.append(sq.text)
            return result_for(sq)

        executor = ParallelExecutor(
            ExecutorConfig(parallel=parallel, max_concurrency=3, early_stopping=False)
        )
        results = await executor.execute(subqueries("a", "b", "c", "d", "e"), context, runner)

        assert len(calls) == 3
        assert len(results) == 3
        assert context.budget.total_queries == 3

    @pytest.mark.asyncio
    async def test_runner_gets_child_context(self):
        context = make_context()
        depths = []

        async def runner(sq, ctx):
            depths.append(ctx.depth)
            return result_for(sq)

        await ParallelExecutor().execute(subqueries("a", "b"), context, runner)

        assert depths == [1, 1]
        assert context.depth == 0


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_in_flight_never_exceeds_max_concurrency(self):
        in_flight = 0
        peak = 0

        async def runner(sq, ctx):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return result_for(sq)

        executor = ParallelExecutor(ExecutorConfig(max_concurrency=2, early_stopping=False))
        results = await executor.execute(
            subqueries(*"abcdefg"), make_context(), runner
        )

        assert len(results) == 7
        assert peak == 2

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_wide_plan_stays_bounded(self):
        in_flight = 0
        peak = 0

        async def runner(sq, ctx):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1
            return result_for(sq, count=3)

        plan = [SubQuery(text=f"component {i}", group_id=i // 50) for i in range(200)]
        executor = ParallelExecutor(ExecutorConfig(max_concurrency=4, early_stopping=False))
        results = await executor.execute(plan, make_context(max_total_queries=500), runner)

        assert len(results) == 200
        assert peak == 4
        assert sorted(r.subquery.text for r in results) == sorted(sq.text for sq in plan)

    @pytest.mark.asyncio
    async def test_groups_run_in_order(self):
        order = []

        async def runner(sq, ctx):
            order.append(sq.group_id)
            return result_for(sq)

        plan = subqueries("a", "b", group_id=0) + subqueries("c", group_id=1)
        executor = ParallelExecutor(ExecutorConfig(early_stopping=False))
        await executor.execute(plan, make_context(), runner)

        assert order == [0, 0, 1]


class TestEarlyStopping:
    @pytest.mark.asyncio
    async def test_sequential_stops_after_good_result(self):
        calls = []

        async def runner(sq, ctx):
            calls.append(sq.text)
            return result_for(sq, count=5, score=0.9)

        executor = ParallelExecutor(ExecutorConfig(parallel=False))
        results = await executor.execute(subqueries("a", "b", "c"), make_context(), runner)

        assert calls == ["a"]
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_parallel_skips_later_groups(self):
        calls = []

        async def runner(sq, ctx):
            calls.append(sq.text)
            return result_for(sq, count=5, score=0.9)

        plan = subqueries("a", group_id=0) + subqueries("b", "c", group_id=1)
        results = await ParallelExecutor().execute(plan, make_context(), runner)

        assert calls == ["a"]
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_parallel_cancels_in_flight(self):
        cancelled = []

        async def runner(sq, ctx):
            if sq.text == "slow":
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    cancelled.append(sq.text)
                    raise
            return result_for(sq, count=5, score=0.9)

        results = await ParallelExecutor().execute(
            subqueries("fast", "slow"), make_context(), runner
        )

        assert [r.subquery.text for r in results] == ["fast"]
        assert cancelled == ["slow"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_timeout_is_dropped(self):
        async def runner(sq, ctx):
            if sq.text == "slow":
                await asyncio.sleep(1)
            return result_for(sq)

        executor = ParallelExecutor(
            ExecutorConfig(query_timeout_seconds=0.05, early_stopping=False)
        )
        results = await executor.execute(subqueries("fast", "slow"), make_context(), runner)

        assert [r.subquery.text for r in results] == ["fast"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [True, False])
    async def test_runner_error_is_dropped(self, parallel, log_messages):
        async def runner(sq, ctx):
            if sq.text == "bad":
                raise ValueError("corpus unavailable")
            return result_for(sq)

        executor = ParallelExecutor(ExecutorConfig(parallel=parallel, early_stopping=False))
        results = await executor.execute(subqueries("bad", "good"), make_context(), runner)

        assert [r.subquery.text for r in results] == ["good"]
        assert any("corpus unavailable" in m for m in log_messages)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [True, False])
    async def test_reasoning_limit_propagates(self, parallel):
        async def runner(sq, ctx):
            raise CyclicReasoningError("loop")

        executor = ParallelExecutor(ExecutorConfig(parallel=parallel))
        with pytest.raises(CyclicReasoningError):
            await executor.execute(subqueries("a", "b"), make_context(), runner)
