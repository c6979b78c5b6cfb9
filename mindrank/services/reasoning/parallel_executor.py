"""Sub-query execution with bounded concurrency and early stopping."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from mindrank.core.config.reasoning_config import ExecutorConfig
from mindrank.core.exceptions import (
    MaxDepthExceededError,
    MaxQueriesExceededError,
    ReasoningLimitError,
)
from mindrank.services.reasoning.models import ReasoningContext, SubQuery, SubQueryResult

SubQueryRunner = Callable[[SubQuery, ReasoningContext], Awaitable[SubQueryResult]]


class ParallelExecutor:
    """Runs planned sub-queries under the run's query and depth limits.

    Sequential mode runs sub-queries in plan order. Parallel mode runs one
    group at a time (sub-queries sharing a ``group_id``, split into batches
    of ``max_concurrency``) and returns as soon as any result is good enough.

    Each sub-query is bounded by ``query_timeout_seconds``. A sub-query that
    times out or fails contributes nothing; reasoning limit errors raised
    from deeper levels propagate.
    """

    def __init__(self, config: ExecutorConfig | None = None):
        self._config = config or ExecutorConfig()

    def should_stop_early(self, result: SubQueryResult) -> bool:
        if not self._config.early_stopping:
            return False
        return (
            len(result.matches) >= self._config.min_chunks_found
            and result.mean_score >= self._config.min_confidence
        )

    async def execute(
        self,
        subqueries: Sequence[SubQuery],
        context: ReasoningContext,
        runner: SubQueryRunner,
    ) -> list[SubQueryResult]:
        """Execute sub-queries one level below ``context``.

        Args:
            subqueries: Planned sub-queries
            context: Context of the branch that planned them
            runner: Coroutine running one sub-query at the given context

        Returns:
            Results of the sub-queries that completed

        Raises:
            MaxQueriesExceededError: The run already issued max_total_queries
            MaxDepthExceededError: The branch is already at max_depth
        """
        if context.queries_exhausted:
            raise MaxQueriesExceededError(
                f"Maximum total queries ({context.budget.max_total_queries}) exceeded"
            )
        if context.at_max_depth:
            raise MaxDepthExceededError(f"Maximum depth ({context.max_depth}) exceeded")

        child = context.descend()
        if not self._config.parallel or len(subqueries) <= 1:
            return await self._execute_sequential(subqueries, child, runner)
        return await self._execute_parallel(subqueries, child, runner)

    def _admit(self, context: ReasoningContext) -> bool:
        if context.queries_exhausted:
            logger.warning(
                f"Query budget of {context.budget.max_total_queries} reached, "
                "skipping remaining sub-queries"
            )
            return False
        context.budget.total_queries += 1
        return True

    async def _run_one(
        self, subquery: SubQuery, context: ReasoningContext, runner: SubQueryRunner
    ) -> SubQueryResult | None:
        try:
            return await asyncio.wait_for(
                runner(subquery, context), timeout=self._config.query_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Sub-query timed out after {self._config.query_timeout_seconds}s: "
                f"{subquery.text[:60]}"
            )
        except ReasoningLimitError:
            raise
        except Exception as e:
            logger.warning(f"Sub-query failed: {subquery.text[:60]}: {e}")
        return None

    async def _execute_sequential(
        self,
        subqueries: Sequence[SubQuery],
        context: ReasoningContext,
        runner: SubQueryRunner,
    ) -> list[SubQueryResult]:
        results: list[SubQueryResult] = []
        for subquery in subqueries:
            if not self._admit(context):
                break
            result = await self._run_one(subquery, context, runner)
            if result is None:
                continue
            results.append(result)
            if self.should_stop_early(result):
                logger.debug(f"Early stop after {len(results)} sub-queries")
                break
        return results

    def _batches(self, subqueries: Sequence[SubQuery]) -> list[list[SubQuery]]:
        groups: dict[int, list[SubQuery]] = {}
        for subquery in subqueries:
            groups.setdefault(subquery.group_id, []).append(subquery)

        size = self._config.max_concurrency
        batches: list[list[SubQuery]] = []
        for members in groups.values():
            for start in range(0, len(members), size):
                batches.append(members[start : start + size])
        return batches

    async def _execute_parallel(
        self,
        subqueries: Sequence[SubQuery],
        context: ReasoningContext,
        runner: SubQueryRunner,
    ) -> list[SubQueryResult]:
        results: list[SubQueryResult] = []

        for batch in self._batches(subqueries):
            admitted: list[SubQuery] = []
            for subquery in batch:
                if not self._admit(context):
                    break
                admitted.append(subquery)
            if not admitted:
                break

            pending = {
                asyncio.create_task(self._run_one(sq, context, runner)) for sq in admitted
            }
            try:
                while pending:
                    done, pending = await asyncio.wait(
                        pending, return_when=asyncio.FIRST_COMPLETED
                    )
                    for task in done:
                        result = task.result()
                        if result is None:
                            continue
                        results.append(result)
                        if self.should_stop_early(result):
                            logger.debug(
                                f"Early stop with {len(results)} results, "
                                f"cancelling {len(pending)} in flight"
                            )
                            return results
            finally:
                await self._cancel(pending)

            if len(admitted) < len(batch):
                break

        return results

    @staticmethod
    async def _cancel(tasks: set[asyncio.Task]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
