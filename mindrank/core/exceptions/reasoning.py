"""Reasoning limit exceptions.

These abort the current reasoning branch. They carry a machine-readable
``reason`` and recoverable ``hints`` so the retrieval service can surface
them as a structured failure instead of a raw error message.
"""


class MindrankError(Exception):
    """Base exception for MindRank."""

    pass


class ReasoningLimitError(MindrankError):
    """Raised when a reasoning budget or safety limit is hit."""

    reason: str = "reasoning_limit"
    hints: tuple[str, ...] = ("narrow_query_scope", "retry_in_instant_mode")


class MaxDepthExceededError(ReasoningLimitError):
    """Raised when recursion reaches the configured maximum depth.

    This occurs when:
    - A sub-query executor is entered at depth >= max_depth
    """

    reason = "max_depth_exceeded"


class MaxQueriesExceededError(ReasoningLimitError):
    """Raised when the run has already issued max_total_queries sub-queries."""

    reason = "max_queries_exceeded"


class CyclicReasoningError(ReasoningLimitError):
    """Raised when a planned sub-query repeats a query already on the path."""

    reason = "cyclic_reasoning"
    hints = ("rephrase_query", "retry_in_instant_mode")
