"""Exception hierarchy for MindRank."""

from mindrank.core.exceptions.llm import LLMProviderError
from mindrank.core.exceptions.reasoning import (
    CyclicReasoningError,
    MaxDepthExceededError,
    MaxQueriesExceededError,
    MindrankError,
    ReasoningLimitError,
)

__all__ = [
    "CyclicReasoningError",
    "LLMProviderError",
    "MaxDepthExceededError",
    "MaxQueriesExceededError",
    "MindrankError",
    "ReasoningLimitError",
]
