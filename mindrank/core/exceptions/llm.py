"""LLM provider exceptions."""

from mindrank.core.exceptions.reasoning import MindrankError


class LLMProviderError(MindrankError):
    """Raised when an LLM provider call fails.

    This occurs when:
    - The API returns an error or empty content
    - The response is truncated or blocked by a content filter
    - A tool call was requested but none was returned
    """

    pass
