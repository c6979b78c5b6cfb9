"""LLMProvider interface for MindRank.

Two operations are used by the retrieval core:
- ``complete``: free-form text completion (planner, complexity, synthesis,
  compression)
- ``chat_with_tools``: a single structured tool call (classifier escalation)

Every caller treats a failure here as degradation, never as a query error.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from mindrank.core.utils import token_utils


@dataclass
class LLMResponse:
    """Response from an LLM completion."""

    content: str
    tokens_used: int
    model: str
    finish_reason: str | None = None


@dataclass
class ToolDefinition:
    """Function tool exposed to the model."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class ToolCall:
    """Tool call returned by the model, with parsed JSON arguments."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Model name."""
        ...

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_completion_tokens: int = 4096,
        timeout: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate a completion for the given prompt.

        Args:
            prompt: The user prompt
            system: Optional system prompt
            max_completion_tokens: Maximum tokens to generate
            timeout: Optional timeout in seconds (overrides default)
            temperature: Optional sampling temperature
        """
        ...

    @abstractmethod
    async def chat_with_tools(
        self,
        messages: list[dict[str, str]],
        tools: list[ToolDefinition],
        tool_choice: str | None = None,
        temperature: float = 0.0,
        max_completion_tokens: int = 200,
    ) -> ToolCall | None:
        """Run a chat turn that may answer with a tool call.

        Args:
            messages: Chat messages ({"role", "content"})
            tools: Tools the model may call
            tool_choice: Name of a tool the model must call, if any
            temperature: Sampling temperature
            max_completion_tokens: Maximum tokens to generate

        Returns:
            The first tool call, or None if the model answered in text
        """
        ...

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count for text (rough approximation)."""
        return token_utils.estimate_tokens(text)
