"""OpenAI-compatible LLM provider.

Talks to any endpoint that implements the Chat Completions API, including
function tools. Used for classifier escalation (tool call), query planning,
complexity scoring, synthesis and compression (text completion).
"""

import json
from typing import Any

from loguru import logger
from openai import AsyncOpenAI

from mindrank.core.config.llm_config import LLMConfig
from mindrank.core.exceptions import LLMProviderError
from mindrank.interfaces.llm_provider import (
    LLMProvider,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)


class OpenAICompatibleProvider(LLMProvider):
    """LLM provider for OpenAI-compatible chat APIs."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: int = 60,
        max_retries: int = 3,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize OpenAI-compatible provider.

        Args:
            api_key: API key (defaults to OPENAI_API_KEY)
            model: Model name
            base_url: Base URL (defaults to the official endpoint)
            timeout: Request timeout in seconds
            max_retries: Number of retry attempts for failed requests
            client: Pre-built client (tests inject a fake here)
        """
        self._model = model
        self._timeout = timeout
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

        # Usage tracking
        self._requests_made = 0
        self._tokens_used = 0

    @classmethod
    def from_config(cls, config: LLMConfig) -> "OpenAICompatibleProvider":
        api_key = config.api_key.get_secret_value() if config.api_key else None
        return cls(
            api_key=api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    @property
    def name(self) -> str:
        return "openai-compatible"

    @property
    def model(self) -> str:
        return self._model

    def _track_usage(self, response: Any) -> int:
        self._requests_made += 1
        if response.usage:
            self._tokens_used += response.usage.total_tokens
            return response.usage.total_tokens
        return 0

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_completion_tokens: int = 4096,
        timeout: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        request: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_completion_tokens": max_completion_tokens,
            "timeout": timeout if timeout is not None else self._timeout,
        }
        if temperature is not None:
            request["temperature"] = temperature

        try:
            response = await self._client.chat.completions.create(**request)
        except Exception as e:
            logger.error(f"{self.name} completion failed: {e}")
            raise LLMProviderError(f"LLM completion failed: {e}") from e

        tokens = self._track_usage(response)
        content = response.choices[0].message.content
        finish_reason = response.choices[0].finish_reason

        if content is None or not content.strip():
            logger.error(
                f"{self.name} returned empty content (finish_reason={finish_reason}, "
                f"tokens={tokens})"
            )
            raise LLMProviderError(
                f"LLM returned empty response (finish_reason={finish_reason})"
            )

        if finish_reason == "length":
            raise LLMProviderError("LLM response truncated - token limit exceeded")
        if finish_reason == "content_filter":
            raise LLMProviderError("LLM response blocked by content filter")

        return LLMResponse(
            content=content,
            tokens_used=tokens,
            model=self._model,
            finish_reason=finish_reason,
        )

    async def chat_with_tools(
        self,
        messages: list[dict[str, str]],
        tools: list[ToolDefinition],
        tool_choice: str | None = None,
        temperature: float = 0.0,
        max_completion_tokens: int = 200,
    ) -> ToolCall | None:
        request: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": max_completion_tokens,
            "timeout": self._timeout,
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in tools
            ],
        }
        if tool_choice:
            request["tool_choice"] = {
                "type": "function",
                "function": {"name": tool_choice},
            }

        try:
            response = await self._client.chat.completions.create(**request)
        except Exception as e:
            logger.error(f"{self.name} tool call failed: {e}")
            raise LLMProviderError(f"LLM tool call failed: {e}") from e

        self._track_usage(response)
        tool_calls = response.choices[0].message.tool_calls or []
        if not tool_calls:
            return None

        function = tool_calls[0].function
        try:
            arguments = json.loads(function.arguments or "{}")
        except json.JSONDecodeError as e:
            raise LLMProviderError(f"Invalid JSON in tool arguments: {e}") from e
        if not isinstance(arguments, dict):
            raise LLMProviderError("Tool arguments must be a JSON object")

        return ToolCall(name=function.name, arguments=arguments)

    def get_usage_stats(self) -> dict[str, Any]:
        """Get usage statistics."""
        return {
            "requests_made": self._requests_made,
            "total_tokens": self._tokens_used,
        }
