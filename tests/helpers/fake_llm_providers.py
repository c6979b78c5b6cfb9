"""Test-only fake LLM providers.

These providers are intentionally simple and deterministic:
- They never call external services.
- They answer from a script (a list of responses consumed in order, or a
  callable deriving the answer from the prompt).
- They record parameters passed to `complete()` and `chat_with_tools()` so
  tests can assert behavior.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from mindrank.interfaces.llm_provider import (
    LLMProvider,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)


@dataclass
class CompleteCall:
    prompt: str
    system: str | None
    max_completion_tokens: int
    timeout: int | None
    temperature: float | None


@dataclass
class ToolChatCall:
    messages: list[dict[str, str]]
    tools: list[ToolDefinition]
    tool_choice: str | None


class ScriptedLLMProvider(LLMProvider):
    """Deterministic provider answering from scripted responses.

    ``responses`` may hold strings or exceptions; an exception is raised
    instead of answering. When the script runs out, ``default_response`` is
    returned. ``responder`` takes precedence and maps a prompt to an answer.
    """

    def __init__(
        self,
        *,
        responses: list[str | Exception] | None = None,
        responder: Callable[[str], str] | None = None,
        default_response: str = "",
        tool_calls: list[ToolCall | None | Exception] | None = None,
        latency_seconds: float = 0.0,
        model: str = "fake-model",
    ) -> None:
        self._responses = list(responses or [])
        self._responder = responder
        self._default_response = default_response
        self._tool_calls = list(tool_calls or [])
        self._latency_seconds = latency_seconds
        self._model = model
        self.calls: list[CompleteCall] = []
        self.tool_chat_calls: list[ToolChatCall] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_completion_tokens: int = 4096,
        timeout: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        self.calls.append(
            CompleteCall(
                prompt=prompt,
                system=system,
                max_completion_tokens=max_completion_tokens,
                timeout=timeout,
                temperature=temperature,
            )
        )
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)

        if self._responder is not None:
            content = self._responder(prompt)
        elif self._responses:
            scripted = self._responses.pop(0)
            if isinstance(scripted, Exception):
                raise scripted
            content = scripted
        else:
            content = self._default_response

        return LLMResponse(
            content=content,
            tokens_used=self.estimate_tokens(content),
            model=self._model,
            finish_reason="stop",
        )

    async def chat_with_tools(
        self,
        messages: list[dict[str, str]],
        tools: list[ToolDefinition],
        tool_choice: str | None = None,
        temperature: float = 0.0,
        max_completion_tokens: int = 200,
    ) -> ToolCall | None:
        self.tool_chat_calls.append(
            ToolChatCall(messages=messages, tools=tools, tool_choice=tool_choice)
        )
        if not self._tool_calls:
            return None
        scripted = self._tool_calls.pop(0)
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    def get_usage_stats(self) -> dict[str, Any]:
        return {
            "requests_made": len(self.calls) + len(self.tool_chat_calls),
            "tokens_used": 0,
        }
