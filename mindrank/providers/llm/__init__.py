"""LLM providers."""

from .openai_compatible_provider import OpenAICompatibleProvider

__all__ = ["OpenAICompatibleProvider"]
