"""Ports to the collaborators the retrieval core depends on."""

from .classification_cache import ClassificationCache
from .compressor import ContextCompressor
from .corpus_access import CorpusAccess, EmbeddingCorpusAccess
from .llm_provider import LLMProvider, LLMResponse, ToolCall, ToolDefinition
from .query_history import QueryHistory, ReasoningPlanRecord

__all__ = [
    "ClassificationCache",
    "ContextCompressor",
    "CorpusAccess",
    "EmbeddingCorpusAccess",
    "LLMProvider",
    "LLMResponse",
    "QueryHistory",
    "ReasoningPlanRecord",
    "ToolCall",
    "ToolDefinition",
]
