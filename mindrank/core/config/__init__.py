"""Configuration models for MindRank."""

from .llm_config import LLMConfig
from .logging_config import FileLoggingConfig, LoggingConfig, configure_logging
from .reasoning_config import (
    ComplexityConfig,
    ExecutorConfig,
    PlannerConfig,
    ReasoningConfig,
)
from .search_config import (
    AdaptiveSearchConfig,
    ClassifierConfig,
    ConflictConfig,
    ContextOptimizerConfig,
    FreshnessConfig,
    HybridSearchConfig,
    KeywordSearchConfig,
    ReliabilityConfig,
)
from .settings import MindrankSettings

__all__ = [
    "AdaptiveSearchConfig",
    "ClassifierConfig",
    "ComplexityConfig",
    "ConflictConfig",
    "ContextOptimizerConfig",
    "ExecutorConfig",
    "FileLoggingConfig",
    "FreshnessConfig",
    "HybridSearchConfig",
    "KeywordSearchConfig",
    "LLMConfig",
    "LoggingConfig",
    "MindrankSettings",
    "PlannerConfig",
    "ReasoningConfig",
    "ReliabilityConfig",
    "configure_logging",
]
