"""
Root settings for MindRank.

Configuration Sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (MINDRANK_*, nested with "__")
3. Default values

Environment Variables:
    MINDRANK_DEFAULT_LIMIT=10
    MINDRANK_FRESHNESS__MAX_BOOST=0.3
    MINDRANK_REASONING__ENABLED=true
    MINDRANK_REASONING__EXECUTOR__MAX_CONCURRENCY=3
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging_config import LoggingConfig
from .reasoning_config import ReasoningConfig
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


class MindrankSettings(BaseSettings):
    """Aggregated configuration for the retrieval pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="MINDRANK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    default_limit: int = Field(default=10, ge=1, le=500, description="Results per query")
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    keyword: KeywordSearchConfig = Field(default_factory=KeywordSearchConfig)
    hybrid: HybridSearchConfig = Field(default_factory=HybridSearchConfig)
    adaptive: AdaptiveSearchConfig = Field(default_factory=AdaptiveSearchConfig)
    freshness: FreshnessConfig = Field(default_factory=FreshnessConfig)
    conflicts: ConflictConfig = Field(default_factory=ConflictConfig)
    reliability: ReliabilityConfig = Field(default_factory=ReliabilityConfig)
    optimizer: ContextOptimizerConfig = Field(default_factory=ContextOptimizerConfig)
    reasoning: ReasoningConfig = Field(default_factory=ReasoningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
