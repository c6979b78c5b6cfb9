"""Search and ranking configuration models for MindRank.

One model per ranking stage. Defaults reproduce the tuned behavior of the
retrieval pipeline; every bound is validated by pydantic.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing_extensions import Self


class ClassifierConfig(BaseModel):
    """Query classifier configuration."""

    llm_fallback_enabled: bool = Field(
        default=True,
        description="Escalate ambiguous rule-based classifications to the LLM",
    )
    uncertainty_low: float = Field(
        default=0.55, ge=0.0, le=1.0, description="Lower edge of the uncertainty band"
    )
    uncertainty_high: float = Field(
        default=0.88, ge=0.0, le=1.0, description="Upper edge of the uncertainty band"
    )
    min_llm_confidence: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="LLM decisions below this confidence are discarded",
    )
    cache_ttl_seconds: float = Field(
        default=300.0, gt=0, description="TTL for cached LLM-assisted classifications"
    )

    @model_validator(mode="after")
    def validate_band(self) -> Self:
        """Ensure the uncertainty band is not inverted."""
        if self.uncertainty_low > self.uncertainty_high:
            raise ValueError(
                f"uncertainty_low ({self.uncertainty_low}) must be <= "
                f"uncertainty_high ({self.uncertainty_high})"
            )
        return self


class KeywordSearchConfig(BaseModel):
    """BM25 parameters."""

    k1: float = Field(default=1.2, ge=0.0, description="Term frequency saturation")
    b: float = Field(default=0.75, ge=0.0, le=1.0, description="Length normalization")
    min_score: float = Field(default=0.0, ge=0.0, description="Drop results scoring below this")


class HybridSearchConfig(BaseModel):
    """Reciprocal Rank Fusion configuration."""

    vector_weight: float = Field(default=0.7, ge=0.0, description="Vector channel weight")
    keyword_weight: float = Field(default=0.3, ge=0.0, description="Keyword channel weight")
    rrf_k: int = Field(default=60, ge=1, description="RRF rank offset constant")
    candidate_limit: int | None = Field(
        default=None,
        ge=1,
        description="Candidates fetched per channel (default: 2 x limit)",
    )
    both_channels_bonus: float = Field(
        default=1.2,
        ge=1.0,
        description="Multiplier for chunks found by both channels",
    )


class AdaptiveSearchConfig(BaseModel):
    """Adaptive hybrid search configuration."""

    adaptive_weights: bool = Field(
        default=True, description="Use classifier-chosen channel weights"
    )
    source_boost: bool = Field(
        default=True, description="Apply source-category boosting"
    )
    identifier_boost: float = Field(
        default=0.15,
        ge=0.0,
        description="Score multiplier increment per query identifier found in a chunk",
    )


class FreshnessConfig(BaseModel):
    """Freshness and trust boosting configuration."""

    enabled: bool = Field(default=True, description="Enable freshness ranking")
    docs_weight: float = Field(default=0.25, ge=0.0, description="Freshness weight for doc-like chunks")
    code_weight: float = Field(default=0.1, ge=0.0, description="Freshness weight for other chunks")
    trust_weight: float = Field(default=0.1, ge=0.0, description="Weight of source trust")
    max_boost: float = Field(default=0.3, ge=0.0, description="Upper bound on the additive boost")
    soft_stale_hours: float = Field(default=72.0, ge=0.0, description="Soft staleness threshold")
    hard_stale_hours: float = Field(default=168.0, ge=0.0, description="Hard staleness threshold")

    @model_validator(mode="after")
    def validate_thresholds(self) -> Self:
        """Ensure soft staleness comes before hard staleness."""
        if self.soft_stale_hours > self.hard_stale_hours:
            raise ValueError(
                f"soft_stale_hours ({self.soft_stale_hours}) must be <= "
                f"hard_stale_hours ({self.hard_stale_hours})"
            )
        return self


class ConflictConfig(BaseModel):
    """Conflict resolution configuration."""

    enabled: bool = Field(default=True, description="Enable conflict resolution")
    policy: str = Field(default="freshness-first", description="Winner selection policy")
    max_losers_per_topic: int = Field(
        default=3, ge=0, description="Maximum runners-up penalized per topic"
    )
    penalty: float = Field(default=0.2, ge=0.0, le=1.0, description="Base loser penalty")

    @field_validator("policy")
    @classmethod
    def validate_policy(cls, v: str) -> str:
        """Only freshness-first is supported."""
        if v != "freshness-first":
            raise ValueError(f"Invalid conflict policy '{v}'. Must be: freshness-first")
        return v


class ReliabilityConfig(BaseModel):
    """Reliability evaluation configuration."""

    hard_stale_fail_closed: bool = Field(
        default=True, description="Fail closed on hard-stale corpora in strict mode"
    )
    confidence_floor: float = Field(
        default=0.75, ge=0.0, le=1.0, description="Minimum acceptable confidence"
    )
    thinking_mode_strict: bool = Field(
        default=True, description="Treat thinking-mode queries as strict"
    )


class ContextOptimizerConfig(BaseModel):
    """Context optimizer configuration."""

    max_chunks: int = Field(default=10, ge=1, description="Top-K after optimization")
    token_budget: int | None = Field(
        default=None, ge=1, description="Token budget for adaptive selection"
    )
    deduplication: bool = Field(default=True, description="Drop duplicate chunks")
    dedup_threshold: float = Field(
        default=0.9, ge=0.0, le=1.0, description="Jaccard similarity treated as duplicate"
    )
    diversification: bool = Field(default=True, description="Spread results across files")
    diversity_threshold: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Similarity ceiling between picked chunks"
    )
    max_chunks_per_file: int = Field(default=3, ge=1, description="Per-file cap")
    adaptive_selection: bool = Field(default=False, description="Select by token budget")
    avg_tokens_per_chunk: int = Field(default=200, ge=1, description="Expected chunk size")
    half_chunk_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Fraction of an average chunk that must remain to admit one overflow chunk",
    )
    diversity_override_margin: float = Field(
        default=0.2,
        ge=0.0,
        description="Score margin that lets a similar chunk through diversification",
    )
