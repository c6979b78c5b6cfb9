"""Reasoning configuration models for MindRank."""

from pydantic import BaseModel, Field


class ComplexityConfig(BaseModel):
    """Query complexity detection configuration."""

    threshold: float = Field(
        default=0.6, ge=0.0, le=1.0, description="Score at which a query needs reasoning"
    )
    heuristics: bool = Field(default=True, description="Use heuristic scoring")
    llm: bool = Field(default=False, description="Ask the LLM for a complexity score")


class PlannerConfig(BaseModel):
    """Query planner configuration."""

    max_subqueries: int = Field(default=5, ge=1, le=20, description="Sub-query cap per plan")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0, description="Planner LLM temperature")


class ExecutorConfig(BaseModel):
    """Parallel sub-query executor configuration."""

    parallel: bool = Field(default=True, description="Run sub-query groups concurrently")
    max_concurrency: int = Field(default=3, ge=1, description="Concurrent sub-queries")
    query_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Per sub-query timeout"
    )
    early_stopping: bool = Field(default=True, description="Stop once a result is good enough")
    min_confidence: float = Field(
        default=0.8, ge=0.0, le=1.0, description="Mean score required for early stop"
    )
    min_chunks_found: int = Field(
        default=5, ge=1, description="Chunk count required for early stop"
    )


class ReasoningConfig(BaseModel):
    """Multi-hop reasoning configuration."""

    enabled: bool = Field(default=False, description="Enable the reasoning orchestrator")
    max_depth: int = Field(default=3, ge=1, le=10, description="Maximum recursion depth")
    max_total_queries: int = Field(
        default=20, ge=1, description="Maximum sub-queries issued per top-level query"
    )
    max_tokens_per_depth: int = Field(
        default=10000, ge=1, description="Soft token budget per depth"
    )
    cycle_detection: bool = Field(default=True, description="Abort on repeated sub-queries")
    cycle_threshold: float = Field(
        default=0.9, ge=0.0, le=1.0, description="Word-set similarity treated as a cycle"
    )
    recursive_subqueries: bool = Field(
        default=False,
        description="Run sub-queries through the orchestrator one level deeper",
    )
    optimize_merged: bool = Field(
        default=True, description="Re-run the context optimizer over merged results"
    )
    merged_max_chunks_per_file: int = Field(
        default=5, ge=1, description="Per-file cap for the merged pool"
    )
    llm_synthesis: bool = Field(
        default=False, description="Synthesize context text with the LLM"
    )
    compress_context: bool = Field(
        default=True, description="Compress synthesized context when a compressor is set"
    )
    save_history: bool = Field(
        default=True, description="Persist reasoning plans when a history store is set"
    )
    complexity: ComplexityConfig = Field(default_factory=ComplexityConfig)
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
