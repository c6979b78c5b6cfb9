"""Multi-hop reasoning over the single-pass retrieval pipeline."""

from .complexity_detector import ComplexityDetector
from .models import (
    ComplexityResult,
    QueryPlan,
    ReasoningBudget,
    ReasoningContext,
    ReasoningMetadata,
    ReasoningTiming,
    SubQuery,
    SubQueryResult,
    SynthesisResult,
)
from .parallel_executor import ParallelExecutor
from .progress import ProgressChannel, ProgressEvent
from .query_planner import QueryPlanner
from .reasoning_engine import ReasoningEngine
from .synthesizer import ResultSynthesizer

__all__ = [
    "ComplexityDetector",
    "ComplexityResult",
    "ParallelExecutor",
    "ProgressChannel",
    "ProgressEvent",
    "QueryPlan",
    "QueryPlanner",
    "ReasoningBudget",
    "ReasoningContext",
    "ReasoningEngine",
    "ReasoningMetadata",
    "ReasoningTiming",
    "ResultSynthesizer",
    "SubQuery",
    "SubQueryResult",
    "SynthesisResult",
]
