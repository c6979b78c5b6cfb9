"""Search and ranking stages."""

from .adaptive_search import AdaptiveHybridSearch, AdaptiveSearchResult
from .classifier_cache import InMemoryClassificationCache
from .conflicts import ConflictDiagnostics, apply_conflict_resolution
from .freshness import (
    FreshnessDiagnostics,
    apply_freshness_ranking,
    resolve_retrieval_mode,
)
from .hybrid_search import fuse_rankings, hybrid_search
from .keyword_search import keyword_search
from .query_classifier import (
    QueryClassifier,
    classify_query,
    detect_language,
    extract_identifiers,
    has_exact_identifier,
)
from .reliability import (
    ConfidenceAdjustments,
    ReliabilityDecision,
    build_confidence_adjustments,
    evaluate_reliability,
)

__all__ = [
    "AdaptiveHybridSearch",
    "AdaptiveSearchResult",
    "ConfidenceAdjustments",
    "ConflictDiagnostics",
    "FreshnessDiagnostics",
    "InMemoryClassificationCache",
    "QueryClassifier",
    "ReliabilityDecision",
    "apply_conflict_resolution",
    "apply_freshness_ranking",
    "build_confidence_adjustments",
    "classify_query",
    "detect_language",
    "evaluate_reliability",
    "extract_identifiers",
    "fuse_rankings",
    "has_exact_identifier",
    "hybrid_search",
    "keyword_search",
    "resolve_retrieval_mode",
]
