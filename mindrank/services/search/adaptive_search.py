"""Adaptive hybrid search.

Wraps RRF fusion with query awareness:
1. Classify the query and pick channel weights (unless forced)
2. Fuse with ``max(limit, suggested_limit)`` candidates
3. Boost by source category for the first matching query rule
4. Boost chunks containing identifiers extracted from the query
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from mindrank.core.config.search_config import (
    AdaptiveSearchConfig,
    HybridSearchConfig,
    KeywordSearchConfig,
)
from mindrank.core.models import ChannelWeights, Match, QueryClassification, SearchFilters
from mindrank.interfaces.corpus_access import CorpusAccess
from mindrank.services.search.hybrid_search import hybrid_search
from mindrank.services.search.query_classifier import QueryClassifier, extract_identifiers
from mindrank.services.search.source_categorizer import (
    apply_query_boost,
    categorize_matches,
    get_category_stats,
)

DEFAULT_WEIGHTS = ChannelWeights(vector=0.7, keyword=0.3)


@dataclass
class AdaptiveSearchResult:
    """Matches plus the decisions that produced them."""

    matches: list[Match]
    classification: QueryClassification
    used_weights: ChannelWeights
    identifiers: list[str]
    category_stats: list[dict[str, Any]] = field(default_factory=list)
    classification_fallback: str | None = None


def boost_exact_identifiers(
    matches: Sequence[Match], identifiers: Sequence[str], boost: float = 0.15
) -> list[Match]:
    """Multiply scores by ``1 + boost * n`` for n identifiers found in text or path."""
    lowered = [i.lower() for i in identifiers]
    boosted = []
    for match in matches:
        text = match.chunk.text.lower()
        path = match.chunk.path.lower()
        found = sum(1 for ident in lowered if ident in text or ident in path)
        boosted.append(match.with_score(match.score * (1 + found * boost)))
    boosted.sort(key=lambda m: m.score, reverse=True)
    return boosted


class AdaptiveHybridSearch:
    """Query-aware hybrid search over a caller-supplied corpus."""

    def __init__(
        self,
        classifier: QueryClassifier | None = None,
        config: AdaptiveSearchConfig | None = None,
        hybrid_config: HybridSearchConfig | None = None,
        keyword_config: KeywordSearchConfig | None = None,
    ):
        self._classifier = classifier or QueryClassifier()
        self._config = config or AdaptiveSearchConfig()
        self._hybrid_config = hybrid_config or HybridSearchConfig()
        self._keyword_config = keyword_config or KeywordSearchConfig()

    async def search(
        self,
        corpus: CorpusAccess,
        scope_id: str,
        query_text: str,
        embedding: Sequence[float] | None,
        limit: int,
        filters: SearchFilters | None = None,
        force_weights: ChannelWeights | None = None,
    ) -> AdaptiveSearchResult:
        """Run adaptive hybrid search.

        Args:
            corpus: Corpus access
            scope_id: Scope to search
            query_text: Query text
            embedding: Query embedding, None for keyword-only fusion
            limit: Number of matches to return
            filters: Optional corpus filters
            force_weights: Explicit channel weights overriding classification
        """
        outcome = await self._classifier.classify_with_fallback(query_text)
        classification = outcome.value
        identifiers = extract_identifiers(query_text)

        if force_weights is not None:
            used_weights = force_weights
        elif self._config.adaptive_weights:
            used_weights = classification.weights
        else:
            used_weights = DEFAULT_WEIGHTS

        if self._hybrid_config.candidate_limit:
            effective_limit = limit
        else:
            effective_limit = max(limit, classification.suggested_limit)

        matches = await hybrid_search(
            corpus,
            scope_id,
            query_text,
            embedding,
            effective_limit,
            filters=filters,
            weights=used_weights,
            config=self._hybrid_config,
            keyword_config=self._keyword_config,
        )

        category_stats: list[dict[str, Any]] = []
        if self._config.source_boost and matches:
            categorized = apply_query_boost(categorize_matches(matches), query_text)
            categorized.sort(key=lambda c: c.match.score, reverse=True)
            categorized = categorized[:limit]
            category_stats = get_category_stats(categorized)
            matches = [c.match for c in categorized]

        if identifiers:
            matches = boost_exact_identifiers(
                matches, identifiers, self._config.identifier_boost
            )

        logger.debug(
            f"Adaptive search '{query_text[:60]}': type={classification.query_type} "
            f"profile={classification.profile} weights=({used_weights.vector:.2f}, "
            f"{used_weights.keyword:.2f}) identifiers={identifiers}"
        )

        return AdaptiveSearchResult(
            matches=matches[:limit],
            classification=classification,
            used_weights=used_weights,
            identifiers=identifiers,
            category_stats=category_stats,
            classification_fallback=outcome.reason if outcome.is_fallback else None,
        )
