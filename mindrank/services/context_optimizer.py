"""Context optimizer - dedup, diversify, budget and truncate ranked matches.

Stages run in order, each optional via ContextOptimizerConfig:

1. Deduplication: exact path+span duplicates are dropped; near-duplicate
   text (word-set Jaccard >= dedup_threshold) keeps the higher score.
2. Diversification: seed with the top chunk of every file, then add more
   chunks under a per-file cap, skipping chunks too similar to one already
   picked unless they outscore it by the override margin.
3. Adaptive selection: fill a token budget greedily; when the next chunk
   does not fit but at least half an average chunk of budget remains,
   admit it and stop.
4. Top-K truncation.
"""

from collections.abc import Sequence

from loguru import logger

from mindrank.core.config.search_config import ContextOptimizerConfig
from mindrank.core.models import Match
from mindrank.core.utils.text_similarity import jaccard_similarity, word_set
from mindrank.core.utils.token_utils import estimate_tokens

# Words of two characters or fewer carry no signal for similarity.
_MIN_WORD_LENGTH = 2


def text_similarity(a: str, b: str) -> float:
    return jaccard_similarity(word_set(a, _MIN_WORD_LENGTH), word_set(b, _MIN_WORD_LENGTH))


class ContextOptimizer:
    """Shapes a ranked match list into a compact, diverse context."""

    def __init__(self, config: ContextOptimizerConfig | None = None):
        self._config = config or ContextOptimizerConfig()

    @property
    def config(self) -> ContextOptimizerConfig:
        return self._config

    def optimize(
        self,
        matches: Sequence[Match],
        config: ContextOptimizerConfig | None = None,
    ) -> list[Match]:
        """Run the optimization pipeline.

        Args:
            matches: Matches sorted by relevance
            config: Per-call override of the optimizer configuration

        Returns:
            Optimized matches, at most ``max_chunks``
        """
        cfg = config or self._config
        result = list(matches)
        before = len(result)

        if cfg.deduplication:
            result = self.deduplicate(result, cfg.dedup_threshold)

        if cfg.diversification:
            result = self.diversify(
                result,
                cfg.diversity_threshold,
                cfg.max_chunks_per_file,
                cfg.diversity_override_margin,
            )

        if cfg.adaptive_selection and cfg.token_budget:
            result = self.adaptive_select(
                result, cfg.token_budget, cfg.avg_tokens_per_chunk, cfg.half_chunk_ratio
            )

        result = result[: cfg.max_chunks]
        logger.debug(f"Context optimizer: {before} -> {len(result)} chunks")
        return result

    def deduplicate(self, matches: Sequence[Match], threshold: float) -> list[Match]:
        kept: list[Match] = []
        seen: set[str] = set()

        for match in matches:
            key = match.chunk.span_key
            if key in seen:
                continue

            duplicate_of: int | None = None
            for index, existing in enumerate(kept):
                if text_similarity(match.chunk.text, existing.chunk.text) >= threshold:
                    duplicate_of = index
                    break

            if duplicate_of is None:
                kept.append(match)
                seen.add(key)
            elif match.score > kept[duplicate_of].score:
                kept[duplicate_of] = match

        return kept

    def diversify(
        self,
        matches: Sequence[Match],
        threshold: float,
        max_per_file: int,
        override_margin: float = 0.2,
    ) -> list[Match]:
        by_file: dict[str, list[Match]] = {}
        for match in matches:
            by_file.setdefault(match.chunk.path, []).append(match)

        diversified: list[Match] = []
        selected: set[str] = set()
        file_counts: dict[str, int] = {}

        for path, file_matches in by_file.items():
            top = file_matches[0]
            diversified.append(top)
            selected.add(top.chunk_id)
            file_counts[path] = 1

        for match in matches:
            if match.chunk_id in selected:
                continue
            count = file_counts.get(match.chunk.path, 0)
            if count >= max_per_file:
                continue

            diverse = True
            for existing in diversified:
                if text_similarity(match.chunk.text, existing.chunk.text) > threshold:
                    if match.score <= existing.score * (1 + override_margin):
                        diverse = False
                        break

            if diverse:
                diversified.append(match)
                selected.add(match.chunk_id)
                file_counts[match.chunk.path] = count + 1

        diversified.sort(key=lambda m: m.score, reverse=True)
        return diversified

    def adaptive_select(
        self,
        matches: Sequence[Match],
        token_budget: int,
        avg_tokens_per_chunk: int,
        half_chunk_ratio: float = 0.5,
    ) -> list[Match]:
        selected: list[Match] = []
        total = 0

        for match in matches:
            tokens = estimate_tokens(match.chunk.text)
            if total + tokens <= token_budget:
                selected.append(match)
                total += tokens
            elif token_budget - total >= avg_tokens_per_chunk * half_chunk_ratio:
                selected.append(match)
                break

        return selected
