"""Freshness and trust ranking.

Each match gets an additive boost

    boost = min(max_boost, mode_multiplier * (freshness * category_weight
                                              + trust * trust_weight))

where freshness decays in steps from the newest of effective_date,
git_commit_ts, file_mtime and indexed_at, and category_weight is
docs_weight for doc-like chunks and code_weight otherwise.

The staleness verdict is computed separately from the ``indexed_at`` of the
first ranked match that has one.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from mindrank.core.config.search_config import FreshnessConfig
from mindrank.core.models import Match, RetrievalMode, StalenessLevel
from mindrank.core.utils.metadata import is_doc_path, resolve_timestamp, resolve_trust

SECONDS_PER_HOUR = 3600.0
UNKNOWN_RECENCY_SCORE = 0.25

_MODE_MULTIPLIERS: dict[str, float] = {"instant": 0.7, "auto": 1.0, "thinking": 1.2}


@dataclass(frozen=True)
class FreshnessDiagnostics:
    applied: bool
    boosted_candidates: int
    staleness_level: StalenessLevel
    retrieval_mode: RetrievalMode


def resolve_retrieval_mode(value: Any) -> RetrievalMode:
    """Coerce a caller-supplied mode; anything unrecognized is "auto"."""
    if value in ("instant", "auto", "thinking"):
        return value
    return "auto"


def mode_multiplier(mode: RetrievalMode) -> float:
    return _MODE_MULTIPLIERS.get(mode, 1.0)


def freshness_score(match: Match, now: float) -> float:
    """Step-decayed recency of the newest timestamp on a chunk."""
    metadata = match.chunk.metadata
    newest = max(
        resolve_timestamp(metadata.effective_date) or 0.0,
        resolve_timestamp(metadata.git_commit_ts) or 0.0,
        resolve_timestamp(metadata.file_mtime) or 0.0,
        resolve_timestamp(metadata.indexed_at) or 0.0,
    )
    if newest <= 0:
        return UNKNOWN_RECENCY_SCORE

    age_hours = max(0.0, (now - newest) / SECONDS_PER_HOUR)
    if age_hours <= 24:
        return 1.0
    if age_hours <= 72:
        return 0.8
    if age_hours <= 168:
        return 0.5
    return 0.2


def is_docs_like(match: Match) -> bool:
    source_kind = (match.chunk.metadata.source_kind or "").lower()
    return source_kind == "docs" or is_doc_path(match.chunk.path)


def staleness_level(
    matches: Sequence[Match], config: FreshnessConfig, now: float
) -> StalenessLevel:
    """Staleness of the corpus judged by the top match that records indexed_at."""
    indexed_at = now
    for match in matches:
        ts = resolve_timestamp(match.chunk.metadata.indexed_at)
        if ts is not None:
            indexed_at = ts
            break

    age_hours = (now - indexed_at) / SECONDS_PER_HOUR
    if age_hours >= config.hard_stale_hours:
        return "hard-stale"
    if age_hours >= config.soft_stale_hours:
        return "soft-stale"
    return "fresh"


def apply_freshness_ranking(
    matches: Sequence[Match],
    config: FreshnessConfig,
    mode: RetrievalMode,
    now: float | None = None,
) -> tuple[list[Match], FreshnessDiagnostics]:
    """Boost matches by recency and trust, then re-sort.

    Args:
        matches: Incoming matches
        config: Freshness configuration
        mode: Retrieval mode (scales the boost)
        now: Current epoch seconds (defaults to time.time())

    Returns:
        Re-ranked matches and diagnostics
    """
    if not config.enabled or not matches:
        return list(matches), FreshnessDiagnostics(
            applied=False,
            boosted_candidates=0,
            staleness_level="fresh",
            retrieval_mode=mode,
        )

    now = time.time() if now is None else now
    multiplier = mode_multiplier(mode)

    scored: list[tuple[Match, float]] = []
    for match in matches:
        weight = config.docs_weight if is_docs_like(match) else config.code_weight
        trust = resolve_trust(match.chunk.metadata.source_trust)
        boost = min(
            config.max_boost,
            multiplier * (freshness_score(match, now) * weight + trust * config.trust_weight),
        )
        scored.append((match, match.score + boost))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    boosted = sum(1 for match, adjusted in scored if adjusted > match.score)

    ranked = [match.with_score(adjusted) for match, adjusted in scored]
    return ranked, FreshnessDiagnostics(
        applied=True,
        boosted_candidates=boosted,
        staleness_level=staleness_level([m for m, _ in scored], config, now),
        retrieval_mode=mode,
    )
