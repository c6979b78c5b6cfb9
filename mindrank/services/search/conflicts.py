"""Conflict resolution between documents describing the same topic.

Only doc-like and config-like chunks take part. They are grouped by topic
(``topic_key``, else ``doc_id``, else the path with version and date tokens
stripped). Within a group the winner is chosen by a total order:

    effective_date desc, doc_version desc, git_commit_ts desc,
    file_mtime desc, trust desc, path asc, chunk_id asc

Runners-up lose a mode-scaled penalty and every member is annotated with
the conflict verdict.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from mindrank.core.config.search_config import ConflictConfig
from mindrank.core.models import Match, RetrievalMode
from mindrank.core.utils.metadata import (
    is_doc_path,
    parse_doc_version,
    resolve_timestamp,
    resolve_trust,
)

_EXTENSION_RE = re.compile(r"\.[a-z0-9]+$", re.IGNORECASE)
_VERSION_TOKEN_RE = re.compile(r"[-_]?v?\d+(\.\d+)*")
_DATE_TOKEN_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_SLASHES_RE = re.compile(r"/+")


@dataclass(frozen=True)
class ConflictDiagnostics:
    applied: bool
    conflicts_detected: int
    conflict_topics: int
    penalized_chunks: int
    policy: str = "freshness-first"


def normalize_path_topic(path: str) -> str:
    """Reduce a path to a topic key by stripping extension, versions and dates."""
    value = path.lower().replace("\\", "/")
    value = _EXTENSION_RE.sub("", value)
    value = _VERSION_TOKEN_RE.sub("", value)
    value = _DATE_TOKEN_RE.sub("", value)
    value = _SLASHES_RE.sub("/", value)
    return value.strip()


def resolve_topic_key(match: Match) -> str | None:
    """Topic of a doc/config-like match, or None when it does not take part."""
    metadata = match.chunk.metadata
    source_kind = (metadata.source_kind or "").lower()
    if source_kind not in ("docs", "config") and not is_doc_path(match.chunk.path):
        return None

    for explicit in (metadata.topic_key, metadata.doc_id):
        if isinstance(explicit, str) and explicit.strip():
            return explicit.strip().lower()
    return normalize_path_topic(match.chunk.path)


def rank_key(match: Match) -> tuple:
    """Sort key placing the preferred document first."""
    metadata = match.chunk.metadata
    return (
        -(resolve_timestamp(metadata.effective_date) or 0.0),
        -parse_doc_version(metadata.doc_version),
        -(resolve_timestamp(metadata.git_commit_ts) or 0.0),
        -(resolve_timestamp(metadata.file_mtime) or 0.0),
        -resolve_trust(metadata.source_trust),
        match.chunk.path,
        match.chunk.chunk_id,
    )


def loser_penalty(base_penalty: float, mode: RetrievalMode) -> float:
    if mode == "thinking":
        return min(0.35, base_penalty * 1.2)
    if mode == "instant":
        return max(0.05, base_penalty * 0.8)
    return base_penalty


def apply_conflict_resolution(
    matches: Sequence[Match],
    config: ConflictConfig,
    mode: RetrievalMode,
) -> tuple[list[Match], ConflictDiagnostics]:
    """Penalize superseded documents and annotate conflict verdicts.

    Returns:
        All matches re-sorted by score, and diagnostics
    """
    if not config.enabled or len(matches) < 2:
        return list(matches), ConflictDiagnostics(
            applied=False, conflicts_detected=0, conflict_topics=0, penalized_chunks=0
        )

    by_topic: dict[str, list[int]] = {}
    for index, match in enumerate(matches):
        topic = resolve_topic_key(match)
        if topic:
            by_topic.setdefault(topic, []).append(index)

    updated = list(matches)
    penalty = loser_penalty(config.penalty, mode)
    conflicts = 0
    penalized = 0

    for topic, indices in by_topic.items():
        if len(indices) < 2:
            continue

        ordered = sorted(indices, key=lambda i: rank_key(matches[i]))
        winner_index = ordered[0]
        winner = matches[winner_index]
        winner_id = winner.chunk.chunk_id
        conflicts += 1

        updated[winner_index] = Match(
            chunk=winner.chunk.with_metadata(
                winner.chunk.metadata.with_conflict(topic, True, winner_id)
            ),
            score=winner.score,
        )

        for loser_index in ordered[1 : 1 + config.max_losers_per_topic]:
            loser = matches[loser_index]
            annotated = loser.chunk.with_metadata(
                loser.chunk.metadata.with_conflict(topic, False, winner_id)
            )
            updated[loser_index] = Match(chunk=annotated, score=loser.score).with_score(
                loser.score - penalty
            )
            penalized += 1

        logger.debug(
            f"Conflict on topic '{topic}': winner={winner_id}, "
            f"{min(len(ordered) - 1, config.max_losers_per_topic)} penalized by {penalty:.3f}"
        )

    updated.sort(key=lambda m: m.score, reverse=True)
    return updated, ConflictDiagnostics(
        applied=conflicts > 0,
        conflicts_detected=conflicts,
        conflict_topics=conflicts,
        penalized_chunks=penalized,
        policy=config.policy,
    )
