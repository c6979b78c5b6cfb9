"""Data model for the retrieval core.

Chunks are produced by an external indexer and never change identity here.
Every ranking stage consumes and produces ``Match`` values; a stage that
adjusts a score builds a new ``Match`` instead of mutating the incoming one,
so the order of stages is explicit in the calling code:

    fuse -> source/identifier boost -> freshness -> conflict -> final sort

Metadata is a typed record of the fields the core reads plus an open
``extra`` mapping for whatever else the indexer attached.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from mindrank.services.reasoning.models import ReasoningMetadata

RetrievalMode = Literal["instant", "auto", "thinking"]
StalenessLevel = Literal["fresh", "soft-stale", "hard-stale"]
QueryType = Literal["lookup", "concept", "code", "debug", "general"]
RetrievalProfile = Literal["exact_lookup", "semantic_explore"]
RecallStrategy = Literal["default", "broad_recall"]

# Accepted spellings for metadata keys coming from indexers written in other
# ecosystems (camelCase) as well as Python producers (snake_case).
_METADATA_ALIASES: dict[str, str] = {
    "sourceKind": "source_kind",
    "fileMtime": "file_mtime",
    "effectiveDate": "effective_date",
    "docVersion": "doc_version",
    "gitCommitTs": "git_commit_ts",
    "sourceTrust": "source_trust",
    "topicKey": "topic_key",
    "docId": "doc_id",
    "indexedAt": "indexed_at",
    "conflictTopic": "conflict_topic",
    "conflictWinner": "conflict_winner",
    "conflictWinnerChunkId": "conflict_winner_chunk_id",
}


@dataclass(frozen=True, slots=True)
class ChunkMetadata:
    """Typed view over chunk metadata.

    Timestamp fields accept epoch seconds, ISO-8601 strings or datetimes;
    see ``mindrank.core.utils.metadata.resolve_timestamp``.
    """

    source_kind: str | None = None
    file_mtime: Any = None
    effective_date: Any = None
    doc_version: str | float | None = None
    git_commit_ts: Any = None
    source_trust: float | None = None
    topic_key: str | None = None
    doc_id: str | None = None
    indexed_at: Any = None
    conflict_topic: str | None = None
    conflict_winner: bool | None = None
    conflict_winner_chunk_id: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ChunkMetadata:
        """Build metadata from a loose mapping.

        Known keys (camelCase or snake_case) populate typed fields, anything
        else is preserved in ``extra``.
        """
        if not data:
            return cls()

        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        typed_fields = set(cls.__dataclass_fields__) - {"extra"}
        for key, value in data.items():
            name = _METADATA_ALIASES.get(key, key)
            if name in typed_fields:
                known[name] = value
            else:
                extra[key] = value
        return cls(**known, extra=extra)

    def with_conflict(
        self, topic: str, winner: bool, winner_chunk_id: str
    ) -> ChunkMetadata:
        """Return a copy annotated with a conflict verdict."""
        return replace(
            self,
            conflict_topic=topic,
            conflict_winner=winner,
            conflict_winner_chunk_id=winner_chunk_id,
        )


@dataclass(frozen=True, slots=True)
class Chunk:
    """Immutable unit of retrievable content."""

    chunk_id: str
    path: str
    text: str
    start_line: int = 1
    end_line: int = 1
    scope_id: str = "default"
    source_id: str = "default"
    embedding: Sequence[float] | None = None
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)

    @property
    def span_key(self) -> str:
        """Location key used for exact duplicate detection."""
        return f"{self.path}:{self.start_line}-{self.end_line}"

    def with_metadata(self, metadata: ChunkMetadata) -> Chunk:
        return replace(self, metadata=metadata)


@dataclass(frozen=True, slots=True)
class Match:
    """A chunk paired with its current relevance score."""

    chunk: Chunk
    score: float

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    def with_score(self, score: float) -> Match:
        """Return a copy with a new score, clamped at zero."""
        return Match(chunk=self.chunk, score=max(0.0, score))


@dataclass(frozen=True, slots=True)
class ChannelWeights:
    """Relative weights of the vector and keyword channels."""

    vector: float
    keyword: float

    def normalized(self) -> ChannelWeights:
        total = self.vector + self.keyword
        if total <= 0:
            return ChannelWeights(vector=0.5, keyword=0.5)
        return ChannelWeights(vector=self.vector / total, keyword=self.keyword / total)


@dataclass(frozen=True, slots=True)
class QueryClassification:
    """Result of query classification.

    Attributes:
        query_type: Rule family that matched (lookup/concept/code/debug/general)
        profile: Canonical retrieval profile
        recall_strategy: Whether to widen recall for this query
        confidence: Confidence in [0, 1]
        weights: Channel weights for hybrid fusion
        suggested_limit: Suggested fusion limit for this query type
        source: "rules" or "llm" depending on who produced the decision
    """

    query_type: QueryType
    profile: RetrievalProfile
    recall_strategy: RecallStrategy
    confidence: float
    weights: ChannelWeights
    suggested_limit: int
    source: Literal["rules", "llm"] = "rules"


@dataclass(frozen=True, slots=True)
class SearchFilters:
    """Corpus filters shared by the vector and keyword channels."""

    source_ids: frozenset[str] | None = None
    path_prefix: str | None = None
    path_matcher: Callable[[str], bool] | None = None

    def accepts(self, chunk: Chunk) -> bool:
        if self.source_ids is not None and chunk.source_id not in self.source_ids:
            return False
        if self.path_prefix and not chunk.path.startswith(self.path_prefix):
            return False
        if self.path_matcher is not None and not self.path_matcher(chunk.path):
            return False
        return True


@dataclass(frozen=True)
class SearchQuery:
    """Inbound query.

    Attributes:
        text: Natural-language query text
        intent: Caller intent label (informational)
        limit: Number of results wanted (defaults to settings.default_limit)
        mode: Retrieval mode (instant/auto/thinking)
        scope_id: Corpus scope to search
        embedding: Pre-computed query embedding, if the caller has one
        filters: Optional corpus filters
        metadata: Caller metadata (agentMode/consumer/actor flags live here)
        token_budget: Optional token budget for context selection
        deadline_seconds: Optional wall-clock bound for the whole search
    """

    text: str
    intent: str = "search"
    limit: int | None = None
    mode: RetrievalMode = "auto"
    scope_id: str = "default"
    embedding: Sequence[float] | None = None
    filters: SearchFilters | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    token_budget: int | None = None
    deadline_seconds: float | None = None

    def for_subquery(self, text: str) -> SearchQuery:
        """Derive a sub-query that inherits scope, mode and filters."""
        return replace(self, text=text, intent="search", embedding=None)


@dataclass(frozen=True, slots=True)
class RetrievalFailure:
    """Machine-readable reason a query was aborted."""

    reason: str
    message: str
    hints: tuple[str, ...] = ()


@dataclass
class RankedResult:
    """Final output of ``RetrievalService.search``.

    ``diagnostics`` holds explainability records keyed by stage name
    (classification, weights, identifiers, freshness, conflicts,
    reliability, confidence_adjustments, categories, fallbacks).
    """

    query: str
    matches: list[Match] = field(default_factory=list)
    context: str = ""
    diagnostics: dict[str, Any] = field(default_factory=dict)
    reasoning: ReasoningMetadata | None = None
    failure: RetrievalFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def chunks(self) -> list[Chunk]:
        return [m.chunk for m in self.matches]

    @property
    def fail_closed(self) -> bool:
        """Whether the reliability verdict says the caller should refuse to answer."""
        return bool(self.diagnostics.get("reliability", {}).get("fail_closed", False))
