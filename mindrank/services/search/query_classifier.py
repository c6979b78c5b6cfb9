"""Query classification for adaptive retrieval.

Rule stage: pattern families are checked in a fixed priority order
(lookup > debug > code > concept); the first family with at least one
matching pattern wins with confidence ``min(0.95, 0.6 + 0.15 * matches)``.
Queries with no match are ``general``.

Two checks run before the generic scan:
- "what is <PascalCase>" queries are promoted to lookup (0.85)
- queries carrying an exact identifier (backticks, quotes, camel/Pascal
  case, kebab-case, ``--flags``) are lookup (0.9)

LLM stage: when the rule confidence falls in the uncertainty band, or the
query reads like an open question without technical tokens, the LLM is
asked for a profile through a single tool call. Any failure falls back to
the rule result.
"""

import math
import re
from typing import Any

from loguru import logger

from mindrank.core.config.search_config import ClassifierConfig
from mindrank.core.models import (
    ChannelWeights,
    QueryClassification,
    QueryType,
    RecallStrategy,
    RetrievalProfile,
)
from mindrank.core.outcome import Fallback, Ok, Outcome
from mindrank.interfaces.classification_cache import ClassificationCache
from mindrank.interfaces.llm_provider import LLMProvider, ToolDefinition
from mindrank.services.search.classifier_cache import InMemoryClassificationCache

_A = re.ASCII
_AI = re.ASCII | re.IGNORECASE

LOOKUP_WEIGHTS = ChannelWeights(vector=0.3, keyword=0.7)
LLM_EXPLORE_WEIGHTS = ChannelWeights(vector=0.75, keyword=0.25)


class _PatternFamily:
    def __init__(
        self, patterns: list[re.Pattern[str]], weights: ChannelWeights, suggested_limit: int
    ):
        self.patterns = patterns
        self.weights = weights
        self.suggested_limit = suggested_limit

    def match_count(self, query: str) -> int:
        return sum(1 for p in self.patterns if p.search(query))


QUERY_PATTERNS: dict[QueryType, _PatternFamily] = {
    "lookup": _PatternFamily(
        [
            re.compile(r"^[A-Z][a-zA-Z0-9]+$", _A),
            re.compile(r"^[a-z][a-zA-Z0-9]*[A-Z][a-zA-Z0-9]*$", _A),
            re.compile(r"^\w+_\w+$", _A),
            re.compile(r"^[A-Z][A-Z_0-9]+$", _A),
            re.compile(r"^(get|set|create|delete|update|find)\w+$", _AI),
            re.compile(r"`\w+`", _A),
            re.compile(r"\"\w+\"|'\w+'", _A),
            re.compile(r"\b[a-z0-9]+(?:-[a-z0-9]+)+\b", _A),
            re.compile(r"--[a-z0-9-]+", _A),
            re.compile(r"^where\s+is\s+", _AI),
            re.compile(r"^find\s+(the\s+)?\w+", _AI),
            re.compile(r"\b(cli|command|subcommand|flag|option)\b", _AI),
        ],
        LOOKUP_WEIGHTS,
        120,
    ),
    "concept": _PatternFamily(
        [
            re.compile(r"^how\s+(does|do|to|can|should)", _AI),
            re.compile(r"^what\s+(is|are|does)", _AI),
            re.compile(r"^why\s+(does|do|is|are)", _AI),
            re.compile(r"^explain\s+", _AI),
            re.compile(r"^describe\s+", _AI),
            re.compile(r"^when\s+should", _AI),
            re.compile(r"architecture|design|pattern|approach", _AI),
            re.compile(r"relationship\s+between", _AI),
            re.compile(r"difference\s+between", _AI),
        ],
        ChannelWeights(vector=0.8, keyword=0.2),
        15,
    ),
    "code": _PatternFamily(
        [
            re.compile(r"implement", _AI),
            re.compile(r"function.*that", _AI),
            re.compile(r"create.*class", _AI),
            re.compile(r"write.*code", _AI),
            re.compile(r"example.*of", _AI),
            re.compile(r"syntax\s+for", _AI),
            re.compile(r"how.*implement", _AI),
            re.compile(r"code.*for", _AI),
            re.compile(r"snippet", _AI),
        ],
        ChannelWeights(vector=0.6, keyword=0.4),
        12,
    ),
    "debug": _PatternFamily(
        [
            re.compile(r"error", _AI),
            re.compile(r"bug", _AI),
            re.compile(r"fix", _AI),
            re.compile(r"crash", _AI),
            re.compile(r"fail", _AI),
            re.compile(r"not\s+work", _AI),
            re.compile(r"doesn.*t\s+work", _AI),
            re.compile(r"broken", _AI),
            re.compile(r"issue", _AI),
            re.compile(r"problem", _AI),
            re.compile(r"why\s+(does|is).*not", _AI),
            re.compile(r"invalid", _AI),
            re.compile(r"undefined|null|NaN", _AI),
            re.compile(r"exception|throw", _AI),
        ],
        ChannelWeights(vector=0.4, keyword=0.6),
        80,
    ),
    "general": _PatternFamily([], ChannelWeights(vector=0.6, keyword=0.4), 12),
}

CLASSIFICATION_PRIORITY: tuple[QueryType, ...] = ("lookup", "debug", "code", "concept")

_WHAT_IS_RE = re.compile(r"^what\s+is\s+(?:the\s+)?([A-Z][a-zA-Z0-9]+)", _AI)
_PASCAL_IDENTIFIER_RE = re.compile(r"^[A-Z][a-z]+[A-Z]?\w*$", _A)

_EXACT_IDENTIFIER_PATTERNS = [
    re.compile(r"`[^`]+`"),
    re.compile(r"\"[^\"]+\""),
    re.compile(r"'[^']+'"),
    re.compile(r"\b[a-z0-9]+(?:-[a-z0-9]+)+\b", _A),
    re.compile(r"--[a-z0-9-]+", _A),
    re.compile(r"\b[A-Z][a-z]+[A-Z]\w*\b", _A),
    re.compile(r"\b[a-z]+[A-Z]\w+\b", _A),
]

_TECHNICAL_SIGNAL_PATTERNS = [
    re.compile(r"`[^`]+`"),
    re.compile(r"--[a-z0-9-]+", _A),
    re.compile(r"\b[a-z0-9]+(?:-[a-z0-9]+)+\b", _A),
    re.compile(r"\b[A-Z][a-zA-Z0-9]*[A-Z][a-zA-Z0-9]*\b", _A),
]
_OPEN_QUESTION_RE = re.compile(r"\b(explain|why|how)\b", _AI)

# Sentence words that look like PascalCase identifiers at the start of a question.
_SENTENCE_WORDS = frozenset(
    {
        "What", "Where", "When", "How", "Why", "Which", "Who", "Is", "Are",
        "Can", "Do", "Does", "Tell", "Show", "Find", "Explain",
    }
)

_CYRILLIC_RE = re.compile(r"[а-яА-ЯёЁ]")
_ENGLISH_RE = re.compile(r"^[a-zA-Z0-9\s\W]+$", _A)

CLASSIFIER_TOOL_NAME = "set_query_profile"
CLASSIFIER_SYSTEM_PROMPT = (
    "Classify retrieval intent for agent search. "
    "Use the provided tool exactly once with the best profile."
)
CLASSIFIER_TOOL = ToolDefinition(
    name=CLASSIFIER_TOOL_NAME,
    description="Set retrieval profile and calibration strategy for query routing.",
    parameters={
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "profile": {"type": "string", "enum": ["exact_lookup", "semantic_explore"]},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "recallStrategy": {"type": "string", "enum": ["default", "broad_recall"]},
            "reason": {"type": "string"},
        },
        "required": ["profile", "confidence", "recallStrategy"],
    },
)


def has_exact_identifier(query: str) -> bool:
    """Whether the query contains something that reads like a code identifier."""
    return any(p.search(query) for p in _EXACT_IDENTIFIER_PATTERNS)


def extract_identifiers(query: str) -> list[str]:
    """Extract identifier-like tokens from a query, deduplicated in order.

    Recognizes backtick and quoted tokens, PascalCase (minus sentence words
    such as What/How/Why), camelCase, kebab-case and ``--flags``.
    """
    identifiers: list[str] = []
    identifiers += [m.group(0)[1:-1] for m in re.finditer(r"`([^`]+)`", query)]
    identifiers += [m.group(0)[1:-1] for m in re.finditer(r"[\"']([^\"']+)[\"']", query)]
    identifiers += [
        token
        for token in re.findall(r"\b[A-Z][a-zA-Z0-9]+\b", query, _A)
        if token not in _SENTENCE_WORDS
    ]
    identifiers += re.findall(r"\b[a-z]+[A-Z][a-zA-Z0-9]*\b", query, _A)
    identifiers += re.findall(r"\b[a-z0-9]+(?:-[a-z0-9]+)+\b", query, _A)
    identifiers += re.findall(r"--[a-z0-9-]+", query, _A)
    return list(dict.fromkeys(identifiers))


def detect_language(query: str) -> str:
    """Return "ru", "en" or "other"."""
    if _CYRILLIC_RE.search(query):
        return "ru"
    if _ENGLISH_RE.match(query):
        return "en"
    return "other"


def cache_key(query: str) -> str:
    """Normalize a query for classification caching."""
    return " ".join(query.strip().lower().split())


def _lookup(confidence: float) -> QueryClassification:
    return QueryClassification(
        query_type="lookup",
        profile="exact_lookup",
        recall_strategy="default",
        confidence=confidence,
        weights=LOOKUP_WEIGHTS,
        suggested_limit=120,
    )


def classify_query(query: str) -> QueryClassification:
    """Rule-based classification of a query."""
    normalized = query.strip()

    what_is = _WHAT_IS_RE.match(normalized)
    if what_is and _PASCAL_IDENTIFIER_RE.match(what_is.group(1)):
        return _lookup(0.85)

    if has_exact_identifier(normalized) and extract_identifiers(normalized):
        return _lookup(0.9)

    for query_type in CLASSIFICATION_PRIORITY:
        family = QUERY_PATTERNS[query_type]
        match_count = family.match_count(normalized)
        if match_count > 0:
            return QueryClassification(
                query_type=query_type,
                profile=(
                    "exact_lookup"
                    if query_type in ("lookup", "debug")
                    else "semantic_explore"
                ),
                recall_strategy="default",
                confidence=min(0.95, 0.6 + match_count * 0.15),
                weights=family.weights,
                suggested_limit=family.suggested_limit,
            )

    general = QUERY_PATTERNS["general"]
    return QueryClassification(
        query_type="general",
        profile="semantic_explore",
        recall_strategy="default",
        confidence=0.5,
        weights=general.weights,
        suggested_limit=general.suggested_limit,
    )


class _LLMDecision:
    def __init__(
        self, profile: RetrievalProfile, confidence: float, recall_strategy: RecallStrategy
    ):
        self.profile = profile
        self.confidence = confidence
        self.recall_strategy = recall_strategy


def parse_tool_decision(arguments: Any) -> _LLMDecision | None:
    """Validate tool-call arguments; None when malformed."""
    if not isinstance(arguments, dict):
        return None

    profile = arguments.get("profile")
    recall_strategy = arguments.get("recallStrategy")
    try:
        confidence = float(arguments.get("confidence"))
    except (TypeError, ValueError):
        return None

    if profile not in ("exact_lookup", "semantic_explore"):
        return None
    if recall_strategy not in ("default", "broad_recall"):
        return None
    if not math.isfinite(confidence) or confidence < 0 or confidence > 1:
        return None

    return _LLMDecision(profile, confidence, recall_strategy)


class QueryClassifier:
    """Rule-based classifier with optional LLM escalation.

    The cache is injected so tests can control time and instances stay
    isolated. It is shared safely between concurrent sub-queries.
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        config: ClassifierConfig | None = None,
        cache: ClassificationCache | None = None,
    ):
        self._llm = llm
        self._config = config or ClassifierConfig()
        self._cache = cache if cache is not None else InMemoryClassificationCache()

    def classify(self, query: str) -> QueryClassification:
        return classify_query(query)

    def should_escalate(self, query: str, baseline: QueryClassification) -> bool:
        """Whether the rule result is ambiguous enough to ask the LLM."""
        if not self._config.llm_fallback_enabled:
            return False

        in_band = (
            self._config.uncertainty_low
            <= baseline.confidence
            <= self._config.uncertainty_high
        )
        technical = any(p.search(query) for p in _TECHNICAL_SIGNAL_PATTERNS)
        open_question = bool(_OPEN_QUESTION_RE.search(query)) and not technical
        return in_band or open_question

    async def classify_with_fallback(self, query: str) -> Outcome[QueryClassification]:
        """Classify, escalating to the LLM when the rules are unsure.

        Returns:
            Ok with the final classification, or Fallback with the rule
            result when the LLM was unavailable or its answer unusable
        """
        baseline = classify_query(query)
        if not self.should_escalate(query, baseline):
            return Ok(baseline)

        key = cache_key(query)
        cached = self._cache.get(key)
        if cached is not None:
            return Ok(cached)

        if self._llm is None:
            return Fallback(baseline, "llm_unavailable")

        try:
            tool_call = await self._llm.chat_with_tools(
                [
                    {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
                    {"role": "user", "content": f"Query: {query}"},
                ],
                tools=[CLASSIFIER_TOOL],
                tool_choice=CLASSIFIER_TOOL_NAME,
                temperature=0.0,
                max_completion_tokens=200,
            )
        except Exception as e:
            logger.warning(f"LLM query classification failed, using rules: {e}")
            return Fallback(baseline, "llm_error")

        if tool_call is None or tool_call.name != CLASSIFIER_TOOL_NAME:
            return Fallback(baseline, "llm_no_tool_call")

        decision = parse_tool_decision(tool_call.arguments)
        if decision is None:
            logger.debug(f"Malformed classifier tool output: {tool_call.arguments}")
            return Fallback(baseline, "llm_malformed_output")

        merged = self._merge(baseline, decision)
        self._cache.set(key, merged, self._config.cache_ttl_seconds)
        return Ok(merged)

    def _merge(
        self, baseline: QueryClassification, decision: _LLMDecision
    ) -> QueryClassification:
        if decision.confidence < self._config.min_llm_confidence:
            return baseline

        if decision.profile == baseline.profile:
            return QueryClassification(
                query_type=baseline.query_type,
                profile=baseline.profile,
                recall_strategy=decision.recall_strategy,
                confidence=max(baseline.confidence, decision.confidence),
                weights=baseline.weights,
                suggested_limit=baseline.suggested_limit,
                source="llm",
            )

        if decision.profile == "exact_lookup":
            return QueryClassification(
                query_type="lookup" if baseline.query_type == "general" else baseline.query_type,
                profile="exact_lookup",
                recall_strategy=decision.recall_strategy,
                confidence=decision.confidence,
                weights=LOOKUP_WEIGHTS,
                suggested_limit=max(baseline.suggested_limit, 80),
                source="llm",
            )

        return QueryClassification(
            query_type=baseline.query_type,
            profile="semantic_explore",
            recall_strategy=decision.recall_strategy,
            confidence=decision.confidence,
            weights=LLM_EXPLORE_WEIGHTS,
            suggested_limit=max(baseline.suggested_limit, 20),
            source="llm",
        )
