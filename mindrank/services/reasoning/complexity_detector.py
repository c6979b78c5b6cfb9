"""Query complexity detection.

Decides whether a query should be decomposed into sub-queries. When LLM
scoring is enabled it is asked first; a zero score or any failure falls
back to the heuristics, which add up weighted signals:

- length in characters and in words
- number of distinct concept keywords
- number of question words
- technical task patterns (implement / explain / example / architecture)
- code vocabulary

Keyword lists cover English and Russian.
"""

import json
import re

from loguru import logger

from mindrank.core.config.reasoning_config import ComplexityConfig
from mindrank.interfaces.llm_provider import LLMProvider
from mindrank.services.reasoning.models import ComplexityResult

CONCEPT_KEYWORDS = (
    "and", "also", "plus", "compare", "difference", "versus",
    "how", "why", "what", "where",
    "implement", "example", "explain",
    "architecture", "design", "structure",
    "work", "function", "process",
    "include", "consist", "contain",
    "или", "также", "плюс", "сравнить", "разница", "против",
    "как", "почему", "что", "где",
    "реализовать", "пример", "объяснить",
    "архитектура", "дизайн", "структура",
    "работать", "функция", "процесс",
    "включать", "состоять", "содержать",
)  # fmt: skip

QUESTION_WORDS = (
    "how", "why", "what", "when", "where", "which", "who",
    "как", "почему", "что", "когда", "где", "какой", "кто",
)  # fmt: skip

TECHNICAL_PATTERNS = (
    re.compile(r"\b(?:implement|реализовать|create|создать|build|построить)\b"),
    re.compile(r"\b(?:explain|объяснить|describe|описать|show|показать)\b"),
    re.compile(r"\b(?:example|пример|code|код|function|функция)\b"),
    re.compile(r"\b(?:architecture|архитектура|design|дизайн|pattern|паттерн)\b"),
)

CODE_PATTERN = re.compile(
    r"\b(?:code|код|function|функция|class|класс|interface|интерфейс|type|тип)\b"
)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_SCORE_FIELD_RE = re.compile(r"[\"']?score[\"']?\s*:\s*([0-9.]+)")
_NUMBER_RE = re.compile(r"[0-9]+\.[0-9]+|[0-9]+")

COMPLEXITY_PROMPT = """Analyze the complexity of this query to determine if it requires multi-step reasoning.

Query: "{query}"

Consider:
- Does it involve multiple concepts or topics?
- Does it require connecting information from different parts of the codebase?
- Does it ask about relationships, comparisons, or processes?
- Is it a simple lookup or does it need synthesis?

Respond with a JSON object: {{"score": <number between 0 and 1>, "reason": "<brief explanation in English>"}}
Scale: 0.0-0.3 simple, 0.4-0.6 moderate, 0.7-1.0 high.
Respond ONLY with valid JSON, no other text."""


def heuristic_score(query: str) -> tuple[float, list[str]]:
    """Score a query in [0, 1] from surface features.

    Returns:
        Tuple of (score, human-readable reasons)
    """
    text = query.lower().strip()
    words = text.split()
    score = 0.0
    reasons: list[str] = []

    length = len(text)
    if length > 150:
        score += 0.25
        reasons.append(f"Very long query ({length} chars)")
    elif length > 80:
        score += 0.15
        reasons.append(f"Long query ({length} chars)")
    elif length > 40:
        score += 0.08

    if len(words) > 15:
        score += 0.2
        reasons.append(f"Many words ({len(words)})")
    elif len(words) > 8:
        score += 0.12
        reasons.append(f"Several words ({len(words)})")
    elif len(words) > 5:
        score += 0.06

    concepts = sum(1 for keyword in CONCEPT_KEYWORDS if keyword in text)
    if concepts >= 3:
        score += 0.3
        reasons.append(f"Multiple concepts ({concepts})")
    elif concepts == 2:
        score += 0.18
        reasons.append("Two concepts")
    elif concepts == 1:
        score += 0.08

    questions = sum(1 for word in QUESTION_WORDS if word in text)
    if questions >= 2:
        score += 0.25
        reasons.append(f"Multiple questions ({questions})")
    elif questions == 1:
        score += 0.12

    technical = sum(1 for pattern in TECHNICAL_PATTERNS if pattern.search(text))
    if technical >= 3:
        score += 0.15
        reasons.append("Complex technical query")

    if CODE_PATTERN.search(text):
        score += 0.1
        reasons.append("Code-related query")

    return min(1.0, score), reasons


def parse_llm_score(content: str) -> tuple[float, str] | None:
    """Extract a complexity score from an LLM answer.

    Tries a JSON object first, then a ``score: x`` fragment, then the first
    number in the text. Returns None when no score in [0, 1] can be found.
    """
    score: float | None = None
    reason = ""

    match = _JSON_OBJECT_RE.search(content)
    if match:
        try:
            parsed = json.loads(match.group(0))
            if isinstance(parsed, dict):
                score = float(parsed.get("score"))
                reason = str(parsed.get("reason") or "")
        except (ValueError, TypeError):
            field_match = _SCORE_FIELD_RE.search(content)
            if field_match:
                try:
                    score = float(field_match.group(1))
                except ValueError:
                    score = None
    else:
        number = _NUMBER_RE.search(content)
        if number:
            score = float(number.group(0))

    if score is None or not 0.0 <= score <= 1.0:
        return None
    return score, reason


class ComplexityDetector:
    """Scores queries and decides whether they need reasoning."""

    def __init__(
        self,
        config: ComplexityConfig | None = None,
        llm: LLMProvider | None = None,
    ):
        self._config = config or ComplexityConfig()
        self._llm = llm

    async def detect(self, query: str) -> ComplexityResult:
        """Score a query.

        Args:
            query: Query text

        Returns:
            ComplexityResult with ``needs_reasoning = score >= threshold``
        """
        threshold = self._config.threshold

        if self._config.llm and self._llm is not None:
            try:
                llm_score = await self._llm_score(query)
                if llm_score > 0:
                    score = min(1.0, max(0.0, llm_score))
                    return ComplexityResult(
                        score=score,
                        needs_reasoning=score >= threshold,
                        reasons=[f"LLM assessed complexity: {score * 100:.0f}%"],
                    )
            except Exception as e:
                logger.warning(f"LLM complexity scoring failed, using heuristics: {e}")

        if self._config.heuristics:
            score, reasons = heuristic_score(query)
            return ComplexityResult(
                score=score, needs_reasoning=score >= threshold, reasons=reasons
            )

        return ComplexityResult(score=0.5, needs_reasoning=False, reasons=[])

    async def _llm_score(self, query: str) -> float:
        assert self._llm is not None
        try:
            response = await self._llm.complete(
                COMPLEXITY_PROMPT.format(query=query),
                max_completion_tokens=150,
                temperature=0.2,
            )
        except Exception as e:
            logger.debug(f"Complexity LLM call failed: {e}")
            return 0.0

        parsed = parse_llm_score(response.content)
        if parsed is None:
            logger.debug(f"Could not parse complexity score from: {response.content[:100]}")
            return 0.5
        return parsed[0]
