"""Result synthesis - merge sub-query matches into one context."""

from collections.abc import Sequence

from loguru import logger

from mindrank.core.models import Match
from mindrank.core.outcome import Fallback, Ok, Outcome
from mindrank.core.utils.text_similarity import jaccard_similarity, word_set
from mindrank.interfaces.llm_provider import LLMProvider
from mindrank.services.reasoning.models import SynthesisResult

CONTEXT_SEPARATOR = "\n\n---\n\n"
DUPLICATE_THRESHOLD = 0.95
LLM_SYNTHESIS_MAX_CHUNKS = 20

SYNTHESIS_PROMPT = """You are synthesizing search results into a coherent context to answer this query: "{query}"

Search results:
{results}

Synthesize these results into a clear, well-organized context that directly addresses the query.
- Preserve important code examples and technical details
- Remove redundancy and duplicates
- Maintain logical flow
- Keep file paths and line numbers for reference
- Focus on the most relevant information

Respond with ONLY the synthesized context, no explanations or meta-commentary."""


def format_match(match: Match) -> str:
    chunk = match.chunk
    return (
        f"Path: {chunk.path}\n"
        f"Lines: {chunk.start_line}-{chunk.end_line}\n"
        f"Score: {match.score:.3f}\n\n"
        f"{chunk.text}"
    )


def format_context(matches: Sequence[Match]) -> str:
    """Plain-text context: one Path/Lines/Score block per match."""
    return CONTEXT_SEPARATOR.join(format_match(m) for m in matches)


def deduplicate_matches(matches: Sequence[Match]) -> list[Match]:
    """Drop repeated chunk ids and near-identical texts, then sort by score."""
    kept: list[Match] = []
    seen_ids: set[str] = set()
    kept_words: list[set[str]] = []

    for match in matches:
        if match.chunk_id in seen_ids:
            continue
        words = word_set(match.chunk.text)
        if any(jaccard_similarity(words, other) > DUPLICATE_THRESHOLD for other in kept_words):
            continue
        kept.append(match)
        seen_ids.add(match.chunk_id)
        kept_words.append(words)

    kept.sort(key=lambda m: m.score, reverse=True)
    return kept


class ResultSynthesizer:
    """Builds the merged context for a reasoning run.

    With ``llm_synthesis`` on, the top matches are rewritten by the LLM
    into one context. Otherwise, or when the LLM fails, the context is the
    plain concatenation of every deduplicated match.
    """

    def __init__(self, llm: LLMProvider | None = None, llm_synthesis: bool = False):
        self._llm = llm
        self._llm_synthesis = llm_synthesis

    async def synthesize(
        self, query_text: str, matches: Sequence[Match]
    ) -> Outcome[SynthesisResult]:
        unique = deduplicate_matches(matches)

        def concatenated() -> SynthesisResult:
            return SynthesisResult(
                context=format_context(unique),
                matches=unique,
                original_count=len(matches),
                deduplicated_count=len(unique),
            )

        if not self._llm_synthesis:
            return Ok(concatenated())
        if self._llm is None:
            return Fallback(concatenated(), "llm_unavailable")

        prompt = SYNTHESIS_PROMPT.format(
            query=query_text,
            results=format_context(unique[:LLM_SYNTHESIS_MAX_CHUNKS]),
        )
        try:
            response = await self._llm.complete(
                prompt, max_completion_tokens=4000, temperature=0.2
            )
        except Exception as e:
            logger.warning(f"LLM synthesis failed, using concatenated context: {e}")
            return Fallback(concatenated(), "llm_error")

        if not response.content.strip():
            return Fallback(concatenated(), "llm_malformed_output")

        return Ok(
            SynthesisResult(
                context=response.content.strip(),
                matches=unique,
                original_count=len(matches),
                deduplicated_count=len(unique),
            )
        )
