"""LLM-backed context compression.

Rewrites chunk text down to the parts a query needs. Used by the reasoning
engine on the synthesized context; callers treat any exception as "keep the
original text".
"""

import asyncio
from collections.abc import Sequence

from loguru import logger

from mindrank.core.exceptions import LLMProviderError
from mindrank.core.models import Chunk
from mindrank.interfaces.llm_provider import LLMProvider

COMPRESSION_PROMPT = """Compress the following content so that it keeps only what is needed to answer the query.

Query: "{query}"

Source: {path} (lines {start}-{end})

Content:
{text}

Rules:
- Keep code identifiers, signatures, file paths and line references exactly
- Drop boilerplate, repetition and unrelated details
- Do not add information that is not in the content

Respond with ONLY the compressed content."""


class LLMContextCompressor:
    """Compresses chunk text with an LLM.

    Text shorter than ``min_tokens`` is returned unchanged. A response that
    is empty or longer than the input is rejected.
    """

    def __init__(
        self,
        llm: LLMProvider,
        max_completion_tokens: int = 2000,
        min_tokens: int = 200,
        max_concurrency: int = 3,
    ):
        self._llm = llm
        self._max_completion_tokens = max_completion_tokens
        self._min_tokens = min_tokens
        self._max_concurrency = max_concurrency

    async def compress(self, chunk: Chunk, query_text: str) -> str:
        """Compress one chunk.

        Raises:
            LLMProviderError: The LLM call failed or produced unusable output
        """
        original_tokens = self._llm.estimate_tokens(chunk.text)
        if original_tokens < self._min_tokens:
            return chunk.text

        prompt = COMPRESSION_PROMPT.format(
            query=query_text,
            path=chunk.path,
            start=chunk.start_line,
            end=chunk.end_line,
            text=chunk.text,
        )
        response = await self._llm.complete(
            prompt,
            max_completion_tokens=self._max_completion_tokens,
            temperature=0.1,
        )

        compressed = response.content.strip()
        if not compressed:
            raise LLMProviderError("Compression returned empty content")
        if len(compressed) >= len(chunk.text):
            raise LLMProviderError("Compression did not reduce content size")

        logger.debug(
            f"Compressed {chunk.chunk_id}: {original_tokens:,} -> "
            f"{self._llm.estimate_tokens(compressed):,} tokens"
        )
        return compressed

    async def compress_batch(self, chunks: Sequence[Chunk], query_text: str) -> list[str]:
        """Compress several chunks concurrently.

        A chunk whose compression fails keeps its original text.
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def compress_with_limit(chunk: Chunk) -> str:
            async with semaphore:
                return await self.compress(chunk, query_text)

        results = await asyncio.gather(
            *(compress_with_limit(c) for c in chunks), return_exceptions=True
        )
        compressed: list[str] = []
        for chunk, result in zip(chunks, results):
            if isinstance(result, BaseException):
                logger.warning(f"Compression failed for {chunk.chunk_id}: {result}")
                compressed.append(chunk.text)
            else:
                compressed.append(result)
        return compressed
