"""BM25 keyword search over an in-memory chunk list.

The inverted index is built in one pass over the filtered corpus for every
query. Scores are

    idf(t) = ln((N - df + 0.5) / (df + 0.5) + 1)
    tf'(t) = tf * (k1 + 1) / (tf + k1 * (1 - b + b * len / avg_len))
    score  = sum over query terms of idf(t) * tf'(t)
"""

import math
import re
from collections import Counter, defaultdict
from collections.abc import Sequence

from mindrank.core.config.search_config import KeywordSearchConfig
from mindrank.core.models import Chunk, Match, SearchFilters

_NON_WORD_RE = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lowercase, replace punctuation with spaces, split on whitespace."""
    return _NON_WORD_RE.sub(" ", text.lower()).split()


def keyword_search(
    chunks: Sequence[Chunk],
    query: str,
    limit: int,
    config: KeywordSearchConfig | None = None,
    filters: SearchFilters | None = None,
) -> list[Match]:
    """Rank chunks against a query with BM25.

    Args:
        chunks: Corpus to search
        query: Query text
        limit: Maximum number of matches
        config: BM25 parameters (k1, b, min_score)
        filters: Optional source/path filters applied before indexing

    Returns:
        Matches sorted by descending score, at most ``limit``
    """
    config = config or KeywordSearchConfig()

    if filters is not None:
        chunks = [c for c in chunks if filters.accepts(c)]

    query_terms = tokenize(query)
    if not chunks or not query_terms or limit <= 0:
        return []

    term_freqs: list[Counter[str]] = []
    lengths: list[int] = []
    postings: dict[str, set[int]] = defaultdict(set)
    for index, chunk in enumerate(chunks):
        tokens = tokenize(chunk.text)
        counts = Counter(tokens)
        term_freqs.append(counts)
        lengths.append(len(tokens))
        for term in counts:
            postings[term].add(index)

    n_docs = len(chunks)
    avg_len = sum(lengths) / n_docs or 1.0
    k1, b = config.k1, config.b

    scores = [0.0] * n_docs
    for term in query_terms:
        doc_ids = postings.get(term)
        if not doc_ids:
            continue
        df = len(doc_ids)
        idf = math.log((n_docs - df + 0.5) / (df + 0.5) + 1)
        for index in doc_ids:
            tf = term_freqs[index][term]
            norm = tf * (k1 + 1) / (tf + k1 * (1 - b + b * lengths[index] / avg_len))
            scores[index] += idf * norm

    matches = [
        Match(chunk=chunks[i], score=score)
        for i, score in enumerate(scores)
        if score >= config.min_score
    ]
    matches.sort(key=lambda m: m.score, reverse=True)
    return matches[:limit]
