"""Core utilities package."""

from .metadata import (
    is_doc_path,
    parse_doc_version,
    resolve_timestamp,
    resolve_trust,
)
from .text_similarity import jaccard_similarity, word_set
from .token_utils import estimate_tokens

__all__ = [
    "estimate_tokens",
    "is_doc_path",
    "jaccard_similarity",
    "parse_doc_version",
    "resolve_timestamp",
    "resolve_trust",
    "word_set",
]
