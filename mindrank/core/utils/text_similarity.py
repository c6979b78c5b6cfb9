"""Word-set similarity used for near-duplicate detection."""


def word_set(text: str, min_length: int = 0) -> set[str]:
    """Lowercased whitespace tokens longer than ``min_length`` characters."""
    return {w for w in text.lower().split() if len(w) > min_length}


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """Jaccard similarity of two word sets.

    Two empty sets are identical (1.0); one empty set shares nothing (0.0).
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)
