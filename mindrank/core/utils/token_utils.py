"""Token estimation helpers."""

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate token count for text as ceil(chars / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)
