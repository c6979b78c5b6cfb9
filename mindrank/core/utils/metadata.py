"""Shape-tolerant readers for chunk metadata values.

Indexers record timestamps and versions in whatever shape their source
gave them. These helpers centralize the parsing so ranking stages read a
single numeric form:

- timestamps: epoch seconds (float)
- trust: float in [0, 1]
- document versions: major * 1e6 + minor * 1e3 + patch
"""

import math
from datetime import date, datetime, timezone
from typing import Any

DEFAULT_TRUST = 0.5

_DOC_PATH_MARKERS = ("/docs/", "/adr/", "/architecture/")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def resolve_timestamp(value: Any) -> float | None:
    """Resolve a metadata timestamp to epoch seconds.

    Supported shapes:
    - ``int``/``float``: epoch seconds (must be finite)
    - ``str``: ISO-8601 date or datetime (``Z`` suffix accepted)
    - ``datetime``/``date``: naive values are treated as UTC

    Any other shape (or an unparseable string) returns None.
    """
    if _is_number(value):
        return float(value) if math.isfinite(value) else None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp()

    return None


def resolve_trust(value: Any) -> float:
    """Clamp a ``source_trust`` value to [0, 1], defaulting to 0.5."""
    if _is_number(value) and math.isfinite(value):
        return max(0.0, min(1.0, float(value)))
    return DEFAULT_TRUST


def parse_doc_version(value: Any) -> float:
    """Parse a document version into a sortable number.

    ``"2.1.3"`` becomes 2_001_003. A leading ``v`` is ignored and
    non-numeric components count as 0. Numbers pass through unchanged.
    """
    if _is_number(value):
        return float(value) if math.isfinite(value) else 0.0
    if not isinstance(value, str) or not value.strip():
        return 0.0

    parts = value.strip().lstrip("vV").split(".")
    numbers: list[int] = []
    for part in parts[:3]:
        try:
            numbers.append(int(part))
        except ValueError:
            numbers.append(0)
    while len(numbers) < 3:
        numbers.append(0)
    major, minor, patch = numbers
    return float(major * 1_000_000 + minor * 1_000 + patch)


def is_doc_path(path: str) -> bool:
    """Whether a path looks like documentation (markdown, docs/adr/architecture dirs)."""
    normalized = path.lower()
    return normalized.endswith(".md") or any(m in normalized for m in _DOC_PATH_MARKERS)
