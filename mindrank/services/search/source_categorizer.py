"""Source categorization and query-aware category boosting.

Each chunk path falls into one of adr/test/config/docs/code/other (first
matching category wins, path patterns before extension patterns). A query
is matched against an ordered table of boost rules; only the first rule
that matches applies its boost and demote multipliers.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from mindrank.core.models import Match

SourceCategory = Literal["adr", "code", "docs", "config", "test", "other"]

_I = re.IGNORECASE


@dataclass(frozen=True)
class SourceCategoryRule:
    category: SourceCategory
    path_patterns: tuple[re.Pattern[str], ...]
    extension_patterns: tuple[re.Pattern[str], ...]
    base_weight: float


SOURCE_CATEGORIES: tuple[SourceCategoryRule, ...] = (
    SourceCategoryRule(
        "adr",
        (re.compile(r"/adr/", _I), re.compile(r"/decisions?/", _I), re.compile(r"ADR-?\d+", _I)),
        (),
        1.0,
    ),
    SourceCategoryRule(
        "test",
        tuple(
            re.compile(p, _I)
            for p in (r"/__tests__/", r"/test/", r"/tests/", r"\.test\.", r"\.spec\.", r"_test\.", r"_spec\.")
        ),
        (re.compile(r"\.(test|spec)\.(ts|tsx|js|jsx)$", _I),),
        0.8,
    ),
    SourceCategoryRule(
        "config",
        (re.compile(r"/config/", _I), re.compile(r"\.config\.", _I), re.compile(r"rc\.", _I)),
        tuple(
            re.compile(p, _I)
            for p in (
                r"\.(json|yaml|yml|toml|ini|env)$",
                r"tsconfig.*\.json$",
                r"package\.json$",
                r"\.eslintrc",
                r"\.prettierrc",
            )
        ),
        0.9,
    ),
    SourceCategoryRule(
        "docs",
        tuple(
            re.compile(p, _I)
            for p in (r"/docs?/", r"/documentation/", r"README", r"CHANGELOG")
        ),
        (re.compile(r"\.md$", _I), re.compile(r"\.mdx$", _I), re.compile(r"\.rst$", _I)),
        0.95,
    ),
    SourceCategoryRule(
        "code",
        (re.compile(r"/src/", _I), re.compile(r"/lib/", _I), re.compile(r"/packages?/", _I)),
        (
            re.compile(r"\.(ts|tsx|js|jsx)$", _I),
            re.compile(r"\.(py|rb|go|rs|java|kt|swift|c|cpp|h)$", _I),
        ),
        1.0,
    ),
)

_BASE_WEIGHTS: dict[str, float] = {rule.category: rule.base_weight for rule in SOURCE_CATEGORIES}


@dataclass(frozen=True)
class QueryBoostRule:
    name: str
    query_patterns: tuple[re.Pattern[str], ...]
    boost_categories: frozenset[str]
    boost_multiplier: float
    demote_categories: frozenset[str] = frozenset()
    demote_multiplier: float = 1.0

    def matches(self, query: str) -> bool:
        return any(p.search(query) for p in self.query_patterns)


def _patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(s, _I) for s in sources)


QUERY_BOOSTS: tuple[QueryBoostRule, ...] = (
    QueryBoostRule(
        "architecture",
        _patterns(
            r"ADR", r"decision", r"architecture", r"design\s+(decision|pattern)",
            r"why\s+(did|do)\s+we", r"strategy", r"approach",
        ),
        frozenset({"adr", "docs"}),
        1.4,
        frozenset({"test", "config"}),
        0.6,
    ),
    QueryBoostRule(
        "implementation",
        _patterns(r"implement", r"function", r"class", r"method", r"interface", r"how.*work", r"code"),
        frozenset({"code"}),
        1.3,
        frozenset({"docs"}),
        0.8,
    ),
    QueryBoostRule(
        "config",
        _patterns(r"config", r"setting", r"option", r"parameter", r"environment", r"\.env"),
        frozenset({"config", "docs"}),
        1.3,
    ),
    QueryBoostRule(
        "test",
        _patterns(r"test", r"spec", r"mock", r"fixture", r"coverage"),
        frozenset({"test"}),
        1.4,
        frozenset({"docs", "adr"}),
        0.7,
    ),
    QueryBoostRule(
        "docs",
        _patterns(r"document", r"readme", r"guide", r"tutorial", r"example", r"usage"),
        frozenset({"docs", "adr"}),
        1.3,
    ),
)


@dataclass(frozen=True)
class CategorizedMatch:
    match: Match
    category: SourceCategory
    category_weight: float


def categorize_file(path: str) -> SourceCategory:
    """Categorize a file path. The first matching category wins."""
    normalized = path.lower()
    for rule in SOURCE_CATEGORIES:
        if any(p.search(normalized) for p in rule.path_patterns):
            return rule.category
        if any(p.search(normalized) for p in rule.extension_patterns):
            return rule.category
    return "other"


def categorize_matches(matches: Sequence[Match]) -> list[CategorizedMatch]:
    result = []
    for match in matches:
        category = categorize_file(match.chunk.path)
        result.append(
            CategorizedMatch(match, category, _BASE_WEIGHTS.get(category, 1.0))
        )
    return result


def find_query_boost(query: str) -> QueryBoostRule | None:
    """Return the first boost rule matching the query, if any."""
    return next((rule for rule in QUERY_BOOSTS if rule.matches(query)), None)


def apply_query_boost(
    matches: Sequence[CategorizedMatch], query: str
) -> list[CategorizedMatch]:
    """Apply the first matching boost rule to every match (unsorted)."""
    rule = find_query_boost(query)
    if rule is None:
        return list(matches)

    boosted = []
    for item in matches:
        score = item.match.score
        if item.category in rule.boost_categories:
            score *= rule.boost_multiplier
        if item.category in rule.demote_categories:
            score *= rule.demote_multiplier
        boosted.append(
            CategorizedMatch(item.match.with_score(score), item.category, item.category_weight)
        )
    return boosted


def group_by_category(
    matches: Sequence[CategorizedMatch],
) -> dict[SourceCategory, list[CategorizedMatch]]:
    groups: dict[SourceCategory, list[CategorizedMatch]] = {
        "adr": [], "code": [], "docs": [], "config": [], "test": [], "other": [],
    }
    for item in matches:
        groups[item.category].append(item)
    return groups


def get_category_stats(matches: Sequence[CategorizedMatch]) -> list[dict[str, object]]:
    """Count and mean score per non-empty category, most populated first."""
    stats = [
        {
            "category": category,
            "count": len(items),
            "avg_score": sum(i.match.score for i in items) / len(items),
        }
        for category, items in group_by_category(matches).items()
        if items
    ]
    stats.sort(key=lambda s: s["count"], reverse=True)
    return stats
