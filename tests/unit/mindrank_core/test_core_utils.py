"""Tests for metadata readers, token estimation and text similarity."""

from datetime import date, datetime, timezone

import pytest

from mindrank.core.utils import (
    estimate_tokens,
    is_doc_path,
    jaccard_similarity,
    parse_doc_version,
    resolve_timestamp,
    resolve_trust,
    word_set,
)


class TestResolveTimestamp:
    def test_numbers(self):
        assert resolve_timestamp(1_700_000_000) == 1_700_000_000.0
        assert resolve_timestamp(float("nan")) is None
        assert resolve_timestamp(True) is None

    def test_iso_strings(self):
        assert resolve_timestamp("2023-11-14T22:13:20Z") == pytest.approx(1_700_000_000.0)
        assert resolve_timestamp("2024-01-01") == pytest.approx(
            datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()
        )
        assert resolve_timestamp("not a date") is None
        assert resolve_timestamp("") is None

    def test_datetime_and_date(self):
        aware = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert resolve_timestamp(aware) == aware.timestamp()
        assert resolve_timestamp(datetime(2024, 1, 1)) == aware.timestamp()
        assert resolve_timestamp(date(2024, 1, 1)) == aware.timestamp()

    def test_other_shapes(self):
        assert resolve_timestamp(None) is None
        assert resolve_timestamp({"ts": 1}) is None


class TestResolveTrust:
    def test_clamps_and_defaults(self):
        assert resolve_trust(0.9) == 0.9
        assert resolve_trust(5) == 1.0
        assert resolve_trust(-1) == 0.0
        assert resolve_trust(None) == 0.5
        assert resolve_trust("high") == 0.5


class TestParseDocVersion:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2.1.3", 2_001_003),
            ("v1.10", 1_010_000),
            ("1.x.2", 1_000_002),
            (3, 3),
            (None, 0),
            ("", 0),
        ],
    )
    def test_versions(self, value, expected):
        assert parse_doc_version(value) == expected


class TestMisc:
    def test_is_doc_path(self):
        assert is_doc_path("README.md")
        assert is_doc_path("project/docs/setup.txt")
        assert not is_doc_path("src/main.py")

    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcde") == 2

    def test_jaccard(self):
        assert jaccard_similarity(set(), set()) == 1.0
        assert jaccard_similarity({"a"}, set()) == 0.0
        assert jaccard_similarity({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)

    def test_word_set_min_length(self):
        assert word_set("A bb CCC", min_length=2) == {"ccc"}
