"""
Unit tests for title normalization and content hashing.
"""

from datetime import UTC, datetime, timedelta, timezone

from app.core.hashing import (
    canonical_published_time,
    ensure_utc,
    format_canonical_time,
    generate_content_hash,
    normalize_title,
)

FETCHED_AT = datetime(2025, 12, 14, 10, 42, 7, tzinfo=UTC)


class TestNormalizeTitle:
    def test_lowercases_and_collapses_whitespace(self):
        assert normalize_title("  Big   News  Today ") == "big news today"

    def test_strips_breaking_prefix(self):
        assert normalize_title("BREAKING: Markets rally") == "markets rally"
        assert normalize_title("Live:   Election night") == "election night"

    def test_strips_emoji_and_punctuation(self):
        assert normalize_title("Goal!!! \U0001F525 (Late winner)") == "goal late winner"

    def test_strips_trailing_source_suffix(self):
        assert normalize_title("Storm hits coast - Reuters") == "storm hits coast"
        assert normalize_title("Storm hits coast | BBC News") == "storm hits coast"

    def test_empty_values(self):
        assert normalize_title("") == ""
        assert normalize_title(None) == ""

    def test_idempotent(self):
        once = normalize_title("EXCLUSIVE: The ☀ Summer's Best Films - Variety")
        assert normalize_title(once) == once


class TestCanonicalTime:
    def test_truncates_to_hour_in_utc(self):
        published = datetime(2025, 12, 14, 12, 59, 59, tzinfo=timezone(timedelta(hours=2)))
        assert canonical_published_time(published) == datetime(2025, 12, 14, 10, 0, tzinfo=UTC)

    def test_parses_iso_strings(self):
        assert canonical_published_time("2025-12-14T10:42:00Z") == datetime(2025, 12, 14, 10, 0, tzinfo=UTC)

    def test_falls_back_to_fetch_time(self):
        assert canonical_published_time(None, FETCHED_AT) == datetime(2025, 12, 14, 10, 0, tzinfo=UTC)
        assert canonical_published_time("not a date", FETCHED_AT) == datetime(2025, 12, 14, 10, 0, tzinfo=UTC)

    def test_naive_datetimes_are_treated_as_utc(self):
        assert ensure_utc(datetime(2025, 1, 1, 5)) == datetime(2025, 1, 1, 5, tzinfo=UTC)

    def test_format(self):
        assert format_canonical_time(datetime(2025, 12, 14, 10, tzinfo=UTC)) == "2025-12-14T10:00:00.000Z"


class TestGenerateContentHash:
    def test_is_sha256_hex(self):
        digest = generate_content_hash("Title", "acme-news", None, FETCHED_AT)
        assert len(digest) == 64
        assert all(c in "0123456789abcdef" for c in digest)

    def test_identical_inputs_hash_identically(self):
        first = generate_content_hash("Storm hits coast", "acme-news", "2025-12-14T10:05:00Z", FETCHED_AT)
        second = generate_content_hash("Storm hits coast", "acme-news", "2025-12-14T10:05:00Z", FETCHED_AT)
        assert first == second

    def test_cosmetic_title_changes_within_same_hour_collide(self):
        first = generate_content_hash("Storm hits coast", "acme-news", "2025-12-14T10:05:00Z")
        second = generate_content_hash("BREAKING: Storm hits coast!", "acme-news", "2025-12-14T10:55:00Z")
        assert first == second

    def test_source_key_and_hour_change_the_hash(self):
        base = generate_content_hash("Storm hits coast", "acme-news", "2025-12-14T10:05:00Z")
        assert generate_content_hash("Storm hits coast", "other-news", "2025-12-14T10:05:00Z") != base
        assert generate_content_hash("Storm hits coast", "acme-news", "2025-12-14T11:05:00Z") != base
