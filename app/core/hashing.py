"""
Content hashing and normalization utilities.

Deterministic helpers used to deduplicate content across overlapping runs:
title normalization, canonical (hour precision, UTC) published time and the
SHA-256 content hash built from both.
"""

import hashlib
import re
from datetime import UTC, datetime

_PREFIX_RE = re.compile(r"^(breaking|exclusive|watch|live|update):\s*", re.IGNORECASE)
_EMOJI_RE = re.compile(
    "[\U0001F300-\U0001F9FF\u2600-\u26FF\u2700-\u27BF\U0001F600-\U0001F64F\U0001F680-\U0001F6FF\U0001F1E0-\U0001F1FF]",
)
_PUNCT_RE = re.compile(r"[.,!?:;\"'()\[\]{}]")
_WHITESPACE_RE = re.compile(r"\s+")
_SPACED_SUFFIX_RE = re.compile(r"\s+[-–—|]\s+[a-z0-9\s]+$", re.IGNORECASE)
_TIGHT_SUFFIX_RE = re.compile(r"[-–—|][a-z0-9\s]+$", re.IGNORECASE)


def normalize_title(title: str | None) -> str:
    """
    Normalize a title for hashing.

    Lowercases, strips a leading "breaking:"-style prefix, emojis, punctuation
    and a trailing " - Source" suffix, and collapses whitespace. Idempotent.

    Args:
        title: Raw title from the provider

    Returns:
        Normalized title string
    """
    if not title:
        return ""

    normalized = title.lower().strip()
    normalized = _PREFIX_RE.sub("", normalized)
    normalized = _EMOJI_RE.sub("", normalized)
    normalized = _PUNCT_RE.sub("", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _SPACED_SUFFIX_RE.sub("", normalized)
    normalized = _TIGHT_SUFFIX_RE.sub("", normalized)
    return normalized.strip()


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _parse_timestamp(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def canonical_published_time(published_at: datetime | str | None, fetched_at: datetime | None = None) -> datetime:
    """
    Convert a published timestamp to UTC truncated to the hour.

    Missing or unparseable values fall back to ``fetched_at`` (or now).
    """
    parsed = _parse_timestamp(published_at)
    if parsed is None:
        parsed = fetched_at or datetime.now(UTC)

    parsed = ensure_utc(parsed)
    return parsed.replace(minute=0, second=0, microsecond=0)


def format_canonical_time(value: datetime) -> str:
    """Render a canonical time as ``YYYY-MM-DDTHH:00:00.000Z``."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def generate_content_hash(
    title: str,
    source_key: str,
    published_at: datetime | str | None,
    fetched_at: datetime | None = None,
) -> str:
    """
    Generate the SHA-256 content hash used for deduplication.

    Hash input format: ``normalized_title|source_key|2025-12-14T10:00:00.000Z``

    Returns:
        64-character lowercase hex digest
    """
    canonical = canonical_published_time(published_at, fetched_at)
    hash_input = f"{normalize_title(title)}|{source_key}|{format_canonical_time(canonical)}"
    return hashlib.sha256(hash_input.encode("utf-8")).hexdigest()
