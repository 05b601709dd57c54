"""Validation utilities."""

import re
from typing import Tuple

from ..config import MAX_SYNC_OFFSET
from ..exceptions import ValidationError

_WHITESPACE_RE = re.compile(r"\s+")

SORT_KEYS = ("date", "artist", "title")


def collapse_whitespace(text: str) -> str:
    """Trim and collapse internal runs of whitespace to a single space."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def validate_track_query(artist: str, title: str) -> Tuple[str, str]:
    """Validate a lyric query and return the normalized (artist, title) pair."""
    normalized_artist = collapse_whitespace(artist)
    normalized_title = collapse_whitespace(title)

    if not normalized_title or not normalized_artist:
        raise ValidationError("track title or artist is empty")

    return normalized_artist, normalized_title


def validate_offset(offset: float) -> float:
    """Validate a lyric sync offset."""
    if abs(offset) > MAX_SYNC_OFFSET:
        raise ValidationError(
            f"Sync offset must be between -{MAX_SYNC_OFFSET:g} and +{MAX_SYNC_OFFSET:g} seconds"
        )
    return offset


def validate_sort_key(sort_by: str) -> str:
    """Validate cache listing sort key."""
    key = (sort_by or "").lower().strip()
    if key not in SORT_KEYS:
        raise ValidationError(
            f"Invalid sort key: {sort_by}. Use one of: {', '.join(SORT_KEYS)}"
        )
    return key
