"""Data models for playback state, cached lyrics and timed lyric lines."""

import copy
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from ..config import CACHE_VERSION, SEEK_THRESHOLD_SECONDS


@dataclass
class TrackInfo:
    """Metadata for the track currently reported by the player."""

    title: str
    artist: str
    album: str = ""
    duration_secs: int = 0
    artwork_url: str = ""
    track_id: str = ""

    def is_valid(self) -> bool:
        """A track without title or artist means nothing meaningful is playing."""
        return bool(self.title) and bool(self.artist)

    def is_same_track(self, other: Optional["TrackInfo"]) -> bool:
        """Opaque ids win when both sides have one, else exact (title, artist)."""
        if other is None:
            return False
        if self.track_id and other.track_id:
            return self.track_id == other.track_id
        return self.title == other.title and self.artist == other.artist


@dataclass
class PlayerState:
    """Best-known view of the player.

    ``_last_position`` and ``_last_update`` feed the seek heuristic only and
    are not part of the public state.
    """

    track: Optional[TrackInfo] = None
    position_secs: int = 0
    playing: bool = False
    _last_position: int = field(default=0, repr=False, compare=False)
    _last_update: Optional[float] = field(default=None, repr=False, compare=False)

    def detect_seek(
        self,
        new_position: int,
        now: float,
        threshold: float = SEEK_THRESHOLD_SECONDS,
    ) -> bool:
        """Return True when ``new_position`` is inconsistent with elapsed time."""
        if self._last_update is None:
            return False

        elapsed = max(0.0, now - self._last_update)
        expected = self._last_position + elapsed
        return abs(new_position - expected) > threshold

    def update_position(self, position: int, now: float) -> None:
        self.position_secs = position
        self._last_position = position
        self._last_update = now

    def touch(self, now: float) -> None:
        """Restart elapsed-time accounting without moving the baseline position."""
        self._last_update = now

    def copy(self) -> "PlayerState":
        return copy.deepcopy(self)


class EventType(str, Enum):
    """Kinds of playback events surfaced to the presentation layer."""

    TRACK_CHANGED = "track_changed"
    SEEKED = "seeked"
    PLAYBACK_STATE_CHANGED = "playback_state_changed"


@dataclass
class PlayerEvent:
    type: EventType
    track: Optional[TrackInfo] = None
    position: int = 0
    playing: bool = False


class TimedLine(NamedTuple):
    """One synced lyric line."""

    time_seconds: float
    text: str


class Candidate(NamedTuple):
    """One query variant sent to the lyric service."""

    artist: str
    title: str
    album: str = ""
    duration: int = 0


class CacheStats(NamedTuple):
    count: int
    size_bytes: int


@dataclass
class LyricEntry:
    """Resolved lyric data as persisted by the disk cache."""

    track_name: str = ""
    artist_name: str = ""
    album_name: str = ""
    duration: float = 0.0
    instrumental: bool = False
    plain_lyrics: str = ""
    synced_lyrics: str = ""
    sync_offset: float = 0.0
    version: int = CACHE_VERSION
    created_at: int = 0
    expires_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LyricEntry":
        """Build an entry from decoded data, rejecting missing or mistyped fields."""
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")

        values: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                raise ValueError(f"missing field {f.name!r}")
            value = data[f.name]
            if f.type in ("str", str) and not isinstance(value, str):
                raise ValueError(f"field {f.name!r} must be a string")
            if f.type in ("bool", bool) and not isinstance(value, bool):
                raise ValueError(f"field {f.name!r} must be a boolean")
            if f.type in ("int", int) and (
                not isinstance(value, int) or isinstance(value, bool)
            ):
                raise ValueError(f"field {f.name!r} must be an integer")
            if f.type in ("float", float):
                if not isinstance(value, (int, float)) or isinstance(value, bool):
                    raise ValueError(f"field {f.name!r} must be a number")
                value = float(value)
            values[f.name] = value
        return cls(**values)


@dataclass
class LyricData:
    """Lyrics returned by the resolver, either from cache or the lyric service."""

    track_name: str = ""
    artist_name: str = ""
    album_name: str = ""
    duration: float = 0.0
    instrumental: bool = False
    plain_lyrics: str = ""
    synced_lyrics: str = ""
    sync_offset: float = 0.0
    source: str = "lrclib"  # "lrclib" | "cache"

    @classmethod
    def from_entry(cls, entry: LyricEntry, source: str = "cache") -> "LyricData":
        return cls(
            track_name=entry.track_name,
            artist_name=entry.artist_name,
            album_name=entry.album_name,
            duration=entry.duration,
            instrumental=entry.instrumental,
            plain_lyrics=entry.plain_lyrics,
            synced_lyrics=entry.synced_lyrics,
            sync_offset=entry.sync_offset,
            source=source,
        )

    def to_entry(self) -> LyricEntry:
        return LyricEntry(
            track_name=self.track_name,
            artist_name=self.artist_name,
            album_name=self.album_name,
            duration=self.duration,
            instrumental=self.instrumental,
            plain_lyrics=self.plain_lyrics,
            synced_lyrics=self.synced_lyrics,
            sync_offset=self.sync_offset,
        )

    def has_content(self) -> bool:
        return bool(self.plain_lyrics or self.synced_lyrics or self.instrumental)

    def has_synced(self) -> bool:
        return bool(self.synced_lyrics)

    def lines(self) -> List[TimedLine]:
        from .lrc import parse_synced

        return parse_synced(self.synced_lyrics)
