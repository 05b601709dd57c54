"""Test configuration and fixtures.

Provides reusable fixtures for:
- Temporary cache directories
- A scripted playback source standing in for an MPRIS player
- A scripted lyric service client
- Sample LRCLIB payloads and cache entries
"""

import queue
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from lyrecho.core.models import LyricData, LyricEntry
from lyrecho.core.player import PlaybackSource, PlayerSignal
from lyrecho.exceptions import LyricsTransportError
from lyrecho.utils.cache import DiskCache


# =============================================================================
# Basic Fixtures
# =============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def disk_cache(temp_dir, clock):
    return DiskCache(temp_dir, clock=clock)


# =============================================================================
# Player Fixtures
# =============================================================================


def make_metadata(
    title: str = "Freaks",
    artist: str = "Surf Curse",
    album: str = "Buds",
    length_us: int = 147_000_000,
    track_id: str = "",
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "xesam:title": title,
        "xesam:artist": [artist],
        "xesam:album": album,
        "mpris:length": length_us,
    }
    if track_id:
        metadata["mpris:trackid"] = track_id
    return metadata


class FakeSource(PlaybackSource):
    """Scripted player: tests set metadata/position/status directly."""

    def __init__(self, metadata=None, position_us: Any = 0, status: Any = "Playing"):
        self.metadata = metadata if metadata is not None else make_metadata()
        self.position_us = position_us
        self.status = status
        self.signals: "queue.Queue[PlayerSignal]" = queue.Queue()
        self.subscribed = False
        self.closed = False
        self.error: Optional[Exception] = None

    def read_metadata(self):
        if self.error:
            raise self.error
        return self.metadata

    def read_position_us(self):
        if self.error:
            raise self.error
        return self.position_us

    def read_playback_status(self):
        if self.error:
            raise self.error
        return self.status

    def subscribe(self):
        self.subscribed = True

    def next_signal(self, timeout):
        try:
            return self.signals.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        self.closed = True


@pytest.fixture
def fake_source():
    return FakeSource()


# =============================================================================
# Lyric service Fixtures
# =============================================================================


SYNCED_LRC = "[00:01.00]first line\n[00:05.50]second line\n[00:10.00]third line"


class FakeClient:
    """Lyric client returning scripted results per call, in order.

    Each scripted item is either LyricData (returned) or an exception (raised).
    Once the script runs out, every call raises "status 404: lyrics not found".
    """

    def __init__(self, results: Optional[List[Any]] = None):
        self.results = list(results or [])
        self.calls: List[Any] = []

    def get(self, candidate, timeout=None):
        self.calls.append(candidate)
        if not self.results:
            raise LyricsTransportError("status 404: lyrics not found")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        pass


def make_lyrics(**overrides) -> LyricData:
    values = dict(
        track_name="Freaks",
        artist_name="Surf Curse",
        album_name="Buds",
        duration=147.0,
        plain_lyrics="first line\nsecond line\nthird line",
        synced_lyrics=SYNCED_LRC,
        source="lrclib",
    )
    values.update(overrides)
    return LyricData(**values)


def make_entry(**overrides) -> LyricEntry:
    return make_lyrics(**overrides).to_entry()


@pytest.fixture
def lyrics_payload():
    """LRCLIB /api/get response for Surf Curse - Freaks."""
    return {
        "id": 3396226,
        "trackName": "Freaks",
        "artistName": "Surf Curse",
        "albumName": "Buds",
        "duration": 147,
        "instrumental": False,
        "plainLyrics": "first line\nsecond line\nthird line",
        "syncedLyrics": SYNCED_LRC,
    }
