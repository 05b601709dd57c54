"""Execution helpers for CLI commands."""

import queue
import threading
import time
from datetime import datetime
from typing import Callable, List, Optional

import click

from .config import POLL_INTERVAL
from .core.lrc import find_current_line_index, format_timestamp
from .core.lyrics import LyricsResolver
from .core.models import EventType, LyricData, LyricEntry, PlayerEvent, TimedLine
from .core.player import TrackObserver
from .exceptions import LyricsCancelledError, LyricsError, PlayerError, ValidationError
from .utils.cache import DiskCache
from .utils.logging import get_logger
from .utils.validation import validate_sort_key

logger = get_logger(__name__)


# ----------------------
# Formatting
# ----------------------


def format_bytes(size: int) -> str:
    """Human-readable byte count using binary units (``1.5 KB``)."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def format_duration(seconds: int) -> str:
    """``m:ss`` for a whole-second duration."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_date(timestamp: int, with_time: bool = False) -> str:
    fmt = "%Y-%m-%d %H:%M:%S" if with_time else "%Y-%m-%d"
    return datetime.fromtimestamp(timestamp).strftime(fmt)


def sort_entries(entries: List[LyricEntry], sort_by: str = "date") -> List[LyricEntry]:
    """Sort cache entries for listing. Newest first for ``date``."""
    key = validate_sort_key(sort_by)
    if key == "artist":
        return sorted(entries, key=lambda e: (e.artist_name.lower(), e.track_name.lower()))
    if key == "title":
        return sorted(entries, key=lambda e: e.track_name.lower())
    return sorted(entries, key=lambda e: e.created_at, reverse=True)


def count_lines(text: str) -> int:
    return len(text.split("\n")) if text else 0


# ----------------------
# Cache commands
# ----------------------


def echo_suggestions(cache: DiskCache, artist: str, title: str) -> bool:
    """Print "did you mean" hints to stderr; return True if any were shown."""
    suggestions = cache.find_similar(artist, title)
    if not suggestions:
        return False
    click.echo("song not found in cache\n", err=True)
    click.echo("did you mean one of these?", err=True)
    for entry in suggestions:
        click.echo(f"  {entry.artist_name} - {entry.track_name}", err=True)
    return True


def echo_entry_table(entries: List[LyricEntry]) -> None:
    rows = [("ARTIST", "TITLE", "SYNC OFFSET", "CACHED")]
    for entry in entries:
        offset = f"{entry.sync_offset:.1f}s" if entry.sync_offset else "-"
        rows.append(
            (entry.artist_name, entry.track_name, offset, format_date(entry.created_at))
        )

    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    for row in rows:
        click.echo("  ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip())

    click.echo(f"\ntotal: {len(entries)} songs")


def echo_entry_details(entry: LyricEntry) -> None:
    click.echo(f"artist:       {entry.artist_name}")
    click.echo(f"title:        {entry.track_name}")
    click.echo(f"album:        {entry.album_name}")
    click.echo(f"duration:     {entry.duration:.1f}s")
    click.echo(f"sync offset:  {entry.sync_offset:.2f}s")
    click.echo(f"instrumental: {str(entry.instrumental).lower()}")
    click.echo(f"cached:       {format_date(entry.created_at, with_time=True)}")
    click.echo(f"expires:      {format_date(entry.expires_at, with_time=True)}")

    if entry.synced_lyrics:
        click.echo(f"\nsynced lyrics: {count_lines(entry.synced_lyrics)} lines")
    elif entry.plain_lyrics:
        click.echo(f"\nplain lyrics: {count_lines(entry.plain_lyrics)} lines (no sync data)")
    else:
        click.echo("\nno lyrics available")


# ----------------------
# Lyrics commands
# ----------------------


def echo_lyrics_summary(data: LyricData) -> None:
    click.echo("found lyrics:")
    click.echo(f"  track:        {data.track_name}")
    click.echo(f"  artist:       {data.artist_name}")
    if data.album_name:
        click.echo(f"  album:        {data.album_name}")
    if data.duration > 0:
        click.echo(f"  duration:     {data.duration:.0f}s")
    click.echo(f"  instrumental: {str(data.instrumental).lower()}")

    lines = data.lines()
    click.echo(f"  synced lines: {len(lines) if lines else 'none'}")
    plain = count_lines(data.plain_lyrics)
    click.echo(f"  plain lines:  {plain if plain else 'none'}")


def echo_lyrics_preview(data: LyricData) -> None:
    click.echo(f"\n{data.artist_name} - {data.track_name}")
    if data.album_name:
        click.echo(data.album_name)
    click.echo("-" * 60)

    if data.instrumental:
        click.echo("\n[instrumental]")
        return

    if data.synced_lyrics:
        lines = data.lines()
        if not lines:
            click.echo("\nno valid synced lyrics found")
            return
        click.echo(f"\nsynced lyrics ({len(lines)} lines):\n")
        for line in lines:
            click.echo(f"[{format_timestamp(line.time_seconds)}] {line.text}")
        if data.sync_offset:
            click.echo(f"\nsync offset: {data.sync_offset:.2f}s")
    elif data.plain_lyrics:
        click.echo("\nplain lyrics (no timestamps):\n")
        click.echo(data.plain_lyrics)
    else:
        click.echo("\nno lyrics available")


# ----------------------
# Player watch
# ----------------------


class LyricsFollower:
    """Prints the active lyric line for whatever the observer reports.

    Resolution runs on a worker thread per track; a newer track cancels the
    older lookup.
    """

    def __init__(
        self,
        resolver: LyricsResolver,
        echo: Callable[[str], None] = click.echo,
        default_offset: float = 0.0,
    ):
        self.resolver = resolver
        self.echo = echo
        self.default_offset = default_offset
        self._lock = threading.Lock()
        self._lines: List[TimedLine] = []
        self._offset = default_offset
        self._current_index = -1
        self._cancel: Optional[threading.Event] = None

    def on_event(self, event: PlayerEvent) -> None:
        if event.type == EventType.TRACK_CHANGED and event.track is not None:
            track = event.track
            self.echo(f"now playing: {track.artist} - {track.title}")
            self._start_lookup(track.artist, track.title, track.album, track.duration_secs)
        elif event.type == EventType.SEEKED:
            self.echo(f"seeked to {format_duration(event.position)}")
            with self._lock:
                self._current_index = -1
        elif event.type == EventType.PLAYBACK_STATE_CHANGED:
            self.echo("playing" if event.playing else "paused")

    def _start_lookup(self, artist: str, title: str, album: str, duration: int) -> None:
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
            cancel = threading.Event()
            self._cancel = cancel
            self._lines = []
            self._offset = self.default_offset
            self._current_index = -1

        worker = threading.Thread(
            target=self._lookup,
            args=(artist, title, album, duration, cancel),
            name="lyrecho-lyrics",
            daemon=True,
        )
        worker.start()

    def _lookup(
        self, artist: str, title: str, album: str, duration: int, cancel: threading.Event
    ) -> None:
        try:
            data = self.resolver.resolve(artist, title, album, duration, cancel=cancel)
        except LyricsCancelledError:
            return
        except (LyricsError, ValidationError) as e:
            if not cancel.is_set():
                self.echo(f"lyrics unavailable: {e}")
            return

        with self._lock:
            if cancel.is_set():
                return
            self._lines = data.lines()
            # a saved per-song offset wins over the session default
            self._offset = data.sync_offset or self.default_offset
        if data.instrumental:
            self.echo("[instrumental]")
        elif not data.has_synced():
            self.echo("only plain lyrics available (no timing)")

    def on_position(self, position: float) -> None:
        with self._lock:
            lines = self._lines
            index = find_current_line_index(lines, position + self._offset)
            if index < 0 or index == self._current_index:
                return
            self._current_index = index
            text = lines[index].text
        self.echo(f"  {text}")

    def stop(self) -> None:
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()


def run_watch(
    observer: TrackObserver,
    follower: LyricsFollower,
    seconds: float = 0,
    poll_interval: float = POLL_INTERVAL,
) -> None:
    """Poll the player and print lyrics until interrupted or ``seconds`` elapse."""
    deadline = time.monotonic() + seconds if seconds > 0 else None
    observer.start()
    try:
        while deadline is None or time.monotonic() < deadline:
            try:
                observer.poll()
            except PlayerError as e:
                logger.debug(f"Poll failed: {e}")

            while True:
                try:
                    event = observer.events.get_nowait()
                except queue.Empty:
                    break
                follower.on_event(event)

            follower.on_position(observer.get_state().position_secs)
            time.sleep(poll_interval)
    finally:
        follower.stop()
        observer.stop()
