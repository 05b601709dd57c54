"""Persistent lyrics cache.

Two tiers: an in-process dict in front of one file per entry on disk. Files
are written atomically (temp file, fsync, rename) so a reader never sees a
half-written entry. When the cache directory cannot be created the cache
keeps working from memory alone.

File layout: ``<key>.bin`` where key is the first 24 hex chars of
sha256(lower(artist) + "|" + lower(title)). Content is the ``LYRC`` magic,
one schema-version byte and a UTF-8 JSON object of the entry fields.
"""

import hashlib
import json
import os
import tempfile
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..config import (
    CACHE_FILE_SUFFIX,
    CACHE_KEY_HEX_CHARS,
    CACHE_TTL_DAYS,
    CACHE_VERSION,
    get_cache_dir,
)
from ..core.models import CacheStats, LyricEntry
from ..exceptions import (
    CacheCorrupt,
    CacheError,
    CacheExpired,
    CacheMiss,
    ValidationError,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

_MAGIC = b"LYRC"
_HEADER_SIZE = len(_MAGIC) + 1


def generate_key(artist: str, title: str) -> str:
    """Stable cache key for an (artist, title) pair, case-insensitive."""
    normalized = artist.lower() + "|" + title.lower()
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return digest[:CACHE_KEY_HEX_CHARS]


def encode_entry(entry: LyricEntry) -> bytes:
    payload = json.dumps(entry.to_dict(), ensure_ascii=False).encode("utf-8")
    return _MAGIC + bytes([entry.version & 0xFF]) + payload


def decode_entry(data: bytes) -> LyricEntry:
    """Decode a cache file. Raises CacheCorrupt on any malformed or stale record."""
    if len(data) < _HEADER_SIZE or data[: len(_MAGIC)] != _MAGIC:
        raise CacheCorrupt("bad cache file header")

    version = data[len(_MAGIC)]
    if version != CACHE_VERSION:
        raise CacheCorrupt(f"cache schema version {version} != {CACHE_VERSION}")

    try:
        entry = LyricEntry.from_dict(json.loads(data[_HEADER_SIZE:].decode("utf-8")))
    except (UnicodeDecodeError, ValueError, TypeError) as e:
        raise CacheCorrupt(f"undecodable cache entry: {e}") from e

    if entry.version != CACHE_VERSION:
        raise CacheCorrupt(f"cache entry version {entry.version} != {CACHE_VERSION}")
    return entry


class DiskCache:
    """Memory + file cache of resolved lyrics keyed by (artist, title)."""

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        ttl_days: int = CACHE_TTL_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = int(ttl_days * 24 * 60 * 60)
        self._clock = clock
        self._lock = threading.Lock()
        self._memory: Dict[str, LyricEntry] = {}

        target = Path(cache_dir) if cache_dir is not None else get_cache_dir()
        try:
            target.mkdir(parents=True, exist_ok=True)
            if not os.access(target, os.W_OK):
                raise PermissionError(f"cache directory is not writable: {target}")
            self.cache_dir: Optional[Path] = target
        except OSError as e:
            logger.warning(f"Lyrics cache unavailable on disk ({e}); using memory only")
            self.cache_dir = None

    @property
    def persistent(self) -> bool:
        return self.cache_dir is not None

    def _now(self) -> int:
        return int(self._clock())

    def get_file_path(self, key: str) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        return self.cache_dir / f"{key}{CACHE_FILE_SUFFIX}"

    def _iter_files(self) -> List[Path]:
        if self.cache_dir is None:
            return []
        try:
            return sorted(
                p for p in self.cache_dir.iterdir()
                if p.is_file() and p.suffix == CACHE_FILE_SUFFIX
            )
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning(f"Failed to scan cache directory {self.cache_dir}: {e}")
            return []

    def _read_file(self, path: Path) -> LyricEntry:
        """Read one cache file; corrupt and stale files are deleted before raising."""
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise CacheMiss(str(path.name))
        except OSError as e:
            raise CacheError(f"Failed to read cache file {path.name}: {e}") from e

        try:
            return decode_entry(data)
        except CacheCorrupt:
            _remove_quietly(path)
            raise

    def _write_file(self, path: Path, entry: LyricEntry) -> None:
        """Write ``entry`` to ``path`` through a synced temp file and an atomic rename."""
        fd, tmp_name = tempfile.mkstemp(
            dir=str(path.parent), prefix=path.stem + ".", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(encode_entry(entry))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            _remove_quietly(Path(tmp_name))
            raise

    def get(self, artist: str, title: str) -> LyricEntry:
        """Return a cached entry.

        Raises:
            CacheMiss: nothing stored (or empty artist/title)
            CacheExpired: the entry outlived its TTL and has been removed
            CacheCorrupt: the file could not be decoded and has been removed
        """
        if not artist or not title:
            raise CacheMiss("artist and title are required")

        key = generate_key(artist, title)
        now = self._now()

        with self._lock:
            entry = self._memory.get(key)
            if entry is not None:
                if entry.expires_at > now:
                    return replace(entry)
                # expired in memory, fall through to disk
                del self._memory[key]

        path = self.get_file_path(key)
        if path is None:
            raise CacheMiss(f"{artist} - {title}")

        entry = self._read_file(path)
        if entry.expires_at <= now:
            _remove_quietly(path)
            raise CacheExpired(f"{artist} - {title}")

        with self._lock:
            self._memory[key] = entry
        return replace(entry)

    def set(self, artist: str, title: str, entry: Optional[LyricEntry]) -> LyricEntry:
        """Stamp and store an entry in both tiers, returning the stored copy.

        The memory tier is updated even when persisting fails; the failure is
        raised as CacheError for the caller to decide on.
        """
        if not artist or not title or entry is None:
            raise ValidationError("invalid cache entry")

        key = generate_key(artist, title)
        now = self._now()
        stored = replace(
            entry,
            version=CACHE_VERSION,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )

        with self._lock:
            self._memory[key] = stored

        path = self.get_file_path(key)
        if path is not None:
            try:
                self._write_file(path, stored)
            except OSError as e:
                raise CacheError(f"Failed to persist cache entry: {e}") from e
            logger.debug(f"Cached lyrics for {artist} - {title} ({key})")

        return replace(stored)

    def delete(self, artist: str, title: str) -> None:
        if not artist or not title:
            raise ValidationError("invalid artist or title")

        key = generate_key(artist, title)
        with self._lock:
            self._memory.pop(key, None)

        path = self.get_file_path(key)
        if path is None:
            return
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CacheError(f"Failed to delete cache entry: {e}") from e

    def clear(self) -> None:
        with self._lock:
            self._memory.clear()

        removed = 0
        for path in self._iter_files():
            if _remove_quietly(path):
                removed += 1
        logger.info(f"Cleared {removed} cached entries")

    def prune(self) -> int:
        """Remove expired, stale-version and undecodable entries; return the count."""
        now = self._now()

        with self._lock:
            for key in [k for k, e in self._memory.items() if e.expires_at <= now]:
                del self._memory[key]

        pruned = 0
        for path in self._iter_files():
            try:
                entry = self._read_file(path)
            except CacheMiss:
                continue
            except CacheError:
                _remove_quietly(path)
                pruned += 1
                continue

            if entry.expires_at <= now:
                _remove_quietly(path)
                pruned += 1

        if pruned:
            logger.info(f"Pruned {pruned} cache entries")
        return pruned

    def stats(self) -> CacheStats:
        count = 0
        size_bytes = 0
        for path in self._iter_files():
            try:
                size_bytes += path.stat().st_size
            except OSError:
                continue
            count += 1
        return CacheStats(count=count, size_bytes=size_bytes)

    def list_all(self) -> List[LyricEntry]:
        """Every well-formed entry on disk; bad files are skipped."""
        entries = []
        for path in self._iter_files():
            try:
                entries.append(self._read_file(path))
            except CacheError:
                continue
        return entries

    def update_sync_offset(self, artist: str, title: str, offset: float) -> LyricEntry:
        """Persist a user's sync-offset edit onto an existing entry."""
        entry = self.get(artist, title)
        entry.sync_offset = float(offset)
        return self.set(artist, title, entry)

    def find_similar(
        self, artist: str, title: str, limit: int = 5
    ) -> List[LyricEntry]:
        """Suggest cached songs that loosely match a lookup that missed."""
        entries = self.list_all()
        if not entries:
            return []

        artist_lower = artist.lower()
        title_lower = title.lower()

        def contains(a: str, b: str) -> bool:
            return a in b or b in a

        # exact artist with fuzzy title first
        matches = [
            e for e in entries
            if e.artist_name.lower() == artist_lower
            and contains(e.track_name.lower(), title_lower)
        ]
        if matches:
            return matches[:limit]

        matches = [
            e for e in entries
            if contains(e.artist_name.lower(), artist_lower)
            and contains(e.track_name.lower(), title_lower)
        ]
        return matches[:limit]


def _remove_quietly(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.debug(f"Could not remove {path}: {e}")
        return False
