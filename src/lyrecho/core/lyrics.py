"""Lyric resolution: cache first, then LRCLIB with fallback query variants."""

import re
import threading
from typing import List, Optional

from ..config import CANDIDATE_DELAY, DEFAULT_LRCLIB_URL, HTTP_TIMEOUT_SECONDS
from ..exceptions import (
    CacheError,
    CacheMiss,
    LyricsCancelledError,
    LyricsNotFoundError,
    LyricsTimeoutError,
    LyricsTransportError,
)
from ..utils.cache import DiskCache
from ..utils.logging import get_logger
from ..utils.validation import collapse_whitespace, validate_track_query
from .lrclib import LrclibClient
from .models import Candidate, LyricData

logger = get_logger(__name__)

_PAREN_RE = re.compile(r"\([^()]*\)")
_BRACKET_RE = re.compile(r"\[[^\[\]]*\]")


def normalize_string(s: str) -> str:
    """Trim and collapse internal whitespace."""
    return collapse_whitespace(s)


def strip_version_info(s: str) -> str:
    """Remove ``(...)`` and ``[...]`` qualifiers such as remix or live tags."""
    s = s or ""
    # repeat so nested qualifiers unwind from the inside out
    while True:
        stripped = _BRACKET_RE.sub(" ", _PAREN_RE.sub(" ", s))
        if stripped == s:
            break
        s = stripped
    return collapse_whitespace(s)


def to_title_case(s: str) -> str:
    """Capitalize the first letter of each word and lower-case the rest."""
    return " ".join(w[:1].upper() + w[1:].lower() for w in s.split())


def build_candidates(
    artist: str, title: str, album: str = "", duration: int = 0
) -> List[Candidate]:
    """Query variants in priority order, without empties or duplicates."""
    norm_artist = normalize_string(artist)
    norm_title = normalize_string(title)
    duration = duration if duration and duration > 0 else 0
    album = album or ""

    strategies = [
        Candidate(norm_artist, norm_title, album, duration),
        Candidate(norm_artist, norm_title, "", duration),
        Candidate(norm_artist, norm_title),
        Candidate(strip_version_info(artist), strip_version_info(title)),
        # some artists are stored all-caps (SURF CURSE) or all-lowercase
        Candidate(norm_artist.upper(), norm_title.upper()),
        Candidate(norm_artist.lower(), norm_title.lower()),
        Candidate(to_title_case(norm_artist), to_title_case(norm_title)),
        Candidate(artist, title),
    ]

    seen = set()
    unique: List[Candidate] = []
    for candidate in strategies:
        if not candidate.artist or not candidate.title:
            continue
        if candidate in seen:
            continue
        seen.add(candidate)
        unique.append(candidate)
    return unique


class LyricsResolver:
    """Resolve lyrics for a track, preferring the disk cache.

    Candidates are tried one at a time. A timeout aborts the whole call since
    a slow service will time out on every remaining variant too; any other
    per-candidate failure just moves on to the next variant.
    """

    def __init__(
        self,
        cache: Optional[DiskCache],
        client: Optional[LrclibClient] = None,
        *,
        base_url: str = DEFAULT_LRCLIB_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        candidate_delay: float = CANDIDATE_DELAY,
        use_cache: bool = True,
    ):
        self.cache = cache
        self.client = client or LrclibClient(base_url=base_url, timeout=timeout)
        self.timeout = timeout
        self.candidate_delay = candidate_delay
        self.use_cache = use_cache

    def _from_cache(self, artist: str, title: str) -> Optional[LyricData]:
        if self.cache is None or not self.use_cache:
            return None
        try:
            entry = self.cache.get(artist, title)
        except CacheMiss:
            return None
        except CacheError as e:
            logger.debug(f"Cache lookup for {artist} - {title} failed: {e}")
            return None
        logger.debug(f"Cache hit for {artist} - {title}")
        return LyricData.from_entry(entry, source="cache")

    def _store(self, artist: str, title: str, data: LyricData) -> None:
        if self.cache is None:
            return
        try:
            stored = self.cache.set(artist, title, data.to_entry())
            data.sync_offset = stored.sync_offset
        except CacheError as e:
            logger.warning(f"Could not cache lyrics for {artist} - {title}: {e}")

    def resolve(
        self,
        artist: str,
        title: str,
        album: str = "",
        duration: int = 0,
        cancel: Optional[threading.Event] = None,
    ) -> LyricData:
        """Return lyrics for ``artist`` / ``title``.

        Raises:
            ValidationError: empty title or artist after normalization
            LyricsTimeoutError: the service did not answer in time
            LyricsCancelledError: ``cancel`` was set
            LyricsNotFoundError: every query variant came back empty or failed
        """
        validate_track_query(artist, title)

        cached = self._from_cache(artist, title)
        if cached is not None:
            return cached

        cancel = cancel or threading.Event()
        last_error: Optional[Exception] = None

        for index, candidate in enumerate(build_candidates(artist, title, album, duration)):
            # pause between variants so we do not hammer the service
            if index > 0 and cancel.wait(self.candidate_delay):
                raise LyricsCancelledError("lyrics lookup cancelled")
            if cancel.is_set():
                raise LyricsCancelledError("lyrics lookup cancelled")

            logger.debug(
                f"Trying lrclib variant {index + 1}: {candidate.artist} - {candidate.title} "
                f"(album={candidate.album!r}, duration={candidate.duration})"
            )

            try:
                data = self.client.get(candidate, timeout=self.timeout)
            except LyricsTimeoutError as e:
                logger.warning(f"Lyrics lookup aborted for {artist} - {title}: {e}")
                raise LyricsTimeoutError("lyrics server took too long to respond") from e
            except LyricsTransportError as e:
                last_error = e
                continue

            if not data.has_content():
                last_error = LyricsTransportError("no lyrics in response")
                continue

            # persist under the original names so the next lookup hits
            self._store(artist, title, data)
            logger.info(f"Resolved lyrics for {artist} - {title} (variant {index + 1})")
            return data

        raise LyricsNotFoundError(artist, title, last_error)
