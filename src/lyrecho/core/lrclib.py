"""
HTTP access to the LRCLIB lyric service.

This module intentionally contains only network logic:
- one GET per query variant
- status and payload checks
- mapping transport failures onto lyrecho exceptions

No candidate ordering, no caching. Those live in ``lyrics.py``.
"""

from typing import Any, Dict, Optional

import requests  # type: ignore[import-untyped]

from .. import __version__
from ..config import DEFAULT_LRCLIB_URL, HTTP_TIMEOUT_SECONDS
from ..exceptions import LyricsTimeoutError, LyricsTransportError, ValidationError
from ..utils.logging import get_logger
from .models import Candidate, LyricData

logger = get_logger(__name__)

USER_AGENT = f"lyrecho/{__version__}"
_ERROR_BODY_LIMIT = 512


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def parse_response(payload: Any) -> LyricData:
    """Map an LRCLIB JSON object onto LyricData."""
    if not isinstance(payload, dict):
        raise LyricsTransportError(
            f"unexpected lrclib payload type {type(payload).__name__}"
        )

    duration = payload.get("duration") or 0
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        duration = 0

    return LyricData(
        track_name=_as_str(payload.get("trackName")),
        artist_name=_as_str(payload.get("artistName")),
        album_name=_as_str(payload.get("albumName")),
        duration=float(duration),
        instrumental=payload.get("instrumental") is True,
        plain_lyrics=_as_str(payload.get("plainLyrics")),
        synced_lyrics=_as_str(payload.get("syncedLyrics")),
        source="lrclib",
    )


def build_params(candidate: Candidate) -> Dict[str, str]:
    params = {
        "artist_name": candidate.artist,
        "track_name": candidate.title,
    }
    if candidate.album:
        params["album_name"] = candidate.album
    if candidate.duration and candidate.duration > 0:
        params["duration"] = str(int(candidate.duration))
    return params


class LrclibClient:
    """Thin client for ``GET /api/get`` on LRCLIB."""

    def __init__(
        self,
        base_url: str = DEFAULT_LRCLIB_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValidationError("lrclib base url is empty")
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def get(self, candidate: Candidate, timeout: Optional[float] = None) -> LyricData:
        """Look up one query variant.

        Raises:
            LyricsTimeoutError: the request exceeded its deadline
            LyricsTransportError: not found, bad status, bad body or network error
        """
        deadline = self.timeout if timeout is None else timeout
        try:
            response = self.session.get(
                self.base_url, params=build_params(candidate), timeout=deadline
            )
        except requests.exceptions.Timeout as e:
            raise LyricsTimeoutError(f"lrclib request timed out after {deadline}s") from e
        except requests.exceptions.RequestException as e:
            raise LyricsTransportError(f"lrclib request failed: {e}") from e

        if response.status_code == 404:
            raise LyricsTransportError("status 404: lyrics not found")

        if response.status_code != 200:
            body = (response.text or "")[:_ERROR_BODY_LIMIT]
            raise LyricsTransportError(
                f"lrclib returned status {response.status_code}: {body}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise LyricsTransportError(f"failed to decode lrclib json: {e}") from e

        return parse_response(payload)

    def close(self) -> None:
        self.session.close()
