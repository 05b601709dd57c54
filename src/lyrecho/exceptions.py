"""Custom exceptions for lyrecho."""

class LyrechoError(Exception):
    """Base exception for lyrecho."""
    pass

class ConfigError(LyrechoError):
    """Invalid configuration value."""
    pass

class ValidationError(LyrechoError):
    """Invalid input parameters."""
    pass

class PlayerError(LyrechoError):
    """Error talking to the playback-control surface."""
    pass

class PlayerConnectionError(PlayerError):
    """Player is unreachable (not running, bus unavailable)."""
    pass

class PropertyError(PlayerError):
    """Player property is missing or has an unexpected shape."""
    pass

class CacheError(LyrechoError):
    """Error with cache operations."""
    pass

class CacheMiss(CacheError):
    """No entry stored for the key."""
    pass

class CacheExpired(CacheError):
    """Entry existed but its TTL has passed."""
    pass

class CacheCorrupt(CacheError):
    """Entry could not be decoded or has a stale schema version."""
    pass

class LyricsError(LyrechoError):
    """Error fetching or processing lyrics."""
    pass

class LyricsTransportError(LyricsError):
    """A single lyric service request failed."""
    pass

class LyricsTimeoutError(LyricsError):
    """Lyric service did not answer within the request deadline."""
    pass

class LyricsCancelledError(LyricsError):
    """Resolution was cancelled by the caller."""
    pass

class LyricsNotFoundError(LyricsError):
    """Every query variant was tried without a match."""

    def __init__(self, artist: str, title: str, last_error: Exception | None = None):
        self.artist = artist
        self.title = title
        self.last_error = last_error
        if last_error is not None:
            message = f"no lyrics found for {artist} - {title}: {last_error}"
        else:
            message = (
                f"no lyrics found for {artist} - {title} "
                "(tried multiple search variations)"
            )
        super().__init__(message)
