"""Configuration settings for lyrecho."""

import os
from pathlib import Path

from .exceptions import ConfigError

# Directories
CACHE_DIR_NAME = "lyrecho"
LYRICS_CACHE_NAME = "lyrics"

# Playback-control surface
DEFAULT_MPRIS_SERVICE = "org.mpris.MediaPlayer2.spotify"
MPRIS_SERVICE_PREFIX = "org.mpris.MediaPlayer2."
DBUS_TIMEOUT_SECONDS = 2.0

# Remote lyric service
DEFAULT_LRCLIB_URL = "https://lrclib.net/api/get"
HTTP_TIMEOUT_SECONDS = int(os.getenv("LYRECHO_HTTP_TIMEOUT", "10"))
CANDIDATE_DELAY = 0.1  # Pause between query variants

# Player observation
POLL_INTERVAL = 0.1
SEEK_THRESHOLD_SECONDS = 3
EVENT_QUEUE_SIZE = 16
LISTENER_WAIT = 0.25  # How long the signal loop blocks before re-checking stop

# Cache settings
CACHE_VERSION = 1
CACHE_TTL_DAYS = 30
CACHE_KEY_HEX_CHARS = 24
CACHE_FILE_SUFFIX = ".bin"

# Sync offset bounds (seconds)
MAX_SYNC_OFFSET = 30.0


def validate_config() -> None:
    """Validate configuration values."""
    if HTTP_TIMEOUT_SECONDS <= 0:
        raise ConfigError("HTTP timeout must be positive")

    if POLL_INTERVAL <= 0 or CANDIDATE_DELAY < 0:
        raise ConfigError("Invalid polling or candidate delay interval")

    if EVENT_QUEUE_SIZE <= 0:
        raise ConfigError("Event queue size must be positive")

    if CACHE_TTL_DAYS <= 0:
        raise ConfigError("Cache TTL must be positive")


def get_cache_dir() -> Path:
    """Get lyrics cache directory from environment or default."""
    cache_dir = os.getenv("LYRECHO_CACHE_DIR")
    if cache_dir:
        return Path(cache_dir)

    # xdg cache home takes priority over ~/.cache
    xdg_cache = os.getenv("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache) / CACHE_DIR_NAME / LYRICS_CACHE_NAME
    return Path.home() / ".cache" / CACHE_DIR_NAME / LYRICS_CACHE_NAME


def get_mpris_service() -> str:
    """Get MPRIS bus name of the player to follow."""
    return os.getenv("LYRECHO_MPRIS_SERVICE") or DEFAULT_MPRIS_SERVICE


def get_lrclib_url() -> str:
    """Get the LRCLIB lookup endpoint."""
    return os.getenv("LYRECHO_LRCLIB_URL") or DEFAULT_LRCLIB_URL


def get_sync_offset() -> float:
    """Initial sync offset in seconds; malformed values fall back to 0."""
    raw = os.getenv("LYRECHO_SYNC_OFFSET", "0")
    try:
        return float(raw)
    except ValueError:
        return 0.0


# Validate config on import
validate_config()
