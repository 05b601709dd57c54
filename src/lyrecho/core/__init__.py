"""Core functionality modules.

Only the data models are imported eagerly; the MPRIS source pulls in the
D-Bus stack and is imported where it is needed.
"""

from .models import (
    Candidate,
    EventType,
    LyricData,
    LyricEntry,
    PlayerEvent,
    PlayerState,
    TimedLine,
    TrackInfo,
)

__all__ = [
    "Candidate",
    "EventType",
    "LyricData",
    "LyricEntry",
    "PlayerEvent",
    "PlayerState",
    "TimedLine",
    "TrackInfo",
]
