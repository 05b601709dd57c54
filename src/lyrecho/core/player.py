"""Player observation: polled and pushed playback state turned into events.

The observer keeps one PlayerState behind a lock. Polling (driven by the
caller on a fixed interval) and the background signal listener both mutate
it; the lock is only held while state changes, never while talking to the
player. Events go into a small bounded queue and are dropped when it is
full; consumers can always re-read ``get_state()``.
"""

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from ..config import EVENT_QUEUE_SIZE, LISTENER_WAIT, SEEK_THRESHOLD_SECONDS
from ..exceptions import PlayerError, PropertyError
from ..utils.logging import get_logger
from .models import EventType, PlayerEvent, PlayerState, TrackInfo

logger = get_logger(__name__)

MICROSECONDS = 1_000_000

SIGNAL_PROPERTIES_CHANGED = "PropertiesChanged"
SIGNAL_SEEKED = "Seeked"


# ----------------------
# Typed property extraction
# ----------------------


def extract_string(metadata: Optional[Mapping[str, Any]], key: str) -> str:
    if not metadata:
        return ""
    value = metadata.get(key)
    return value if isinstance(value, str) else ""


def extract_artist(metadata: Optional[Mapping[str, Any]], key: str) -> str:
    """``xesam:artist`` is a string list; some players send a plain string."""
    if not metadata:
        return ""
    value = metadata.get(key)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)) and value:
        first = value[0]
        return first if isinstance(first, str) else ""
    return ""


def extract_duration_seconds(metadata: Optional[Mapping[str, Any]], key: str) -> int:
    """Microsecond length as whole seconds; zero when unknown or malformed."""
    if not metadata:
        return 0
    value = metadata.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    if value <= 0:
        return 0
    return value // MICROSECONDS


def microseconds_to_seconds(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PropertyError(f"unexpected position type {type(value).__name__}")
    if value < 0:
        return 0
    return value // MICROSECONDS


def track_from_metadata(metadata: Optional[Mapping[str, Any]]) -> TrackInfo:
    return TrackInfo(
        title=extract_string(metadata, "xesam:title"),
        artist=extract_artist(metadata, "xesam:artist"),
        album=extract_string(metadata, "xesam:album"),
        duration_secs=extract_duration_seconds(metadata, "mpris:length"),
        artwork_url=extract_string(metadata, "mpris:artUrl"),
        track_id=extract_string(metadata, "mpris:trackid"),
    )


# ----------------------
# Playback source interface
# ----------------------


@dataclass
class PlayerSignal:
    """A push notification from the player, already unwrapped to plain values."""

    kind: str  # SIGNAL_PROPERTIES_CHANGED | SIGNAL_SEEKED
    changed: Dict[str, Any] = field(default_factory=dict)
    position_us: Optional[int] = None


class PlaybackSource:
    """Playback-control surface consumed by TrackObserver.

    Implementations raise PlayerConnectionError when the player cannot be
    reached and PropertyError when a property has the wrong shape.
    """

    def read_metadata(self) -> Dict[str, Any]:
        raise NotImplementedError

    def read_position_us(self) -> Any:
        raise NotImplementedError

    def read_playback_status(self) -> str:
        raise NotImplementedError

    def subscribe(self) -> None:
        """Start receiving push signals. Optional for poll-only sources."""

    def next_signal(self, timeout: float) -> Optional[PlayerSignal]:
        """Block up to ``timeout`` seconds for the next signal."""
        time.sleep(timeout)
        return None

    def close(self) -> None:
        pass


class TrackObserver:
    """Authoritative local view of what the player is doing."""

    def __init__(
        self,
        source: PlaybackSource,
        *,
        event_queue_size: int = EVENT_QUEUE_SIZE,
        seek_threshold: float = SEEK_THRESHOLD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        listener_wait: float = LISTENER_WAIT,
    ):
        self.source = source
        self.seek_threshold = seek_threshold
        self.listener_wait = listener_wait
        self._clock = clock
        self._state = PlayerState()
        self._lock = threading.Lock()
        self._events: "queue.Queue[PlayerEvent]" = queue.Queue(maxsize=event_queue_size)
        self._stop = threading.Event()
        self._stop_once = threading.Lock()
        self._stopped = False
        self._thread: Optional[threading.Thread] = None

    # ----------------------------
    # Events
    # ----------------------------

    @property
    def events(self) -> "queue.Queue[PlayerEvent]":
        return self._events

    def _emit(self, event: PlayerEvent) -> None:
        try:
            self._events.put_nowait(event)
        except queue.Full:
            # best effort: consumers re-derive state from get_state()
            logger.debug(f"Event queue full, dropped {event.type.value}")

    # ----------------------------
    # Synchronous queries
    # ----------------------------

    def get_state(self) -> PlayerState:
        with self._lock:
            return self._state.copy()

    def get_current_track(self) -> TrackInfo:
        """Read the track from the player. Raises PropertyError if it is unusable."""
        metadata = self.source.read_metadata()
        if not isinstance(metadata, Mapping):
            raise PropertyError(f"unexpected metadata type {type(metadata).__name__}")

        info = track_from_metadata(metadata)
        if not info.is_valid():
            raise PropertyError(
                f"missing title or artist in metadata (title={info.title!r}, artist={info.artist!r})"
            )
        return info

    def get_current_position(self) -> int:
        return microseconds_to_seconds(self.source.read_position_us())

    def get_playing(self) -> bool:
        status = self.source.read_playback_status()
        if not isinstance(status, str):
            raise PropertyError(f"unexpected playback status type {type(status).__name__}")
        return status == "Playing"

    # ----------------------------
    # Polling
    # ----------------------------

    def poll(self) -> None:
        """Query the player once and emit events for what changed.

        Raises PlayerError subclasses; callers are expected to retry on the
        next tick.
        """
        info = self.get_current_track()
        position = self.get_current_position()
        playing = self.get_playing()

        pending = []
        with self._lock:
            now = self._clock()
            state = self._state

            if not info.is_same_track(state.track):
                state.track = info
                state.update_position(position, now)
                pending.append(PlayerEvent(EventType.TRACK_CHANGED, track=info, position=position))
            else:
                seeked = state.detect_seek(position, now, self.seek_threshold)
                state.update_position(position, now)
                if seeked:
                    pending.append(PlayerEvent(EventType.SEEKED, position=position))

            if playing != state.playing:
                state.playing = playing
                pending.append(
                    PlayerEvent(EventType.PLAYBACK_STATE_CHANGED, position=position, playing=playing)
                )

        for event in pending:
            self._emit(event)

    # ----------------------------
    # Push signals
    # ----------------------------

    def handle_signal(self, signal: PlayerSignal) -> None:
        if signal.kind == SIGNAL_PROPERTIES_CHANGED:
            self.handle_properties_changed(signal.changed)
        elif signal.kind == SIGNAL_SEEKED:
            self.handle_seeked(signal.position_us)

    def handle_properties_changed(self, changed: Mapping[str, Any]) -> None:
        """Apply a PropertiesChanged payload with the same rules as ``poll()``."""
        pending = []
        metadata = changed.get("Metadata")
        status = changed.get("PlaybackStatus")

        with self._lock:
            now = self._clock()
            state = self._state

            if isinstance(metadata, Mapping):
                info = track_from_metadata(metadata)
                # players resend Metadata for the same song (e.g. artwork loads)
                if info.is_valid() and not info.is_same_track(state.track):
                    state.track = info
                    state.update_position(0, now)
                    pending.append(PlayerEvent(EventType.TRACK_CHANGED, track=info, position=0))

            if isinstance(status, str):
                playing = status == "Playing"
                if playing != state.playing:
                    state.playing = playing
                    state.touch(now)
                    pending.append(
                        PlayerEvent(
                            EventType.PLAYBACK_STATE_CHANGED,
                            position=state.position_secs,
                            playing=playing,
                        )
                    )

        for event in pending:
            self._emit(event)

    def handle_seeked(self, position_us: Any) -> None:
        if isinstance(position_us, bool) or not isinstance(position_us, int):
            return
        if position_us < 0:
            return

        position = position_us // MICROSECONDS
        with self._lock:
            self._state.update_position(position, self._clock())
        self._emit(PlayerEvent(EventType.SEEKED, position=position))

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def start(self) -> None:
        """Subscribe to player signals and start the listener thread."""
        if self._thread is not None:
            return
        self.source.subscribe()
        self._thread = threading.Thread(
            target=self._signal_loop, name="lyrecho-player-signals", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the listener. Safe to call more than once."""
        with self._stop_once:
            if self._stopped:
                return
            self._stopped = True

        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.listener_wait * 4 + 1.0)

    def _signal_loop(self) -> None:
        while not self._stop.is_set():
            try:
                signal = self.source.next_signal(self.listener_wait)
            except PlayerError as e:
                logger.debug(f"Signal listener error: {e}")
                if self._stop.wait(self.listener_wait):
                    return
                continue

            if signal is not None and not self._stop.is_set():
                self.handle_signal(signal)
