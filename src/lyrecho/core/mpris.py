"""MPRIS playback source over the session D-Bus (jeepney).

Uses jeepney's thread-safe router so the poll loop and the signal listener
can share one connection.
"""

import queue
from typing import Any, Dict, List, Optional

from jeepney import DBusAddress, HeaderFields, MatchRule, Properties, message_bus
from jeepney.io.common import RouterClosed
from jeepney.io.threading import DBusRouter, open_dbus_connection
from jeepney.wrappers import DBusErrorResponse, unwrap_msg

from ..config import DBUS_TIMEOUT_SECONDS, MPRIS_SERVICE_PREFIX
from ..exceptions import PlayerConnectionError, PropertyError, ValidationError
from ..utils.logging import get_logger
from .player import (
    SIGNAL_PROPERTIES_CHANGED,
    SIGNAL_SEEKED,
    PlaybackSource,
    PlayerSignal,
)

logger = get_logger(__name__)

MPRIS_PATH = "/org/mpris/MediaPlayer2"
MPRIS_ROOT_IFACE = "org.mpris.MediaPlayer2"
MPRIS_PLAYER_IFACE = "org.mpris.MediaPlayer2.Player"
PROPERTIES_IFACE = "org.freedesktop.DBus.Properties"

# D-Bus errors that mean the player is gone rather than misbehaving
_UNREACHABLE_ERRORS = {
    "org.freedesktop.DBus.Error.ServiceUnknown",
    "org.freedesktop.DBus.Error.NameHasNoOwner",
    "org.freedesktop.DBus.Error.NoReply",
    "org.freedesktop.DBus.Error.Disconnected",
}

_SIGNAL_BUFFER = 32


def unwrap_variant(variant: Any) -> Any:
    """Turn a jeepney ``(signature, value)`` variant into a plain Python value."""
    if isinstance(variant, tuple) and len(variant) == 2 and isinstance(variant[0], str):
        signature, value = variant
        if signature == "v":
            return unwrap_variant(value)
        if signature == "a{sv}" and isinstance(value, dict):
            return {k: unwrap_variant(v) for k, v in value.items()}
        if signature == "av" and isinstance(value, list):
            return [unwrap_variant(v) for v in value]
        return value
    return variant


def unwrap_properties(changed: Any) -> Dict[str, Any]:
    if not isinstance(changed, dict):
        return {}
    return {name: unwrap_variant(value) for name, value in changed.items()}


def signal_from_message(msg: Any) -> Optional[PlayerSignal]:
    """Map a raw D-Bus signal message onto a PlayerSignal, or None if irrelevant."""
    member = msg.header.fields.get(HeaderFields.member)
    body = msg.body or ()

    if member == SIGNAL_PROPERTIES_CHANGED:
        if len(body) < 2 or body[0] != MPRIS_PLAYER_IFACE:
            return None
        return PlayerSignal(SIGNAL_PROPERTIES_CHANGED, changed=unwrap_properties(body[1]))

    if member == SIGNAL_SEEKED:
        if len(body) < 1:
            return None
        return PlayerSignal(SIGNAL_SEEKED, position_us=body[0])

    return None


class MprisSource(PlaybackSource):
    """Reads one MPRIS player (e.g. ``org.mpris.MediaPlayer2.spotify``)."""

    def __init__(
        self,
        service: str,
        router: Optional[DBusRouter] = None,
        timeout: float = DBUS_TIMEOUT_SECONDS,
    ):
        if not service:
            raise ValidationError("empty mpris service name")
        self.service = service
        self.timeout = timeout
        self._router = router
        self._owns_router = router is None
        self._player = DBusAddress(MPRIS_PATH, bus_name=service, interface=MPRIS_PLAYER_IFACE)
        self._signals: "queue.Queue[Any]" = queue.Queue(maxsize=_SIGNAL_BUFFER)
        self._filters: List[Any] = []

    def connect(self) -> DBusRouter:
        """Open the session bus on first use. Raises PlayerConnectionError."""
        if self._router is None:
            self._router = connect_session_bus()
        return self._router

    @property
    def router(self) -> DBusRouter:
        return self.connect()

    def _call(self, msg: Any) -> tuple:
        try:
            reply = self.router.send_and_get_reply(msg, timeout=self.timeout)
            return unwrap_msg(reply)
        except DBusErrorResponse as e:
            if e.name in _UNREACHABLE_ERRORS:
                raise PlayerConnectionError(f"{self.service} is not reachable: {e.name}") from e
            raise PropertyError(f"{self.service} rejected request: {e.name}") from e
        except TimeoutError as e:
            raise PlayerConnectionError(f"{self.service} did not reply in {self.timeout}s") from e
        except RouterClosed as e:
            raise PlayerConnectionError(f"d-bus connection closed: {e}") from e
        except OSError as e:
            raise PlayerConnectionError(f"d-bus connection failed: {e}") from e

    def _get_property(self, name: str) -> Any:
        body = self._call(Properties(self._player).get(name))
        if not body:
            raise PropertyError(f"{name} value is nil")
        return unwrap_variant(body[0])

    def read_metadata(self) -> Dict[str, Any]:
        metadata = self._get_property("Metadata")
        if not isinstance(metadata, dict):
            raise PropertyError(f"unexpected metadata type {type(metadata).__name__}")
        return metadata

    def read_position_us(self) -> Any:
        return self._get_property("Position")

    def read_playback_status(self) -> str:
        status = self._get_property("PlaybackStatus")
        if not isinstance(status, str):
            raise PropertyError(f"unexpected playback status type {type(status).__name__}")
        return status

    def subscribe(self) -> None:
        """Ask the bus for PropertiesChanged and Seeked from this player."""
        if self._filters:
            return

        # the bus resolves the well-known sender name; local filters cannot,
        # since signals arrive stamped with the player's unique name
        properties_rule = MatchRule(
            type="signal",
            interface=PROPERTIES_IFACE,
            member=SIGNAL_PROPERTIES_CHANGED,
            path=MPRIS_PATH,
        )
        seeked_rule = MatchRule(
            type="signal",
            interface=MPRIS_PLAYER_IFACE,
            member=SIGNAL_SEEKED,
            path=MPRIS_PATH,
        )

        for rule in (properties_rule, seeked_rule):
            handle = self.router.filter(rule, queue=self._signals)
            self._filters.append(handle)
            bus_rule = MatchRule(
                type="signal",
                sender=self.service,
                interface=rule.conditions["interface"],
                member=rule.conditions["member"],
                path=MPRIS_PATH,
            )
            try:
                self._call(message_bus.AddMatch(bus_rule))
            except (PlayerConnectionError, PropertyError) as e:
                raise PlayerConnectionError(f"failed to add signal match: {e}") from e
        logger.debug(f"Subscribed to player signals from {self.service}")

    def next_signal(self, timeout: float) -> Optional[PlayerSignal]:
        try:
            msg = self._signals.get(timeout=timeout)
        except queue.Empty:
            return None
        return signal_from_message(msg)

    def close(self) -> None:
        for handle in self._filters:
            handle.close()
        self._filters.clear()
        if self._owns_router and self._router is not None:
            close_session_bus(self._router)
            self._router = None


def connect_session_bus() -> DBusRouter:
    """Open a session bus connection wrapped in a router.

    The caller owns both; release them with close_session_bus().
    """
    try:
        conn = open_dbus_connection(bus="SESSION")
    except (OSError, KeyError, ValueError, RuntimeError) as e:
        raise PlayerConnectionError(f"failed to connect to session bus: {e}") from e
    return DBusRouter(conn)


def close_session_bus(router: DBusRouter) -> None:
    # DBusRouter.close() stops the receiver thread but leaves the socket open
    router.close()
    router.conn.close()


def list_players(router: DBusRouter, timeout: float = DBUS_TIMEOUT_SECONDS) -> List[str]:
    """Bus names of every MPRIS player currently running."""
    try:
        reply = router.send_and_get_reply(message_bus.ListNames(), timeout=timeout)
        names = unwrap_msg(reply)[0]
    except (DBusErrorResponse, TimeoutError, OSError, RouterClosed) as e:
        raise PlayerConnectionError(f"failed to list dbus names: {e}") from e
    return sorted(n for n in names if n.startswith(MPRIS_SERVICE_PREFIX))


def player_identity(
    router: DBusRouter, service: str, timeout: float = DBUS_TIMEOUT_SECONDS
) -> str:
    """Human-readable player name, or empty string if it does not say."""
    root = DBusAddress(MPRIS_PATH, bus_name=service, interface=MPRIS_ROOT_IFACE)
    try:
        reply = router.send_and_get_reply(Properties(root).get("Identity"), timeout=timeout)
        value = unwrap_variant(unwrap_msg(reply)[0])
    except (DBusErrorResponse, TimeoutError, OSError, RouterClosed, IndexError):
        return ""
    return value if isinstance(value, str) else ""
