"""Tests for TrackObserver polling, push handling and lifecycle."""

import queue

import pytest

from conftest import FakeClock, make_metadata
from lyrecho.core.models import EventType, PlayerState, TrackInfo
from lyrecho.core.player import (
    SIGNAL_PROPERTIES_CHANGED,
    SIGNAL_SEEKED,
    PlayerSignal,
    TrackObserver,
)
from lyrecho.exceptions import PlayerConnectionError, PropertyError

SECOND = 1_000_000


def _drain(observer):
    events = []
    while True:
        try:
            events.append(observer.events.get_nowait())
        except queue.Empty:
            return events


@pytest.fixture
def observer_clock():
    return FakeClock(start=100.0)


@pytest.fixture
def observer(fake_source, observer_clock):
    return TrackObserver(fake_source, clock=observer_clock, listener_wait=0.01)


class TestSeekHeuristic:
    def _state(self):
        state = PlayerState(track=TrackInfo("T", "A"))
        state.update_position(10, now=0.0)
        return state

    def test_normal_progress_is_not_a_seek(self):
        assert not self._state().detect_seek(16, now=5.0)

    def test_large_jump_is_a_seek(self):
        assert self._state().detect_seek(25, now=5.0)

    def test_backwards_jump_is_a_seek(self):
        assert self._state().detect_seek(2, now=5.0)

    def test_no_baseline_never_seeks(self):
        assert not PlayerState().detect_seek(500, now=5.0)


class TestQueries:
    def test_get_current_track(self, observer):
        track = observer.get_current_track()
        assert track.title == "Freaks"
        assert track.artist == "Surf Curse"
        assert track.duration_secs == 147

    def test_missing_title_is_property_error(self, fake_source, observer):
        fake_source.metadata = make_metadata(title="")
        with pytest.raises(PropertyError):
            observer.get_current_track()

    def test_non_mapping_metadata_is_property_error(self, fake_source, observer):
        fake_source.metadata = ["not", "a", "map"]
        with pytest.raises(PropertyError):
            observer.get_current_track()

    def test_position_converts_microseconds(self, fake_source, observer):
        fake_source.position_us = 42_900_000
        assert observer.get_current_position() == 42

    def test_position_wrong_type(self, fake_source, observer):
        fake_source.position_us = "42"
        with pytest.raises(PropertyError):
            observer.get_current_position()

    def test_get_playing(self, fake_source, observer):
        assert observer.get_playing() is True
        fake_source.status = "Paused"
        assert observer.get_playing() is False

    def test_connection_error_propagates(self, fake_source, observer):
        fake_source.error = PlayerConnectionError("gone")
        with pytest.raises(PlayerConnectionError):
            observer.get_current_track()


class TestPoll:
    def test_first_poll_reports_track_and_playback(self, fake_source, observer):
        fake_source.position_us = 3 * SECOND
        observer.poll()

        events = _drain(observer)
        assert [e.type for e in events] == [
            EventType.TRACK_CHANGED,
            EventType.PLAYBACK_STATE_CHANGED,
        ]
        assert events[0].track.title == "Freaks"
        assert events[0].position == 3
        state = observer.get_state()
        assert state.position_secs == 3
        assert state.playing

    def test_steady_playback_emits_nothing(self, fake_source, observer, observer_clock):
        observer.poll()
        _drain(observer)

        observer_clock.advance(5)
        fake_source.position_us = 5 * SECOND
        observer.poll()
        assert _drain(observer) == []

    def test_position_jump_emits_seek(self, fake_source, observer, observer_clock):
        fake_source.position_us = 10 * SECOND
        observer.poll()
        _drain(observer)

        observer_clock.advance(5)
        fake_source.position_us = 25 * SECOND
        observer.poll()

        events = _drain(observer)
        assert [e.type for e in events] == [EventType.SEEKED]
        assert events[0].position == 25

    def test_new_track_resets_baseline(self, fake_source, observer, observer_clock):
        fake_source.position_us = 120 * SECOND
        observer.poll()
        _drain(observer)

        observer_clock.advance(1)
        fake_source.metadata = make_metadata(title="Christine F")
        fake_source.position_us = 0
        observer.poll()

        events = _drain(observer)
        assert [e.type for e in events] == [EventType.TRACK_CHANGED]
        assert events[0].track.title == "Christine F"

        observer_clock.advance(2)
        fake_source.position_us = 2 * SECOND
        observer.poll()
        assert _drain(observer) == []

    def test_track_id_decides_identity(self, fake_source, observer):
        fake_source.metadata = make_metadata(track_id="/track/1")
        observer.poll()
        _drain(observer)

        fake_source.metadata = make_metadata(track_id="/track/2")
        observer.poll()
        assert [e.type for e in _drain(observer)] == [EventType.TRACK_CHANGED]

    def test_pause_emits_playback_change(self, fake_source, observer):
        observer.poll()
        _drain(observer)

        fake_source.status = "Paused"
        observer.poll()

        events = _drain(observer)
        assert [e.type for e in events] == [EventType.PLAYBACK_STATE_CHANGED]
        assert events[0].playing is False

    def test_failed_poll_leaves_state_alone(self, fake_source, observer):
        observer.poll()
        before = observer.get_state()

        fake_source.error = PlayerConnectionError("gone")
        with pytest.raises(PlayerConnectionError):
            observer.poll()
        assert observer.get_state() == before


class TestSignals:
    def test_metadata_signal_changes_track(self, observer):
        observer.handle_signal(
            PlayerSignal(SIGNAL_PROPERTIES_CHANGED, changed={"Metadata": make_metadata(title="New")})
        )
        events = _drain(observer)
        assert [e.type for e in events] == [EventType.TRACK_CHANGED]
        assert observer.get_state().track.title == "New"

    def test_metadata_resend_for_same_track_is_ignored(self, fake_source, observer, observer_clock):
        fake_source.position_us = 120 * SECOND
        observer.poll()
        _drain(observer)

        observer.handle_properties_changed({"Metadata": make_metadata()})
        assert _drain(observer) == []
        assert observer.get_state().position_secs == 120

        observer_clock.advance(0.1)
        observer.poll()
        assert _drain(observer) == []

    def test_metadata_signal_resets_position_for_new_track(self, fake_source, observer, observer_clock):
        fake_source.position_us = 120 * SECOND
        observer.poll()
        _drain(observer)

        observer.handle_properties_changed({"Metadata": make_metadata(title="Next")})
        events = _drain(observer)
        assert [e.type for e in events] == [EventType.TRACK_CHANGED]
        assert events[0].position == 0
        assert observer.get_state().position_secs == 0

    def test_unchanged_status_signal_emits_nothing(self, fake_source, observer):
        observer.poll()
        _drain(observer)

        observer.handle_properties_changed({"PlaybackStatus": "Playing"})
        assert _drain(observer) == []

    def test_invalid_metadata_signal_ignored(self, observer):
        observer.handle_properties_changed({"Metadata": {"xesam:title": "No artist"}})
        assert _drain(observer) == []
        assert observer.get_state().track is None

    def test_status_signal(self, observer):
        observer.handle_properties_changed({"PlaybackStatus": "Playing"})
        events = _drain(observer)
        assert [e.type for e in events] == [EventType.PLAYBACK_STATE_CHANGED]
        assert observer.get_state().playing

    def test_seeked_signal(self, observer):
        observer.handle_signal(PlayerSignal(SIGNAL_SEEKED, position_us=61 * SECOND))
        events = _drain(observer)
        assert [e.type for e in events] == [EventType.SEEKED]
        assert events[0].position == 61
        assert observer.get_state().position_secs == 61

    @pytest.mark.parametrize("value", [None, "61", -5, True])
    def test_bad_seeked_payload_ignored(self, observer, value):
        observer.handle_seeked(value)
        assert _drain(observer) == []


class TestEventQueue:
    def test_full_queue_drops_without_blocking(self, observer):
        for i in range(40):
            observer.handle_seeked(i * SECOND)
        events = _drain(observer)
        assert len(events) == 16
        # the oldest events are the ones kept
        assert events[0].position == 0
        assert observer.get_state().position_secs == 39


class TestLifecycle:
    def test_start_subscribes_and_listens(self, fake_source, observer):
        observer.start()
        try:
            assert fake_source.subscribed
            fake_source.signals.put(PlayerSignal(SIGNAL_SEEKED, position_us=30 * SECOND))
            event = observer.events.get(timeout=2)
            assert event.type == EventType.SEEKED
        finally:
            observer.stop()

    def test_stop_is_idempotent(self, observer):
        observer.start()
        observer.stop()
        observer.stop()
        assert not observer._thread.is_alive()

    def test_stop_without_start(self, observer):
        observer.stop()

    def test_listener_survives_source_errors(self, fake_source, observer):
        calls = {"n": 0}
        original = fake_source.next_signal

        def flaky(timeout):
            calls["n"] += 1
            if calls["n"] == 1:
                raise PlayerConnectionError("hiccup")
            return original(timeout)

        fake_source.next_signal = flaky
        observer.start()
        try:
            fake_source.signals.put(PlayerSignal(SIGNAL_SEEKED, position_us=5 * SECOND))
            assert observer.events.get(timeout=2).position == 5
        finally:
            observer.stop()

    def test_get_state_returns_copy(self, observer):
        observer.poll()
        state = observer.get_state()
        state.track.title = "mutated"
        state.position_secs = 999
        assert observer.get_state().track.title == "Freaks"
        assert observer.get_state().position_secs == 0
