import pytest

from lyrecho.core.models import TrackInfo
from lyrecho.core.player import (
    extract_artist,
    extract_duration_seconds,
    extract_string,
    microseconds_to_seconds,
    track_from_metadata,
)
from lyrecho.exceptions import PropertyError


def test_extract_string():
    assert extract_string({"xesam:title": "Freaks"}, "xesam:title") == "Freaks"
    assert extract_string({"xesam:title": 5}, "xesam:title") == ""
    assert extract_string({}, "xesam:title") == ""
    assert extract_string(None, "xesam:title") == ""


@pytest.mark.parametrize(
    "value,expected",
    [
        (["Surf Curse", "Other"], "Surf Curse"),
        ("Surf Curse", "Surf Curse"),
        ([], ""),
        ([5], ""),
        (None, ""),
    ],
)
def test_extract_artist(value, expected):
    assert extract_artist({"xesam:artist": value}, "xesam:artist") == expected


@pytest.mark.parametrize(
    "value,expected",
    [(147_000_000, 147), (999_999, 0), (-5, 0), ("147", 0), (True, 0)],
)
def test_extract_duration_seconds(value, expected):
    assert extract_duration_seconds({"mpris:length": value}, "mpris:length") == expected


def test_microseconds_to_seconds():
    assert microseconds_to_seconds(61_500_000) == 61
    assert microseconds_to_seconds(-1) == 0
    with pytest.raises(PropertyError):
        microseconds_to_seconds(1.5)


def test_track_from_metadata_full():
    track = track_from_metadata(
        {
            "xesam:title": "Freaks",
            "xesam:artist": ["Surf Curse"],
            "xesam:album": "Buds",
            "mpris:length": 147_000_000,
            "mpris:artUrl": "https://i.scdn.co/image/abc",
            "mpris:trackid": "/com/spotify/track/1",
        }
    )
    assert track == TrackInfo(
        title="Freaks",
        artist="Surf Curse",
        album="Buds",
        duration_secs=147,
        artwork_url="https://i.scdn.co/image/abc",
        track_id="/com/spotify/track/1",
    )


def test_track_info_validity():
    assert TrackInfo("T", "A").is_valid()
    assert not TrackInfo("", "A").is_valid()
    assert not TrackInfo("T", "").is_valid()


def test_is_same_track():
    a = TrackInfo("Freaks", "Surf Curse")
    assert a.is_same_track(TrackInfo("Freaks", "Surf Curse", album="Other"))
    assert not a.is_same_track(TrackInfo("Freaks (Live)", "Surf Curse"))
    assert not a.is_same_track(None)

    with_id = TrackInfo("Freaks", "Surf Curse", track_id="1")
    assert not with_id.is_same_track(TrackInfo("Freaks", "Surf Curse", track_id="2"))
    assert with_id.is_same_track(TrackInfo("Renamed", "Surf Curse", track_id="1"))
