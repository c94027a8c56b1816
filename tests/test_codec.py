# tests/test_codec.py
# What this covers:
#   - Round trip for both codecs, including the empty sequence
#   - Empty bytes decode to an empty log
#   - Torn writes, foreign codecs and garbage raise CorruptLogError

import pytest

from echochamber.core.codec import JsonCodec, PickleCodec, pick_codec
from echochamber.core.errors import CorruptLogError
from echochamber.core.events import ALL_CHANNELS, Event

EVENTS = [
    Event(channels={"b"}, payload={"n": 2, "tags": ["x"]}, timestamp=11.5),
    Event(channels={"a", ALL_CHANNELS}, payload=None, timestamp=10.0),
]


@pytest.mark.parametrize("codec", [PickleCodec(), JsonCodec()])
def test_round_trip(codec):
    assert codec.decode(codec.encode(EVENTS)) == EVENTS
    assert codec.decode(codec.encode([])) == []


def test_pickle_keeps_python_payloads():
    codec = PickleCodec()
    ev = Event(channels="a", payload=(1, b"raw", {2, 3}), timestamp=1.0)
    assert codec.decode(codec.encode([ev]))[0].payload == (1, b"raw", {2, 3})


def test_empty_bytes_are_an_empty_log():
    assert PickleCodec().decode(b"") == []


def test_truncated_frame_is_corrupt():
    raw = PickleCodec().encode(EVENTS)
    with pytest.raises(CorruptLogError):
        PickleCodec().decode(raw[:-3])


def test_other_codec_bytes_are_corrupt():
    raw = JsonCodec().encode(EVENTS)
    with pytest.raises(CorruptLogError):
        PickleCodec().decode(raw)


def test_garbage_is_corrupt():
    with pytest.raises(CorruptLogError):
        JsonCodec().decode(b"not an event log at all, definitely not")


def test_pick_codec():
    assert isinstance(pick_codec("json"), JsonCodec)
    with pytest.raises(ValueError):
        pick_codec("igbinary")


def test_json_rejects_payloads_it_would_reshape():
    codec = JsonCodec()
    for payload in ({"pt": (1, 2)}, {3: "x"}, {"tags": {"a"}}, b"raw"):
        with pytest.raises(TypeError):
            codec.encode([Event(channels="a", payload=payload, timestamp=1.0)])


def test_json_plain_payloads_round_trip_exactly():
    codec = JsonCodec()
    events = [Event(channels="a", payload={"pt": [1, 2], "3": "x", "ok": True, "f": 0.5, "n": None}, timestamp=1.0)]
    assert codec.decode(codec.encode(events)) == events
