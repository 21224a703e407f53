from datetime import timedelta

import pytest

from emitter.message.id import RETAINED_TTL, new_id
from emitter.message.message import (
    Frame,
    Message,
    decode_frame,
    decode_message,
    new_message,
)
from emitter.message.snappy import SnappyError, compress
from emitter.message.ssid import Ssid


def _test_message(ssid, channel: str, payload: str) -> Message:
    return Message(id=new_id(ssid), channel=channel.encode(), payload=payload.encode())


@pytest.mark.parametrize("number", range(100))
def test_codec_message(number):
    msg = _test_message(Ssid((1, 2, 3)), "a/b/c/", f"message number {number}")
    buffer = msg.encode()
    assert decode_message(buffer) == msg


def test_codec_happy_path():
    frame = Frame(
        [
            _test_message(Ssid((1, 2, 3)), "a/b/c/", "hello abc"),
            _test_message(Ssid((1, 2, 3)), "a/b/", "hello ab"),
        ]
    )
    buffer = frame.encode()
    assert len(buffer) >= 65
    assert decode_frame(buffer) == frame


def test_decode_frame_returns_frame():
    frame = Frame([_test_message(Ssid((1, 2, 3)), "a/b/c/", "hello abc")])
    output = decode_frame(frame.encode())
    assert isinstance(output, Frame)
    assert output[0].channel == b"a/b/c/"


def test_codec_corrupt():
    with pytest.raises(SnappyError) as info:
        decode_frame(bytes([121, 4, 3, 2, 2, 1, 5, 3, 2]))
    assert str(info.value) == "snappy: corrupt input"


def test_codec_invalid():
    out = compress(bytes([121, 4, 3, 2, 2, 1, 5, 3, 2]))
    with pytest.raises(EOFError) as info:
        decode_frame(out)
    assert str(info.value) == "EOF"


def test_ttl_round_trip():
    msg = _test_message(Ssid((1, 2, 3)), "a/", "retained")
    msg.ttl = RETAINED_TTL
    decoded = decode_message(msg.encode())
    assert decoded.ttl == RETAINED_TTL
    assert decoded.stored()


def test_empty_frame_round_trip():
    assert decode_frame(Frame().encode()) == Frame()


def test_new_message():
    m = new_message(Ssid((1, 2, 3)), b"a/b/c/", b"hello abc")
    assert m.size() == 9
    assert m.ssid() == Ssid((1, 2, 3))
    assert m.contract() == 1
    assert m.expires().timestamp() == m.time()
    assert not m.stored()


def test_expires_adds_ttl():
    m = new_message(Ssid((1, 2, 3)), b"a/", b"x")
    start = m.expires()
    m.ttl = 30
    assert m.expires() - start == timedelta(seconds=30)
    assert m.stored()


def test_frame_limit():
    f = Frame(
        [
            _test_message(Ssid((1, 2, 1)), "a/b/a/", "hello aba"),
            _test_message(Ssid((1, 2, 2)), "a/b/b/", "hello abb"),
            _test_message(Ssid((1, 2, 3)), "a/b/c/", "hello abc"),
            _test_message(Ssid((1, 2, 4)), "a/b/d/", "hello abd"),
        ]
    )
    f.limit(2)
    assert len(f) == 2
    assert f[0].channel == b"a/b/c/"
    assert f[1].channel == b"a/b/d/"


def test_frame_sort_by_time():
    older = _test_message(Ssid((1, 2)), "a/", "old")
    older.id = older.id.with_time(older.time() - 100)
    newer = _test_message(Ssid((1, 2)), "b/", "new")
    f = Frame([newer, older])
    f.sort_by_time()
    assert [m.channel for m in f] == [b"a/", b"b/"]


def test_frame_split():
    f = Frame(
        [
            _test_message(Ssid((1, 2, 1)), "a/b/a/", "hello aba"),
            _test_message(Ssid((1, 2, 2)), "a/b/b/", "hello abb"),
            _test_message(Ssid((1, 2, 3)), "a/b/c/", "hello abc"),
            _test_message(Ssid((1, 2, 4)), "a/b/d/", "hello abd"),
        ]
    )
    head, tail = f.split(127)
    assert len(head) == 2
    assert len(tail) == 2
    assert list(head) + list(tail) == list(f)


def test_frame_split_empty():
    head, tail = Frame().split(127)
    assert len(head) == 0
    assert len(tail) == 0