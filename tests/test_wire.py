import io

import pytest

from emitter.mqtt.wire import (
    BadPacketError,
    Header,
    MessageTooLargeError,
    MqttError,
    decode_header,
    encode_length,
    read_string,
    read_uint16,
    write_header,
    write_string,
)


@pytest.mark.parametrize(
    "value, field, length",
    [
        (0, 0x0, 1),
        (1, 0x1, 1),
        (127, 0x7F, 1),
        (128, 0x8001, 2),
        (16383, 0xFF7F, 2),
        (16384, 0x808001, 3),
        (2097151, 0xFFFF7F, 3),
        (2097152, 0x80808001, 4),
        (268435455, 0xFFFFFF7F, 4),
    ],
)
def test_encode_length(value, field, length):
    assert encode_length(value) == (length, field)


@pytest.mark.parametrize(
    "value",
    [986889, 0, 1, 127, 128, 16383, 16384, 209715, 2097152, 268435455],
)
def test_decode_length_round_trip(value):
    encoded = write_header(2, None, value)
    header, length, msg_type = decode_header(io.BytesIO(encoded))
    assert length == value
    assert msg_type == 2
    assert header == Header()


def test_write_header_pingreq():
    assert write_header(12, None, 0) == b"\xc0\x00"


def test_write_header_disconnect():
    assert write_header(14, None, 0) == b"\xe0\x00"


def test_write_header_with_flags():
    encoded = write_header(3, Header(dup=True, retain=True, qos=1), 5)
    assert encoded == b"\x3b\x05"


def test_write_header_too_large():
    with pytest.raises(MessageTooLargeError):
        write_header(3, None, 268435456)


def test_decode_header_flags_for_publish():
    header, length, msg_type = decode_header(io.BytesIO(b"\x3d\x7f"))
    assert msg_type == 3
    assert length == 127
    assert header == Header(dup=True, retain=True, qos=2)


def test_decode_header_ignores_flags_for_connect():
    header, length, msg_type = decode_header(io.BytesIO(b"\x1f\x80\x01"))
    assert msg_type == 1
    assert length == 128
    assert header == Header()


def test_decode_header_empty_reader():
    with pytest.raises(EOFError):
        decode_header(io.BytesIO(b""))


def test_decode_header_truncated_length():
    with pytest.raises(EOFError):
        decode_header(io.BytesIO(b"\x30\x80"))


def test_write_string():
    assert write_string(b"abc") == b"\x00\x03abc"
    assert write_string(b"") == b"\x00\x00"


def test_read_string_round_trip():
    data = write_string(b"a/b/c") + write_string(b"tommy")
    first, offset = read_string(data, 0)
    second, end = read_string(data, offset)
    assert first == b"a/b/c"
    assert second == b"tommy"
    assert end == len(data)


def test_read_string_bad_length():
    with pytest.raises(BadPacketError):
        read_string(b"\x00\x05abc", 0)


def test_read_uint16():
    assert read_uint16(b"\xbe\xef", 0) == (0xBEEF, 2)
    assert read_uint16(b"\x00\x01\x02\x03", 2) == (0x0203, 4)


def test_read_uint16_short():
    with pytest.raises(BadPacketError):
        read_uint16(b"\x01", 0)


def test_error_messages():
    assert str(MessageTooLargeError()) == "mqtt: message size exceeds 64K"
    assert str(BadPacketError()) == "mqtt: bad packet"
    assert issubclass(BadPacketError, MqttError)
    assert issubclass(MessageTooLargeError, MqttError)