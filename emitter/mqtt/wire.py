"""Low-level MQTT wire helpers: fixed headers, lengths, strings and errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Optional

MAX_HEADER_SIZE = 6
MAX_MESSAGE_SIZE = 65536
MAX_REMAINING_LENGTH = 268435455

_MASK32 = 0xFFFFFFFF

# Packet types whose fixed header carries DUP, QoS and RETAIN flags:
# PUBLISH, PUBREL, SUBSCRIBE and UNSUBSCRIBE.
_FLAGGED_TYPES = frozenset((3, 6, 8, 10))


class MqttError(Exception):
    """Base class for MQTT encoding and decoding errors."""


class MessageTooLargeError(MqttError):
    """Raised when a packet is larger than the maximum MQTT frame."""

    def __init__(self, message: str = "mqtt: message size exceeds 64K") -> None:
        super().__init__(message)


class BadPacketError(MqttError):
    """Raised when a packet body is malformed."""

    def __init__(self, message: str = "mqtt: bad packet") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Header:
    """The flags of an MQTT fixed header."""

    dup: bool = False
    retain: bool = False
    qos: int = 0


def encode_length(body_length: int) -> tuple[int, int]:
    """Encode a remaining length; return the byte count and the packed bytes as an integer."""
    if body_length == 0:
        return 1, 0
    bit_field = 0
    num_bytes = 0
    remaining = body_length & _MASK32
    while remaining > 0:
        digit = remaining % 128
        remaining //= 128
        if remaining > 0:
            digit |= 0x80
        bit_field = ((bit_field << 8) | digit) & _MASK32
        num_bytes += 1
    return num_bytes, bit_field


def write_header(msg_type: int, header: Optional[Header], length: int) -> bytes:
    """Build the fixed header for a packet of the given type and body length."""
    if length > MAX_REMAINING_LENGTH:
        raise MessageTooLargeError()
    first = (msg_type << 4) & 0xFF
    if header is not None:
        first |= int(header.dup) << 3
        first |= (header.qos << 1) & 0xFF
        first |= int(header.retain)
        first &= 0xFF
    num_bytes, bit_field = encode_length(length)
    return bytes((first,)) + bit_field.to_bytes(num_bytes, "big")


def write_string(value: bytes) -> bytes:
    """Encode bytes prefixed with their 16-bit big-endian length."""
    value = bytes(value)
    return (len(value) & 0xFFFF).to_bytes(2, "big") + value


def read_uint16(data: bytes, offset: int) -> tuple[int, int]:
    """Read a big-endian 16-bit integer; return it and the next offset."""
    if offset < 0 or offset + 2 > len(data):
        raise BadPacketError()
    return (data[offset] << 8) + data[offset + 1], offset + 2


def read_string(data: bytes, offset: int) -> tuple[bytes, int]:
    """Read a length-prefixed byte string; return it and the next offset."""
    length, offset = read_uint16(data, offset)
    end = offset + length
    if end > len(data):
        raise BadPacketError()
    return bytes(data[offset:end]), end


def _read_byte(reader: BinaryIO) -> int:
    chunk = reader.read(1)
    if not chunk:
        raise EOFError("EOF")
    return chunk[0]


def decode_header(reader: BinaryIO) -> tuple[Header, int, int]:
    """Read a fixed header; return its flags, the remaining length and the packet type."""
    first = _read_byte(reader)
    message_type = (first & 0xF0) >> 4

    header = Header()
    if message_type in _FLAGGED_TYPES:
        header = Header(
            dup=bool(first & 0x08),
            retain=bool(first & 0x01),
            qos=(first & 0x06) >> 1,
        )

    length = 0
    multiplier = 1
    digit = 0x80
    while digit & 0x80:
        digit = _read_byte(reader)
        length = (length + (digit & 0x7F) * multiplier) & _MASK32
        multiplier = (multiplier * 128) & _MASK32

    return header, length, message_type