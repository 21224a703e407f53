"""Messages, message frames and their compressed binary encoding."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from emitter.message.id import MessageId, new_id
from emitter.message.snappy import compress, decompress
from emitter.message.ssid import Ssid

_MASK32 = 0xFFFFFFFF


def _put_uvarint(out: bytearray, value: int) -> None:
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)


def _put_bytes(out: bytearray, value: bytes) -> None:
    _put_uvarint(out, len(value))
    out += value


class _Reader:
    """Sequential reader over a decoded buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def uvarint(self) -> int:
        value = 0
        shift = 0
        index = 0
        while True:
            if self._pos >= len(self._data):
                raise EOFError("EOF" if index == 0 else "unexpected EOF")
            byte = self._data[self._pos]
            self._pos += 1
            if index == 9 and byte > 1:
                raise ValueError("binary: varint overflows a 64-bit integer")
            value |= (byte & 0x7F) << shift
            if byte < 0x80:
                return value
            shift += 7
            index += 1

    def take(self, size: int) -> bytes:
        if self._pos + size > len(self._data):
            raise EOFError("EOF")
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def blob(self) -> bytes:
        size = self.uvarint()
        return self.take(size) if size > 0 else b""


@dataclass
class Message:
    """A message which has to be forwarded or stored."""

    id: MessageId
    channel: bytes = b""
    payload: bytes = b""
    ttl: int = 0

    def size(self) -> int:
        """Return the size of the payload in bytes."""
        return len(self.payload)

    def time(self) -> int:
        """Return the Unix time stored in the message id."""
        return self.id.time()

    def ssid(self) -> Ssid:
        """Return the SSID stored in the message id."""
        return self.id.ssid()

    def contract(self) -> int:
        """Return the contract stored in the message id."""
        return self.id.contract()

    def stored(self) -> bool:
        """Return whether the message is or should be stored."""
        return self.ttl > 0

    def expires(self) -> datetime:
        """Return the moment the message expires."""
        created = datetime.fromtimestamp(self.time(), tz=timezone.utc)
        return created + timedelta(seconds=self.ttl)

    def _write(self, out: bytearray) -> None:
        _put_bytes(out, bytes(self.id))
        _put_bytes(out, bytes(self.channel))
        _put_bytes(out, bytes(self.payload))
        _put_uvarint(out, self.ttl)

    @classmethod
    def _read(cls, reader: _Reader) -> "Message":
        msg_id = MessageId(reader.blob())
        channel = reader.blob()
        payload = reader.blob()
        ttl = reader.uvarint() & _MASK32
        return cls(id=msg_id, channel=channel, payload=payload, ttl=ttl)

    def encode(self) -> bytes:
        """Encode the message into its compressed binary form."""
        out = bytearray()
        self._write(out)
        return compress(bytes(out))


def new_message(ssid: Iterable[int], channel: bytes, payload: bytes) -> Message:
    """Create a message with a fresh id for the SSID."""
    return Message(id=new_id(ssid), channel=bytes(channel), payload=bytes(payload))


def decode_message(buf: bytes) -> Message:
    """Decode a message from its compressed binary form."""
    return Message._read(_Reader(decompress(buf)))


class Frame(list):
    """A set of messages sent over the wire together."""

    def sort_by_time(self) -> None:
        """Sort the messages by time, oldest first."""
        self.sort(key=lambda msg: msg.time())

    def split(self, max_byte_size: int) -> tuple["Frame", "Frame"]:
        """Split the frame so that the head stays under the byte budget."""
        total = 0
        for index, msg in enumerate(self):
            size = len(msg.payload) + len(msg.id) + len(msg.channel) + 20
            if total + size >= max_byte_size:
                return Frame(self[:index]), Frame(self[index:])
            total += size
        return Frame(self), Frame()

    def limit(self, n: int) -> None:
        """Keep only the newest n messages, sorted by time."""
        self.sort_by_time()
        if len(self) > n:
            del self[: len(self) - n]

    def encode(self) -> bytes:
        """Encode the frame into its compressed binary form."""
        out = bytearray()
        _put_uvarint(out, len(self))
        for msg in self:
            msg._write(out)
        return compress(bytes(out))


def decode_frame(buf: bytes) -> Frame:
    """Decode a frame from its compressed binary form."""
    reader = _Reader(decompress(buf))
    count = reader.uvarint()
    frame = Frame()
    for _ in range(count):
        frame.append(Message._read(reader))
    return frame