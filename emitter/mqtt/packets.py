"""MQTT control packets and their encoding and decoding."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import BinaryIO, ClassVar, Optional

from emitter.mqtt.wire import (
    MAX_HEADER_SIZE,
    MAX_MESSAGE_SIZE,
    BadPacketError,
    Header,
    MessageTooLargeError,
    MqttError,
    decode_header,
    read_string,
    read_uint16,
    write_header,
    write_string,
)


class PacketType(enum.IntEnum):
    """The MQTT control packet types."""

    CONNECT = 1
    CONNACK = 2
    PUBLISH = 3
    PUBACK = 4
    PUBREC = 5
    PUBREL = 6
    PUBCOMP = 7
    SUBSCRIBE = 8
    SUBACK = 9
    UNSUBSCRIBE = 10
    UNSUBACK = 11
    PINGREQ = 12
    PINGRESP = 13
    DISCONNECT = 14


@dataclass(frozen=True)
class TopicQOSTuple:
    """A topic paired with its quality of service."""

    qos: int = 0
    topic: bytes = b""


def _byte(data: bytes, offset: int) -> int:
    if offset >= len(data):
        raise BadPacketError()
    return data[offset]


def _uint16(value: int) -> bytes:
    return (value & 0xFFFF).to_bytes(2, "big")


class Packet:
    """Base class of every MQTT control packet."""

    packet_type: ClassVar[PacketType]
    name: ClassVar[str]

    def type(self) -> PacketType:
        """Return the MQTT packet type."""
        return self.packet_type

    def __str__(self) -> str:
        return self.name

    def _body(self) -> bytes:
        return b""

    def _flags(self) -> Optional[Header]:
        return None

    def encode(self) -> bytes:
        """Return the packet encoded with its fixed header."""
        body = self._body()
        if len(body) > MAX_MESSAGE_SIZE - MAX_HEADER_SIZE:
            raise MessageTooLargeError()
        return write_header(self.packet_type, self._flags(), len(body)) + body

    def encode_to(self, writer) -> int:
        """Write the encoded packet to a writer; return what the writer reports."""
        return writer.write(self.encode())


@dataclass
class Connect(Packet):
    """An MQTT CONNECT packet."""

    packet_type = PacketType.CONNECT
    name = "connect"

    proto_name: bytes = b""
    version: int = 0
    username_flag: bool = False
    password_flag: bool = False
    will_retain_flag: bool = False
    will_qos: int = 0
    will_flag: bool = False
    clean_session_flag: bool = False
    keep_alive: int = 0
    client_id: bytes = b""
    will_topic: bytes = b""
    will_message: bytes = b""
    username: bytes = b""
    password: bytes = b""

    def _body(self) -> bytes:
        flags = (
            (int(self.username_flag) << 7)
            | (int(self.password_flag) << 6)
            | (int(self.will_retain_flag) << 5)
            | ((self.will_qos << 3) & 0xFF)
            | (int(self.will_flag) << 2)
            | (int(self.clean_session_flag) << 1)
        ) & 0xFF
        parts = [
            write_string(self.proto_name),
            bytes((self.version & 0xFF, flags)),
            _uint16(self.keep_alive),
            write_string(self.client_id),
        ]
        if self.will_flag:
            parts.append(write_string(self.will_topic))
            parts.append(write_string(self.will_message))
        if self.username_flag:
            parts.append(write_string(self.username))
        if self.password_flag:
            parts.append(write_string(self.password))
        return b"".join(parts)

    @classmethod
    def _decode(cls, data: bytes, header: Header) -> "Connect":
        proto_name, pos = read_string(data, 0)
        version = _byte(data, pos)
        flags = _byte(data, pos + 1)
        keep_alive, pos = read_uint16(data, pos + 2)
        client_id, pos = read_string(data, pos)
        packet = cls(
            proto_name=proto_name,
            version=version,
            username_flag=bool(flags & 0x80),
            password_flag=bool(flags & 0x40),
            will_retain_flag=bool(flags & 0x20),
            will_qos=(flags >> 3) & 0x03,
            will_flag=bool(flags & 0x04),
            clean_session_flag=bool(flags & 0x02),
            keep_alive=keep_alive,
            client_id=client_id,
        )
        if packet.will_flag:
            packet.will_topic, pos = read_string(data, pos)
            packet.will_message, pos = read_string(data, pos)
        if packet.username_flag:
            packet.username, pos = read_string(data, pos)
        if packet.password_flag:
            packet.password, pos = read_string(data, pos)
        return packet


@dataclass
class Connack(Packet):
    """An MQTT CONNACK packet."""

    packet_type = PacketType.CONNACK
    name = "connack"

    return_code: int = 0

    def _body(self) -> bytes:
        return bytes((0, self.return_code & 0xFF))

    @classmethod
    def _decode(cls, data: bytes, header: Header) -> "Connack":
        return cls(return_code=_byte(data, 1))


@dataclass
class Publish(Packet):
    """An MQTT PUBLISH packet."""

    packet_type = PacketType.PUBLISH
    name = "pub"

    header: Header = Header()
    topic: bytes = b""
    message_id: int = 0
    payload: bytes = b""

    def _flags(self) -> Optional[Header]:
        return self.header

    def _body(self) -> bytes:
        length = 2 + len(self.topic) + len(self.payload)
        if self.header.qos > 0:
            length += 2
        if length > MAX_MESSAGE_SIZE:
            raise MessageTooLargeError()
        parts = [write_string(self.topic)]
        if self.header.qos > 0:
            parts.append(_uint16(self.message_id))
        parts.append(bytes(self.payload))
        return b"".join(parts)

    @classmethod
    def _decode(cls, data: bytes, header: Header) -> "Publish":
        topic, pos = read_string(data, 0)
        message_id = 0
        if header.qos > 0:
            message_id, pos = read_uint16(data, pos)
        return cls(header=header, topic=topic, message_id=message_id, payload=bytes(data[pos:]))


@dataclass
class _Acknowledgement(Packet):
    message_id: int = 0

    def _body(self) -> bytes:
        return _uint16(self.message_id)

    @classmethod
    def _decode(cls, data: bytes, header: Header):
        message_id, _ = read_uint16(data, 0)
        return cls(message_id=message_id)


@dataclass
class Puback(_Acknowledgement):
    """An MQTT PUBACK packet."""

    packet_type = PacketType.PUBACK
    name = "puback"


@dataclass
class Pubrec(_Acknowledgement):
    """An MQTT PUBREC packet."""

    packet_type = PacketType.PUBREC
    name = "pubrec"


@dataclass
class Pubrel(Packet):
    """An MQTT PUBREL packet."""

    packet_type = PacketType.PUBREL
    name = "pubrel"

    message_id: int = 0
    header: Header = Header()

    def _flags(self) -> Optional[Header]:
        return self.header

    def _body(self) -> bytes:
        return _uint16(self.message_id)

    @classmethod
    def _decode(cls, data: bytes, header: Header) -> "Pubrel":
        message_id, _ = read_uint16(data, 0)
        return cls(message_id=message_id, header=header)


@dataclass
class Pubcomp(_Acknowledgement):
    """An MQTT PUBCOMP packet."""

    packet_type = PacketType.PUBCOMP
    name = "pubcomp"


@dataclass
class Subscribe(Packet):
    """An MQTT SUBSCRIBE packet."""

    packet_type = PacketType.SUBSCRIBE
    name = "sub"

    header: Header = Header()
    message_id: int = 0
    subscriptions: list[TopicQOSTuple] = field(default_factory=list)

    def _flags(self) -> Optional[Header]:
        return self.header

    def _body(self) -> bytes:
        parts = [_uint16(self.message_id)]
        for sub in self.subscriptions:
            parts.append(write_string(sub.topic))
            parts.append(bytes((sub.qos & 0xFF,)))
        return b"".join(parts)

    @classmethod
    def _decode(cls, data: bytes, header: Header) -> "Subscribe":
        message_id, pos = read_uint16(data, 0)
        subscriptions = []
        while pos < len(data):
            topic, pos = read_string(data, pos)
            qos = _byte(data, pos)
            pos += 1
            subscriptions.append(TopicQOSTuple(qos=qos, topic=topic))
        return cls(header=header, message_id=message_id, subscriptions=subscriptions)


@dataclass
class Suback(Packet):
    """An MQTT SUBACK packet."""

    packet_type = PacketType.SUBACK
    name = "suback"

    message_id: int = 0
    qos: list[int] = field(default_factory=list)

    def _body(self) -> bytes:
        return _uint16(self.message_id) + bytes(q & 0xFF for q in self.qos)

    @classmethod
    def _decode(cls, data: bytes, header: Header) -> "Suback":
        message_id, pos = read_uint16(data, 0)
        return cls(message_id=message_id, qos=list(data[pos:]))


@dataclass
class Unsubscribe(Packet):
    """An MQTT UNSUBSCRIBE packet."""

    packet_type = PacketType.UNSUBSCRIBE
    name = "unsub"

    header: Header = Header()
    message_id: int = 0
    topics: list[TopicQOSTuple] = field(default_factory=list)

    def _flags(self) -> Optional[Header]:
        return self.header

    def _body(self) -> bytes:
        return _uint16(self.message_id) + b"".join(write_string(t.topic) for t in self.topics)

    @classmethod
    def _decode(cls, data: bytes, header: Header) -> "Unsubscribe":
        message_id, pos = read_uint16(data, 0)
        topics = []
        while pos < len(data):
            topic, pos = read_string(data, pos)
            topics.append(TopicQOSTuple(topic=topic))
        return cls(header=header, message_id=message_id, topics=topics)


@dataclass
class Unsuback(_Acknowledgement):
    """An MQTT UNSUBACK packet."""

    packet_type = PacketType.UNSUBACK
    name = "unsuback"


@dataclass
class Pingreq(Packet):
    """An MQTT PINGREQ keep-alive packet."""

    packet_type = PacketType.PINGREQ
    name = "pingreq"


@dataclass
class Pingresp(Packet):
    """An MQTT PINGRESP packet."""

    packet_type = PacketType.PINGRESP
    name = "pingresp"


@dataclass
class Disconnect(Packet):
    """An MQTT DISCONNECT packet."""

    packet_type = PacketType.DISCONNECT
    name = "disconnect"


_EMPTY_PACKETS = {
    PacketType.PINGREQ: Pingreq,
    PacketType.PINGRESP: Pingresp,
    PacketType.DISCONNECT: Disconnect,
}

_DECODERS = {
    PacketType.CONNECT: Connect,
    PacketType.CONNACK: Connack,
    PacketType.PUBLISH: Publish,
    PacketType.PUBACK: Puback,
    PacketType.PUBREC: Pubrec,
    PacketType.PUBREL: Pubrel,
    PacketType.PUBCOMP: Pubcomp,
    PacketType.SUBSCRIBE: Subscribe,
    PacketType.SUBACK: Suback,
    PacketType.UNSUBSCRIBE: Unsubscribe,
    PacketType.UNSUBACK: Unsuback,
}


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = reader.read(remaining)
        if not chunk:
            raise EOFError("unexpected EOF")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_packet(reader: BinaryIO, max_message_size: int = MAX_MESSAGE_SIZE) -> Packet:
    """Read and decode one packet from a binary reader."""
    header, size, message_type = decode_header(reader)

    empty = _EMPTY_PACKETS.get(message_type)
    if empty is not None:
        return empty()

    if size > max_message_size:
        raise MessageTooLargeError()

    body = _read_exact(reader, size)
    packet_cls = _DECODERS.get(message_type)
    if packet_cls is None:
        raise MqttError(f"Invalid zero-length packet with type {message_type}")
    return packet_cls._decode(body, header)