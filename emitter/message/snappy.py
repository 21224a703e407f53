"""Snappy block-format compression and decompression."""

from __future__ import annotations

_MAX_BLOCK = 65536
_MAX_DECODED = 0xFFFFFFFF

_TAG_LITERAL = 0
_TAG_COPY1 = 1
_TAG_COPY2 = 2
_TAG_COPY4 = 3

_CORRUPT = "snappy: corrupt input"


class SnappyError(ValueError):
    """Raised when a snappy block cannot be decoded."""


def _corrupt() -> SnappyError:
    return SnappyError(_CORRUPT)


def _put_uvarint(out: bytearray, value: int) -> None:
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)


def _read_uvarint(src: bytes) -> tuple[int, int]:
    value = 0
    shift = 0
    for consumed, byte in enumerate(src[:10], start=1):
        value |= (byte & 0x7F) << shift
        if byte < 0x80:
            if value > _MAX_DECODED:
                raise _corrupt()
            return value, consumed
        shift += 7
    raise _corrupt()


def _emit_literal(out: bytearray, literal: bytes) -> None:
    if not literal:
        return
    n = len(literal) - 1
    if n < 60:
        out.append(n << 2)
    else:
        size = (n.bit_length() + 7) // 8
        out.append((59 + size) << 2)
        out += n.to_bytes(size, "little")
    out += literal


def _emit_copy2(out: bytearray, offset: int, length: int) -> None:
    out.append(_TAG_COPY2 | ((length - 1) << 2))
    out += offset.to_bytes(2, "little")


def _emit_copy(out: bytearray, offset: int, length: int) -> None:
    while length >= 68:
        _emit_copy2(out, offset, 64)
        length -= 64
    if length > 64:
        _emit_copy2(out, offset, 60)
        length -= 60
    if length >= 12 or offset >= 2048:
        _emit_copy2(out, offset, length)
    else:
        out.append(_TAG_COPY1 | ((offset >> 8) << 5) | ((length - 4) << 2))
        out.append(offset & 0xFF)


def _compress_block(block: bytes, out: bytearray) -> None:
    table: dict[bytes, int] = {}
    size = len(block)
    literal_start = pos = 0
    while pos + 4 <= size:
        key = block[pos : pos + 4]
        candidate = table.get(key)
        table[key] = pos
        if candidate is None:
            pos += 1
            continue
        length = 4
        while pos + length < size and block[candidate + length] == block[pos + length]:
            length += 1
        _emit_literal(out, block[literal_start:pos])
        _emit_copy(out, pos - candidate, length)
        pos += length
        literal_start = pos
    _emit_literal(out, block[literal_start:])


def compress(data: bytes) -> bytes:
    """Compress bytes into a single snappy block."""
    data = bytes(data)
    out = bytearray()
    _put_uvarint(out, len(data))
    for start in range(0, len(data), _MAX_BLOCK):
        _compress_block(data[start : start + _MAX_BLOCK], out)
    return bytes(out)


def decompress(data: bytes) -> bytes:
    """Decompress a snappy block, raising SnappyError on corrupt input."""
    src = bytes(data)
    expected, pos = _read_uvarint(src)
    end = len(src)
    out = bytearray()
    while pos < end:
        tag = src[pos]
        kind = tag & 0x03
        if kind == _TAG_LITERAL:
            n = tag >> 2
            if n >= 60:
                extra = n - 59
                if pos + 1 + extra > end:
                    raise _corrupt()
                n = int.from_bytes(src[pos + 1 : pos + 1 + extra], "little")
                pos += 1 + extra
            else:
                pos += 1
            n += 1
            if pos + n > end or len(out) + n > expected:
                raise _corrupt()
            out += src[pos : pos + n]
            pos += n
            continue

        if kind == _TAG_COPY1:
            if pos + 2 > end:
                raise _corrupt()
            length = 4 + ((tag >> 2) & 0x07)
            offset = ((tag & 0xE0) << 3) | src[pos + 1]
            pos += 2
        elif kind == _TAG_COPY2:
            if pos + 3 > end:
                raise _corrupt()
            length = 1 + (tag >> 2)
            offset = int.from_bytes(src[pos + 1 : pos + 3], "little")
            pos += 3
        else:
            if pos + 5 > end:
                raise _corrupt()
            length = 1 + (tag >> 2)
            offset = int.from_bytes(src[pos + 1 : pos + 5], "little")
            pos += 5

        if offset == 0 or offset > len(out) or len(out) + length > expected:
            raise _corrupt()
        start = len(out) - offset
        if length <= offset:
            out += out[start : start + length]
        else:
            pattern = bytes(out[start:])
            out += (pattern * (length // offset + 1))[:length]

    if len(out) != expected:
        raise _corrupt()
    return bytes(out)