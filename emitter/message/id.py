"""Lexicographically sortable message identifiers."""

from __future__ import annotations

import os
import struct
import threading
import time as _time
from typing import Iterable

from emitter.message.ssid import MULTI_WILDCARD, WILDCARD, Ssid

FIXED = 16
MAX_UINT32 = 0xFFFFFFFF
RETAINED_TTL = MAX_UINT32

# Epoch of the id clock: 2018-01-01T00:00:00Z.
MIN_TIME = 1514764800
OFFSET = MIN_TIME

_UNIQUE = int.from_bytes(os.urandom(4), "big")


class _Sequence:
    """A thread-safe wrapping 32-bit counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def next(self) -> int:
        with self._lock:
            self._value = (self._value + 1) & MAX_UINT32
            return self._value


_sequence = _Sequence()


def _encode_time(t: int) -> int:
    return MAX_UINT32 - ((t - OFFSET) & MAX_UINT32)


class MessageId(bytes):
    """A message id: prefix, reversed time, reversed sequence, node, SSID words."""

    def _word(self, index: int) -> int:
        return struct.unpack_from(">I", self, index * 4)[0]

    def with_time(self, t: int) -> "MessageId":
        """Return a copy of the id carrying the given time."""
        return MessageId(self[:4] + struct.pack(">I", _encode_time(t)) + self[8:])

    def time(self) -> int:
        """Return the Unix time stored in the id."""
        return MAX_UINT32 - self._word(1) + OFFSET

    def contract(self) -> int:
        """Return the contract of the SSID stored in the id."""
        return self._word(FIXED // 4)

    def ssid(self) -> Ssid:
        """Return the SSID stored in the id."""
        count = (len(self) - FIXED) // 4
        return Ssid(struct.unpack_from(f">{count}I", self, FIXED))

    def has_prefix(self, ssid: Ssid, cutoff: int) -> bool:
        """Return whether the id shares the SSID prefix and is not older than cutoff."""
        return self._word(0) == (ssid[0] ^ ssid[1]) and self.time() >= cutoff

    def match(self, query: Ssid, from_time: int, until: int) -> bool:
        """Return whether the id matches the query and lies within the time bounds."""
        if len(query) * 4 > len(self) - FIXED:
            return False
        words = self.ssid()
        for expected, actual in zip(reversed(query), reversed(words[: len(query)])):
            if expected != actual and expected != WILDCARD and expected != MULTI_WILDCARD:
                return False
        return from_time <= self.time() <= until


def new_id(ssid: Iterable[int]) -> MessageId:
    """Create a new id for the current time."""
    ssid = Ssid(ssid)
    now = (int(_time.time()) - OFFSET) & MAX_UINT32
    head = struct.pack(
        ">IIII",
        ssid[0] ^ ssid[1],
        MAX_UINT32 - now,
        MAX_UINT32 - _sequence.next(),
        _UNIQUE,
    )
    return MessageId(head + struct.pack(f">{len(ssid)}I", *ssid))


def new_prefix(ssid: Iterable[int], from_time: int) -> MessageId:
    """Create an id holding only the prefix and the time."""
    ssid = Ssid(ssid)
    return MessageId(struct.pack(">II", ssid[0] ^ ssid[1], _encode_time(from_time)))