"""Connection matchers based on the first bytes a client sends."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, Union


class Reader(Protocol):
    """Anything with a read method returning up to n bytes."""

    def read(self, n: int) -> bytes:
        ...


Matcher = Callable[[Reader], bool]

DEFAULT_HTTP_METHODS = (
    "OPTIONS",
    "GET",
    "HEAD",
    "POST",
    "PATCH",
    "PUT",
    "DELETE",
    "TRACE",
    "CONNECT",
)


def _read_full(reader: Reader, size: int) -> bytes:
    """Read up to size bytes, stopping early at end of stream or on a socket error."""
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = reader.read(size - len(buf))
        except OSError:
            break
        if not chunk:
            break
        buf += chunk
    return bytes(buf)


def _common_prefix(items: Sequence[bytes]) -> bytes:
    shortest = min(items, key=len)
    for index, byte in enumerate(shortest):
        if any(item[index] != byte for item in items):
            return shortest[:index]
    return shortest


def _split_prefix(items: list[bytes]) -> tuple[bytes, list[bytes]]:
    if not items or not items[0]:
        return b"", items
    if len(items) == 1:
        return items[0], [b""]
    prefix = _common_prefix(items)
    return prefix, [item[len(prefix):] for item in items]


class _Node:
    __slots__ = ("prefix", "terminal", "next")

    def __init__(self, prefix: bytes = b"", terminal: bool = False) -> None:
        self.prefix = prefix
        self.terminal = terminal
        self.next: dict[int, _Node] = {}

    @classmethod
    def build(cls, items: list[bytes]) -> "_Node":
        if not items:
            return cls(b"", True)
        if len(items) == 1:
            return cls(items[0], True)

        prefix, rest = _split_prefix(items)
        node = cls(prefix)
        groups: dict[int, list[bytes]] = {}
        for item in rest:
            if not item:
                node.terminal = True
                continue
            groups.setdefault(item[0], []).append(item[1:])
        node.next = {first: cls.build(tails) for first, tails in groups.items()}
        return node

    def matches(self, data: bytes, prefix: bool) -> bool:
        node = self
        while True:
            size = len(node.prefix)
            if size:
                size = min(size, len(data))
                if data[:size] != node.prefix:
                    return False
            if node.terminal and (prefix or len(node.prefix) == len(data)):
                return True
            if size >= len(data):
                return False
            child: Optional[_Node] = node.next.get(data[size])
            if child is None:
                return False
            data = data[size + 1:]
            node = child


class PatriciaTree:
    """An immutable patricia tree over byte strings."""

    def __init__(self, *strings: Union[str, bytes]) -> None:
        items = [s.encode() if isinstance(s, str) else bytes(s) for s in strings]
        self.max_depth = max((len(item) for item in items), default=0) + 1
        self._root = _Node.build(items)

    def match(self, reader: Reader) -> bool:
        """Return whether what the reader yields is exactly one of the strings."""
        return self._root.matches(_read_full(reader, self.max_depth), False)

    def match_prefix(self, reader: Reader) -> bool:
        """Return whether what the reader yields starts with one of the strings."""
        return self._root.matches(_read_full(reader, self.max_depth), True)


def match_any() -> Matcher:
    """Return a matcher accepting every connection."""
    return lambda reader: True


def match_prefix(*args: Union[str, bytes]) -> Matcher:
    """Return a matcher accepting connections that start with any of the strings."""
    return PatriciaTree(*args).match_prefix


def match_http(*args: str) -> Matcher:
    """Return a matcher accepting HTTP requests, with optional extra methods."""
    return match_prefix(*DEFAULT_HTTP_METHODS, *args)