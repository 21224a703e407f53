"""A byte-stream transport over a message-based websocket connection."""

from __future__ import annotations

import threading
from typing import Any, BinaryIO, Optional, Protocol

TEXT_MESSAGE = 1
BINARY_MESSAGE = 2
CLOSE_MESSAGE = 8
PING_MESSAGE = 9
PONG_MESSAGE = 10

_DATA_MESSAGES = frozenset((TEXT_MESSAGE, BINARY_MESSAGE))


class MessageWriter(Protocol):
    def write(self, data: bytes) -> int:
        ...

    def close(self) -> None:
        ...


class WebSocketConnection(Protocol):
    """The websocket operations the transport relies on."""

    def next_reader(self) -> tuple[int, BinaryIO]:
        ...

    def next_writer(self, message_type: int) -> MessageWriter:
        ...

    def close(self) -> None:
        ...

    def local_address(self) -> Any:
        ...

    def remote_address(self) -> Any:
        ...

    def set_read_deadline(self, t: Any) -> None:
        ...

    def set_write_deadline(self, t: Any) -> None:
        ...


class WebSocketTransport:
    """Presents a websocket as a stream: reads span messages, each write is one binary message."""

    def __init__(self, socket: WebSocketConnection) -> None:
        self._socket = socket
        self._reader: Optional[BinaryIO] = None
        self._lock = threading.Lock()

    def __enter__(self) -> "WebSocketTransport":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def read(self, n: int) -> bytes:
        """Read up to n bytes of the current message, starting a new one when needed.

        An empty result marks the end of a message; the next read moves to the next one.
        """
        if self._reader is None:
            while True:
                message_type, reader = self._socket.next_reader()
                if message_type in _DATA_MESSAGES:
                    self._reader = reader
                    break
        data = self._reader.read(n)
        if n > 0 and not data:
            self._reader = None
        return data

    def write(self, data: bytes) -> int:
        """Send data as a single binary message; return the number of bytes written."""
        with self._lock:
            writer = self._socket.next_writer(BINARY_MESSAGE)
            written = writer.write(bytes(data))
            writer.close()
            return written

    def close(self) -> None:
        """Close the connection."""
        self._socket.close()

    def set_deadline(self, t: Any) -> None:
        """Set both the read and the write deadline."""
        self._socket.set_read_deadline(t)
        self._socket.set_write_deadline(t)

    def set_read_deadline(self, t: Any) -> None:
        """Set the deadline for future reads."""
        self._socket.set_read_deadline(t)

    def set_write_deadline(self, t: Any) -> None:
        """Set the deadline for future writes."""
        self._socket.set_write_deadline(t)

    def local_address(self) -> Any:
        """Return the local network address."""
        return self._socket.local_address()

    def remote_address(self) -> Any:
        """Return the remote network address."""
        return self._socket.remote_address()


def new_conn(ws: WebSocketConnection) -> WebSocketTransport:
    """Wrap a websocket connection in a stream transport."""
    return WebSocketTransport(ws)