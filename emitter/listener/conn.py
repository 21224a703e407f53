"""A rate-limited, sniffable connection wrapper."""

from __future__ import annotations

import collections
import threading
import time
from typing import Any, Callable, Optional, Protocol


class _Source(Protocol):
    def read(self, n: int) -> bytes:
        ...


class RateLimiter:
    """A sliding-window limiter allowing `rate` events per `period` seconds."""

    def __init__(
        self, rate: int, period: float = 1.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.period = period
        self._clock = clock
        self._events: collections.deque[float] = collections.deque()
        self._lock = threading.Lock()

    def limit(self) -> bool:
        """Record an event; return True if the rate is exceeded."""
        with self._lock:
            now = self._clock()
            while self._events and now - self._events[0] >= self.period:
                self._events.popleft()
            if len(self._events) >= self.rate:
                return True
            self._events.append(now)
            return False


class Sniffer:
    """A reader that can record what it reads and replay it afterwards."""

    def __init__(self, source: _Source) -> None:
        self._source = source
        self._buffer = bytearray()
        self._read_pos = 0
        self._size = 0
        self._sniffing = False

    def read(self, n: int) -> bytes:
        """Read up to n bytes, replaying recorded data first."""
        if self._size > self._read_pos:
            end = min(self._size, self._read_pos + n)
            chunk = bytes(self._buffer[self._read_pos:end])
            self._read_pos = end
            return chunk
        if not self._sniffing and self._buffer:
            self._buffer = bytearray()

        data = self._source.read(n)
        if data and self._sniffing:
            self._buffer += data
        return data

    def reset(self, sniffing: bool) -> None:
        """Rewind to the start of the recorded data and set the recording mode."""
        self._sniffing = sniffing
        self._read_pos = 0
        self._size = len(self._buffer)


class _SocketSource:
    def __init__(self, sock: Any) -> None:
        self._sock = sock

    def read(self, n: int) -> bytes:
        return self._sock.recv(n)


class Conn:
    """A socket wrapper with write rate limiting, buffering and read sniffing."""

    def __init__(
        self,
        sock: Any,
        write_rate: int = 0,
        *,
        limiter: Optional[RateLimiter] = None,
        flush_interval: float = 1.0,
    ) -> None:
        if write_rate <= 0 or write_rate > 1000:
            write_rate = 60
        self._socket = sock
        self._lock = threading.Lock()
        self._pending = bytearray()
        self._reader = Sniffer(_SocketSource(sock))
        self.limiter = limiter if limiter is not None else RateLimiter(write_rate, 1.0)
        self._closed = threading.Event()
        if flush_interval > 0:
            threading.Thread(
                target=self._flush_periodically, args=(flush_interval,), daemon=True
            ).start()

    def __enter__(self) -> "Conn":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _flush_periodically(self, interval: float) -> None:
        while not self._closed.wait(interval):
            try:
                self.flush()
            except OSError:
                return

    def read(self, n: int) -> bytes:
        """Read up to n bytes from the connection."""
        return self._reader.read(n)

    def write(self, data: bytes) -> int:
        """Write data, queueing it when the write rate is exceeded."""
        data = bytes(data)
        if self.limiter.limit():
            return self._enqueue(data)
        if self.pending() > 0:
            self._enqueue(data)
            return self.flush()
        self._socket.sendall(data)
        return len(data)

    def flush(self) -> int:
        """Send everything queued; return the number of bytes sent."""
        with self._lock:
            if not self._pending:
                return 0
            data = bytes(self._pending)
            self._pending.clear()
            self._socket.sendall(data)
        return len(data)

    def close(self) -> None:
        """Stop the periodic flush and close the socket."""
        self._closed.set()
        self._socket.close()

    def pending(self) -> int:
        """Return the number of queued bytes."""
        with self._lock:
            return len(self._pending)

    def start_sniffing(self) -> Sniffer:
        """Start recording reads and return the reader to sniff with."""
        self._reader.reset(True)
        return self._reader

    def done_sniffing(self) -> None:
        """Stop recording; later reads replay what was sniffed first."""
        self._reader.reset(False)

    def local_address(self) -> Any:
        """Return the local address of the socket."""
        return self._socket.getsockname()

    def remote_address(self) -> Any:
        """Return the remote address of the socket."""
        return self._socket.getpeername()

    def _enqueue(self, data: bytes) -> int:
        with self._lock:
            self._pending += data
        return len(data)