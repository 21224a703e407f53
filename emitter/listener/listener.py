"""A TCP listener that routes connections to protocols by their first bytes."""

from __future__ import annotations

import queue
import socket
import ssl
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from emitter.listener.conn import Conn
from emitter.listener.matcher import Matcher

_POLL = 0.1
_CLOSED = object()

ErrorHandler = Callable[[BaseException], bool]


@dataclass
class ListenerConfig:
    """Listener configuration: optional TLS context and per-connection flush rate."""

    tls: Optional[ssl.SSLContext] = None
    flush_rate: int = 0


class NotMatchedError(Exception):
    """Raised for a connection that no matcher accepted."""

    temporary = True
    timeout = False

    def __init__(self, address: Any = None) -> None:
        super().__init__(f"Unable to match connection {address}")
        self.address = address


class ListenerClosedError(Exception):
    """Raised by MuxListener.accept once the listener is closed."""

    temporary = False
    timeout = False

    def __init__(self, message: str = "mux: listener closed") -> None:
        super().__init__(message)


def _parse_address(address: Union[str, tuple]) -> tuple[str, int]:
    if isinstance(address, tuple):
        return address[0], int(address[1])
    host, _, port = address.rpartition(":")
    return host.strip("[]"), int(port)


def _peer(sock: Any) -> Any:
    try:
        return sock.getpeername()
    except OSError:
        return None


class MuxListener:
    """A view of the listener that yields only the connections it matched."""

    def __init__(self, parent: "Listener", buffer_size: int) -> None:
        self._parent = parent
        self._connections: queue.Queue = queue.Queue(maxsize=buffer_size)

    def accept(self) -> Conn:
        """Wait for the next matched connection."""
        item = self._connections.get()
        if item is _CLOSED:
            self._connections.put_nowait(_CLOSED)
            raise ListenerClosedError()
        return item

    def close(self) -> None:
        """Close the underlying listener."""
        self._parent.close()

    def address(self) -> Any:
        """Return the address of the underlying listener."""
        return self._parent.address()

    def _offer(self, conn: Conn, closing: threading.Event) -> bool:
        while not closing.is_set():
            try:
                self._connections.put(conn, timeout=_POLL)
                return True
            except queue.Full:
                continue
        return False

    def _shutdown(self) -> None:
        while True:
            try:
                item = self._connections.get_nowait()
            except queue.Empty:
                break
            if item is not _CLOSED:
                item.close()
        self._connections.put_nowait(_CLOSED)


class Listener:
    """A listener multiplexing protocols over one TCP port."""

    def __init__(self, address: Union[str, tuple], config: Optional[ListenerConfig] = None) -> None:
        self.config = config if config is not None else ListenerConfig()
        host, port = _parse_address(address)
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.create_server((host, port), family=family)
        if self.config.tls is not None:
            sock = self.config.tls.wrap_socket(
                sock, server_side=True, do_handshake_on_connect=False
            )
        sock.settimeout(_POLL)
        self._root = sock
        self._buffer_size = 1024
        self._error_handler: ErrorHandler = lambda err: True
        self._closing = threading.Event()
        self._closed = threading.Event()
        self._processors: list[tuple[tuple[Matcher, ...], MuxListener]] = []
        self._read_timeout = 0.0

    def __enter__(self) -> "Listener":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def accept(self) -> socket.socket:
        """Wait for and return the next raw connection."""
        while True:
            try:
                sock, _ = self._root.accept()
                return sock
            except TimeoutError:
                if self._closed.is_set():
                    raise ListenerClosedError() from None

    def serve_async(self, matcher: Matcher, serve: Callable[[MuxListener], Any]) -> None:
        """Register a matcher and run serve on its listener in a background thread."""
        mux = self.match(matcher)
        threading.Thread(target=serve, args=(mux,), daemon=True).start()

    def match(self, *args: Matcher) -> MuxListener:
        """Return a listener receiving connections accepted by any of the matchers."""
        mux = MuxListener(self, self._buffer_size)
        self._processors.append((tuple(args), mux))
        return mux

    def set_read_timeout(self, timeout: float) -> None:
        """Set the read timeout, in seconds, applied while matching."""
        self._read_timeout = timeout

    def serve(self) -> None:
        """Accept and route connections until the listener is closed."""
        workers: set[threading.Thread] = set()
        try:
            while True:
                try:
                    sock, _ = self._root.accept()
                except TimeoutError:
                    if self._closed.is_set():
                        return
                    continue
                except OSError as err:
                    if self._closed.is_set():
                        return
                    if not self._handle_err(err):
                        raise
                    continue
                worker = threading.Thread(target=self._serve_conn, args=(sock,), daemon=True)
                workers = {w for w in workers if w.is_alive()}
                workers.add(worker)
                worker.start()
        finally:
            self._closing.set()
            for worker in workers:
                worker.join()
            for _, mux in self._processors:
                mux._shutdown()

    def _serve_conn(self, sock: socket.socket) -> None:
        conn = Conn(sock, self.config.flush_rate)
        timeout = self._read_timeout
        if timeout > 0:
            sock.settimeout(timeout)
        for matchers, mux in list(self._processors):
            for matcher in matchers:
                try:
                    matched = matcher(conn.start_sniffing())
                except OSError:
                    matched = False
                if matched:
                    conn.done_sniffing()
                    if timeout > 0:
                        sock.settimeout(None)
                    if not mux._offer(conn, self._closing):
                        conn.close()
                    return

        address = _peer(sock)
        conn.close()
        if not self._handle_err(NotMatchedError(address)):
            self.close()

    def handle_error(self, handler: ErrorHandler) -> None:
        """Register a handler deciding whether serving continues after an error."""
        self._error_handler = handler

    def _handle_err(self, err: BaseException) -> bool:
        if not self._error_handler(err):
            return False
        return bool(getattr(err, "temporary", False))

    def close(self) -> None:
        """Close the listener."""
        self._closed.set()
        self._root.close()

    def address(self) -> Any:
        """Return the listener's socket address."""
        return self._root.getsockname()