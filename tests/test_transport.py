import io

import pytest

from emitter.websocket.transport import (
    BINARY_MESSAGE,
    PING_MESSAGE,
    TEXT_MESSAGE,
    WebSocketTransport,
    new_conn,
)


class _Writer:
    def __init__(self):
        self.buffer = bytearray()
        self.closed = False

    def write(self, data):
        self.buffer += data
        return len(data)

    def close(self):
        self.closed = True


class _FakeSocket:
    def __init__(self, messages=(), writer=None):
        self.messages = list(messages)
        self.writer = writer
        self.writer_types = []
        self.read_deadlines = []
        self.write_deadlines = []
        self.closed = False

    def next_reader(self):
        if not self.messages:
            raise EOFError("EOF")
        message_type, data = self.messages.pop(0)
        return message_type, io.BytesIO(data)

    def next_writer(self, message_type):
        if self.writer is None:
            raise EOFError("EOF")
        self.writer_types.append(message_type)
        return self.writer

    def close(self):
        self.closed = True

    def local_address(self):
        return ""

    def remote_address(self):
        return ""

    def set_read_deadline(self, t):
        self.read_deadlines.append(t)

    def set_write_deadline(self, t):
        self.write_deadlines.append(t)


def test_read_eof():
    conn = new_conn(_FakeSocket())
    with pytest.raises(EOFError):
        conn.read(0)


def test_read():
    conn = WebSocketTransport(_FakeSocket([(BINARY_MESSAGE, b"hello world")]))
    assert conn.read(64) == b"hello world"


def test_read_skips_control_messages():
    sock = _FakeSocket([(PING_MESSAGE, b"ping"), (TEXT_MESSAGE, b"text")])
    conn = WebSocketTransport(sock)
    assert conn.read(64) == b"text"


def test_read_spans_messages():
    sock = _FakeSocket([(BINARY_MESSAGE, b"hello world"), (BINARY_MESSAGE, b"next")])
    conn = WebSocketTransport(sock)
    assert conn.read(5) == b"hello"
    assert conn.read(64) == b" world"
    assert conn.read(64) == b""
    assert conn.read(64) == b"next"


def test_write():
    writer = _Writer()
    sock = _FakeSocket(writer=writer)
    conn = WebSocketTransport(sock)
    assert conn.write(b"hello world") == 11
    assert bytes(writer.buffer) == b"hello world"
    assert writer.closed is True
    assert sock.writer_types == [BINARY_MESSAGE]


def test_write_error_propagates():
    conn = WebSocketTransport(_FakeSocket())
    with pytest.raises(EOFError):
        conn.write(b"data")


def test_misc():
    sock = _FakeSocket()
    conn = WebSocketTransport(sock)
    conn.set_deadline(1.0)
    conn.set_read_deadline(2.0)
    conn.set_write_deadline(3.0)
    assert sock.read_deadlines == [1.0, 2.0]
    assert sock.write_deadlines == [1.0, 3.0]
    assert conn.local_address() == ""
    assert conn.remote_address() == ""
    conn.close()
    assert sock.closed is True


def test_context_manager_closes():
    sock = _FakeSocket()
    with new_conn(sock) as conn:
        assert conn.local_address() == ""
    assert sock.closed is True