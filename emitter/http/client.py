"""An HTTP client with JSON decoding, permanent-redirect handling and host load balancing."""

from __future__ import annotations

import http.client
import itertools
import json
import socket
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol
from urllib.parse import SplitResult, urlsplit

_MAX_REDIRECTS = 10
_ACCEPT = "application/json, application/binary"
_BINARY = "application/binary"


class HttpError(Exception):
    """Raised when a request fails or the server answers with an error status."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class HeaderValue:
    """An HTTP header name with its value."""

    header: str
    value: str


def new_header(header: str, value: str) -> HeaderValue:
    """Build a header with a value."""
    return HeaderValue(header=header, value=value)


@dataclass
class _Response:
    status: int
    headers: http.client.HTTPMessage
    body: bytes


def _split(url: str) -> tuple[SplitResult, str]:
    parts = urlsplit(url if "://" in url else "http://" + url)
    if parts.scheme not in ("http", "https"):
        raise HttpError(f"unsupported url scheme {parts.scheme!r}")
    if not parts.hostname:
        raise HttpError(f"url {url!r} has no host")
    path = parts.path or "/"
    if parts.query:
        path += "?" + parts.query
    return parts, path


def _connection(scheme: str, host: str, port: Optional[int], timeout: float):
    if scheme == "https":
        return http.client.HTTPSConnection(host, port, timeout=timeout)
    return http.client.HTTPConnection(host, port, timeout=timeout)


def _exchange(conn, method: str, path: str, body: Optional[bytes], headers: dict) -> _Response:
    try:
        conn.request(method, path, body=body, headers=headers)
        resp = conn.getresponse()
        return _Response(resp.status, resp.headers, resp.read())
    except (OSError, http.client.HTTPException) as err:
        raise HttpError(f"http request failed: {err}") from err
    finally:
        conn.close()


class _Caller(Protocol):
    def do(self, method: str, url: str, body: Optional[bytes], headers: dict) -> _Response:
        ...


class _DirectCaller:
    """Connects to the host named in each URL."""

    def __init__(self, timeout: float) -> None:
        self._timeout = timeout

    def do(self, method: str, url: str, body: Optional[bytes], headers: dict) -> _Response:
        parts, path = _split(url)
        conn = _connection(parts.scheme, parts.hostname, parts.port, self._timeout)
        return _exchange(conn, method, path, body, headers)


class _BalancedCaller:
    """Connects to a fixed set of addresses in round-robin order."""

    def __init__(self, addresses: list[tuple[str, int]], timeout: float) -> None:
        self.addresses = addresses
        self._cycle = itertools.cycle(addresses)
        self._lock = threading.Lock()
        self._timeout = timeout

    def do(self, method: str, url: str, body: Optional[bytes], headers: dict) -> _Response:
        parts, path = _split(url)
        with self._lock:
            address, port = next(self._cycle)
        headers = {**headers, "Host": parts.netloc}
        conn = _connection(parts.scheme, address, port, self._timeout)
        return _exchange(conn, method, path, body, headers)


class Client:
    """An HTTP client which can be used for issuing requests concurrently."""

    def __init__(
        self,
        regular: _Caller,
        redirect: _Caller,
        default_headers: Iterable[HeaderValue] = (),
        host: str = "",
    ) -> None:
        self.host = host
        self.default_headers = tuple(default_headers)
        self._regular = regular
        self._redirect = redirect

    def get(self, url: str, *args: HeaderValue, decode: bool = False) -> Any:
        """Issue a GET; return the body, or the decoded body when decode is set."""
        return self._do(self._regular, url, "GET", None, args, decode)

    def post(self, url: str, body: bytes, *args: HeaderValue, decode: bool = False) -> Any:
        """Issue a POST with a body; return the body, or the decoded body when decode is set."""
        return self._do(self._regular, url, "POST", body, args, decode)

    def _headers(self, extra: Iterable[HeaderValue]) -> dict:
        merged: dict[str, tuple[str, str]] = {}
        for item in self.default_headers:
            merged[item.header.lower()] = (item.header, item.value)
        merged["accept"] = ("Accept", _ACCEPT)
        for item in extra:
            merged[item.header.lower()] = (item.header, item.value)
        return dict(merged.values())

    def _do(
        self,
        caller: _Caller,
        url: str,
        method: str,
        body: Optional[bytes],
        headers: tuple[HeaderValue, ...],
        decode: bool,
    ) -> Any:
        for _ in range(_MAX_REDIRECTS + 1):
            payload = None if body is None else bytes(body)
            response = caller.do(method, url, payload, self._headers(headers))
            code = response.status
            if code == 308:
                location = response.headers.get("Location")
                if not location:
                    raise HttpError("http status code 308 received without a location", code)
                url, caller = location, self._redirect
                continue
            if 400 <= code <= 599:
                raise HttpError(f"http status code {code} received", code)
            if code == 204:
                return None
            if not decode:
                return response.body
            if response.headers.get("Content-Type", "") == _BINARY:
                return response.body
            try:
                return json.loads(response.body)
            except ValueError as err:
                raise HttpError(f"unable to decode response: {err}", code) from err
        raise HttpError("too many redirects")


def new_client(timeout: float, *args: HeaderValue) -> Client:
    """Create a client that connects to whatever host each URL names."""
    caller = _DirectCaller(timeout)
    return Client(caller, caller, args)


def _resolve(host: str) -> list[tuple[str, int]]:
    parts = urlsplit(host if "://" in host else "http://" + host)
    hostname = parts.hostname
    if not hostname:
        raise HttpError(f"unable to resolve {host!r}")
    try:
        port = parts.port or 80
        infos = socket.getaddrinfo(hostname, port, type=socket.SOCK_STREAM)
    except (OSError, ValueError) as err:
        raise HttpError(f"unable to resolve {host!r}: {err}") from err
    addresses = list(dict.fromkeys((info[4][0], info[4][1]) for info in infos))
    if not addresses:
        raise HttpError(f"unable to resolve {host!r}")
    return addresses


def new_host_client(host: str, timeout: float, *args: HeaderValue) -> Client:
    """Create a client balancing requests round-robin over the addresses of a host."""
    addresses = _resolve(host)
    return Client(_BalancedCaller(addresses, timeout), _DirectCaller(timeout), args, host=host)


class MockClient:
    """A client answering from preset responses and recording every call.

    Responses are keyed by (method, url); an exception as a response is raised.
    """

    def __init__(self, responses: Optional[dict] = None) -> None:
        self.responses: dict[tuple[str, str], Any] = dict(responses or {})
        self.calls: list[tuple] = []

    def _answer(self, key: tuple[str, str], call: tuple) -> Any:
        self.calls.append(call)
        if key not in self.responses:
            raise LookupError(f"unexpected call {key[0]} {key[1]}")
        result = self.responses[key]
        if isinstance(result, BaseException):
            raise result
        return result

    def get(self, url: str, *args: HeaderValue, decode: bool = False) -> Any:
        """Record a GET and return its preset response."""
        return self._answer(("GET", url), ("GET", url, None, args, decode))

    def post(self, url: str, body: bytes, *args: HeaderValue, decode: bool = False) -> Any:
        """Record a POST and return its preset response."""
        return self._answer(("POST", url), ("POST", url, body, args, decode))