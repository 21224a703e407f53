import io

import pytest

from emitter.listener.matcher import PatriciaTree, match_any, match_http, match_prefix


def _r(text: str) -> io.BytesIO:
    return io.BytesIO(text.encode())


TREES = [
    ("prefix",),
    ("foo", "bar", "dummy"),
    ("foo", "far", "farther", "boo", "ba", "bar"),
]


@pytest.mark.parametrize("strings", TREES)
def test_patricia_tree(strings):
    tree = PatriciaTree(*strings)
    for s in strings:
        assert tree.match(_r(s))
        assert tree.match_prefix(_r(s + s))
        assert not tree.match(_r(s + s))
        assert tree.match_prefix(_r(s + "$"))
        assert not tree.match(_r(s + "$"))
        shorter = s[:-1]
        assert tree.match(_r(shorter)) == (shorter in strings)
        assert tree.match_prefix(_r(shorter)) == any(shorter.startswith(x) for x in strings)


def test_overlapping_explicit_cases():
    tree = PatriciaTree("foo", "far", "farther", "boo", "ba", "bar")
    assert tree.match(_r("ba"))
    assert not tree.match(_r("b"))
    assert not tree.match_prefix(_r("b"))
    assert tree.match_prefix(_r("barn"))
    assert not tree.match(_r("fart"))
    assert tree.match_prefix(_r("fart"))
    assert not tree.match_prefix(_r("zoo"))


def test_max_depth():
    assert PatriciaTree("a", "abcd").max_depth == 5
    assert PatriciaTree().max_depth == 1


def test_empty_tree_matches_everything_as_prefix():
    tree = PatriciaTree()
    assert tree.match_prefix(_r("anything"))
    assert tree.match(_r(""))


def test_match_any():
    assert match_any()(_r("")) is True
    assert match_any()(_r("xyz")) is True


def test_match_prefix_function():
    matcher = match_prefix("MQTT", b"\x10")
    assert matcher(io.BytesIO(b"\x10\x20abc"))
    assert matcher(_r("MQTT rest"))
    assert not matcher(_r("HTTP"))


def test_match_http():
    matcher = match_http()
    assert matcher(_r("GET / HTTP/1.1\r\n"))
    assert matcher(_r("CONNECT host:443 HTTP/1.1"))
    assert matcher(_r("OPTIONS *"))
    assert not matcher(_r("FOO / HTTP/1.1"))
    assert not matcher(_r(""))


def test_match_http_extra_methods():
    assert not match_http()(_r("PROPFIND /"))
    assert match_http("PROPFIND")(_r("PROPFIND /"))


class _FailingReader:
    def __init__(self):
        self.calls = 0

    def read(self, n):
        self.calls += 1
        if self.calls == 1:
            return b"GE"
        raise TimeoutError("timed out")


def test_read_error_uses_partial_data():
    assert match_prefix("GE")(_FailingReader())
    assert not match_http()(_FailingReader())