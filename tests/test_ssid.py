import pytest

from emitter.message.ssid import (
    PRESENCE,
    SHARE,
    WILDCARD,
    Counter,
    Counters,
    Ssid,
    Subscriber,
    Subscribers,
    SubscriberType,
    Subscription,
    new_ssid,
    new_ssid_for_presence,
    new_ssid_for_share,
)


class _TestSubscriber(Subscriber):
    def __init__(self, ident):
        self._ident = ident

    def id(self):
        return self._ident

    def type(self):
        return SubscriberType.DIRECT

    def send(self, message):
        return None


def test_ssid_presence():
    ssid = new_ssid_for_presence(Ssid((1, 2, 3)))
    assert ssid == (0, 3869262148, 1, 2, 3)
    assert ssid[1] == PRESENCE


def test_ssid_share():
    ssid = new_ssid_for_share(Ssid((1, 2, 3)))
    assert ssid == (1, SHARE, 2, 3)


def test_ssid_contract_and_hash():
    ssid = new_ssid(0, [10, 20, 50])
    assert ssid.contract() == 0
    assert ssid.hash_code() == 0x2C


@pytest.mark.parametrize(
    "query, expected",
    [
        ([10, 20, 50], "000000000000000a0000001400000032"),
        ([10, WILDCARD, 50], "000000000000000a........00000032"),
    ],
)
def test_ssid_encode(query, expected):
    assert new_ssid(0, query).encode() == expected


def test_new_counters_empty():
    counters = Counters()
    assert len(counters) == 0
    assert counters.all() == []


def test_counters_all_returns_copies():
    counters = Counters()
    counters.increment(Ssid((0,)), b"test")
    all_counters = counters.all()
    assert all_counters == [Counter(ssid=Ssid((0,)), channel=b"test", count=1)]
    all_counters[0].count = 100
    assert counters.all()[0].count == 1


def test_counters_increment_decrement():
    counters = Counters()
    ssid1 = Ssid((0,))
    ssid2 = Ssid((1,))

    assert counters.increment(ssid1, b"test") is True
    assert counters.increment(ssid2, b"test") is True
    assert counters.increment(ssid2, b"test") is False
    by_ssid = {c.ssid: c.count for c in counters.all()}
    assert by_ssid == {ssid1: 1, ssid2: 2}

    assert counters.decrement(ssid2) is False
    assert {c.ssid: c.count for c in counters.all()}[ssid2] == 1
    assert counters.decrement(ssid2) is True
    assert [c.ssid for c in counters.all()] == [ssid1]


def test_counters_decrement_missing():
    counters = Counters()
    assert counters.decrement(Ssid((5, 6))) is False


def test_subscribers_add_remove():
    subs = Subscribers()
    sub = _TestSubscriber("x")
    assert subs.add_unique(sub) is True
    assert subs.add_unique(sub) is False
    assert subs.remove(sub) is True
    assert subs.remove(sub) is False


def test_subscribers_none_is_ignored():
    subs = Subscribers()
    assert subs.add_unique(None) is False
    assert subs.remove(None) is False
    assert len(subs) == 0


def test_subscribers_contains():
    subs = Subscribers()
    a, b = _TestSubscriber("a"), _TestSubscriber("b")
    subs.add_unique(a)
    assert subs.contains(a) is True
    assert subs.contains(_TestSubscriber("a")) is True
    assert subs.contains(b) is False
    assert b not in subs


def test_subscribers_add_range_with_filter():
    source = Subscribers([_TestSubscriber(str(i)) for i in range(10)])
    target = Subscribers()
    target.add_range(source, lambda s: int(s.id()) % 2 == 0)
    assert sorted(s.id() for s in target) == ["0", "2", "4", "6", "8"]
    target.add_range(source, None)
    assert len(target) == 10


def test_subscribers_reset():
    subs = Subscribers([_TestSubscriber("a"), _TestSubscriber("b")])
    subs.reset()
    assert len(subs) == 0


def test_collisions():
    subs = Subscribers()
    count = 100000
    for i in range(count):
        subs.add_unique(_TestSubscriber(str(i)))
    assert len(subs) == count


def test_random_empty():
    assert Subscribers().random(12345) is None


def test_random_bounds():
    subs = Subscribers([_TestSubscriber(str(i)) for i in range(4)])
    assert subs.random(0).id() == "0"
    assert subs.random(0xFFFFFFFF).id() == "3"


@pytest.mark.parametrize("count", range(2, 20))
def test_random_distribution(count):
    iterations = 100000
    subs = Subscribers([_TestSubscriber(str(i)) for i in range(count)])
    n = 1552127721834
    x = ((n >> 32) ^ n) & 0xFFFFFFFF
    out = {}
    for _ in range(iterations):
        x ^= (x << 13) & 0xFFFFFFFF
        x ^= x >> 17
        x ^= (x << 5) & 0xFFFFFFFF
        sub = subs.random(x)
        out[sub.id()] = out.get(sub.id(), 0) + 1

    assert len(out) == count
    avg = iterations / count
    for value in out.values():
        assert abs(value - avg) / avg <= 0.05


def test_subscription_holds_values():
    sub = _TestSubscriber("s")
    subscription = Subscription(ssid=Ssid((1, 2)), subscriber=sub)
    assert subscription.ssid == (1, 2)
    assert subscription.subscriber.id() == "s"