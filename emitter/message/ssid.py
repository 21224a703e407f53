"""Subscription identifiers, subscriber sets and subscription counters."""

from __future__ import annotations

import abc
import enum
import itertools
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Iterator, Optional

SYSTEM = 0
PRESENCE = 3869262148
QUERY = 3939663052
WILDCARD = 1815237614  # "+"
MULTI_WILDCARD = 4285801373  # "#"
SHARE = 1480642916

_WILDCARDS = frozenset((WILDCARD, MULTI_WILDCARD))
_MASK32 = 0xFFFFFFFF


class Ssid(tuple):
    """A subscription id: a contract followed by hashes of the channel parts."""

    def __new__(cls, words: Iterable[int] = ()) -> "Ssid":
        return super().__new__(cls, (int(w) & _MASK32 for w in words))

    def contract(self) -> int:
        """Return the contract part of the SSID."""
        return self[0]

    def hash_code(self) -> int:
        """Combine every word of the SSID into a single 32-bit hash."""
        result = 0
        for word in self:
            result ^= word
        return result

    def encode(self) -> str:
        """Encode as hex, eight characters per word; wildcards become dots."""
        return "".join(
            "........" if word in _WILDCARDS else f"{word:08x}" for word in self
        )


QUERY_SSID = Ssid((SYSTEM, QUERY))


def new_ssid(contract: int, query: Iterable[int]) -> Ssid:
    """Create an SSID from a contract and the channel hashes."""
    return Ssid((contract, *query))


def new_ssid_for_presence(original: Iterable[int]) -> Ssid:
    """Create the presence SSID for an existing SSID."""
    return Ssid((SYSTEM, PRESENCE, *original))


def new_ssid_for_share(original: Ssid) -> Ssid:
    """Create the shared-subscription SSID for an existing SSID."""
    return Ssid((original[0], SHARE, *original[1:]))


class SubscriberType(enum.IntEnum):
    """The kind of a subscriber."""

    DIRECT = 0
    REMOTE = 1
    OFFLINE = 2


class Subscriber(abc.ABC):
    """Something that can receive messages for a subscription."""

    @abc.abstractmethod
    def id(self) -> str:
        """Return the unique identifier of the subscriber."""

    @abc.abstractmethod
    def type(self) -> SubscriberType:
        """Return the kind of the subscriber."""

    @abc.abstractmethod
    def send(self, message) -> None:
        """Deliver a message to the subscriber."""


SubscriberFilter = Optional[Callable[[Subscriber], bool]]


class Subscribers:
    """A set of subscribers, unique by their identifier."""

    def __init__(self, subscribers: Iterable[Subscriber] = ()) -> None:
        self._items: dict[str, Subscriber] = {}
        for sub in subscribers:
            self.add_unique(sub)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(list(self._items.values()))

    def __contains__(self, value: object) -> bool:
        return isinstance(value, Subscriber) and self.contains(value)

    def __repr__(self) -> str:
        return f"Subscribers({sorted(self._items)!r})"

    def add_unique(self, value: Optional[Subscriber]) -> bool:
        """Add a subscriber unless one with the same id is present."""
        if value is None:
            return False
        key = value.id()
        if key in self._items:
            return False
        self._items[key] = value
        return True

    def add_range(self, other: "Subscribers", filter: SubscriberFilter = None) -> None:
        """Add every subscriber of another set that passes the filter."""
        for key, sub in other._items.items():
            if filter is None or filter(sub):
                self._items[key] = sub

    def remove(self, value: Optional[Subscriber]) -> bool:
        """Remove a subscriber; return whether it was present."""
        if value is None:
            return False
        return self._items.pop(value.id(), None) is not None

    def reset(self) -> None:
        """Remove every subscriber."""
        self._items.clear()

    def random(self, rnd: int) -> Optional[Subscriber]:
        """Pick a subscriber using a 32-bit random number in [0, 2**32)."""
        index = ((rnd & _MASK32) * len(self._items)) >> 32
        return next(itertools.islice(self._items.values(), index, None), None)

    def contains(self, value: Subscriber) -> bool:
        """Return whether a subscriber with the same id is in the set."""
        return value.id() in self._items


@dataclass(frozen=True)
class Subscription:
    """A subscriber attached to a parsed channel."""

    ssid: Ssid
    subscriber: Subscriber


@dataclass
class Counter:
    """The number of subscriptions to one channel."""

    ssid: Ssid
    channel: bytes
    count: int = 0


class Counters:
    """Thread-safe subscription counters keyed by SSID hash."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[int, Counter] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def increment(self, ssid: Ssid, channel: bytes) -> bool:
        """Count one more subscription; return True if it is the first."""
        ssid = Ssid(ssid)
        with self._lock:
            key = ssid.hash_code()
            counter = self._counters.get(key)
            if counter is None:
                counter = Counter(ssid=ssid, channel=channel)
                self._counters[key] = counter
            counter.count += 1
            return counter.count == 1

    def decrement(self, ssid: Ssid) -> bool:
        """Count one subscription less; return True if none are left."""
        key = Ssid(ssid).hash_code()
        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                return False
            counter.count -= 1
            if counter.count <= 0:
                del self._counters[key]
                return True
            return False

    def all(self) -> list[Counter]:
        """Return copies of all counters."""
        with self._lock:
            return [replace(counter) for counter in self._counters.values()]