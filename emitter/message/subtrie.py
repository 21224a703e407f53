"""A subscription trie that matches SSIDs to subscribers."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Sequence

from emitter.message.ssid import (
    MULTI_WILDCARD,
    SHARE,
    WILDCARD,
    Ssid,
    Subscriber,
    SubscriberFilter,
    Subscribers,
    Subscription,
)

_MASK32 = 0xFFFFFFFF


class _Node:
    __slots__ = ("word", "subs", "parent", "children")

    def __init__(self, word: int = 0, parent: Optional["_Node"] = None) -> None:
        self.word = word
        self.subs = Subscribers()
        self.parent = parent
        self.children: dict[int, _Node] = {}

    def prune(self) -> None:
        """Detach this node and every ancestor left empty by it."""
        node = self
        while node.parent is not None:
            parent = node.parent
            parent.children.pop(node.word, None)
            if len(parent.subs) or parent.children:
                return
            node = parent


_LookupFn = Callable[[Sequence[int], Subscribers, _Node, SubscriberFilter], None]


def _lookup_emitter(
    query: Sequence[int], subs: Subscribers, node: _Node, filter: SubscriberFilter
) -> None:
    subs.add_range(node.subs, filter)
    if not query:
        return
    rest = query[1:]
    child = node.children.get(query[0])
    if child is not None:
        _lookup_emitter(rest, subs, child, filter)
    child = node.children.get(WILDCARD)
    if child is not None:
        _lookup_emitter(rest, subs, child, filter)


def _lookup_mqtt(
    query: Sequence[int], subs: Subscribers, node: _Node, filter: SubscriberFilter
) -> None:
    if not query:
        subs.add_range(node.subs, filter)
        return
    rest = query[1:]
    child = node.children.get(query[0])
    if child is not None:
        _lookup_mqtt(rest, subs, child, filter)
    child = node.children.get(WILDCARD)
    if child is not None:
        _lookup_mqtt(rest, subs, child, filter)
    child = node.children.get(MULTI_WILDCARD)
    if child is not None:
        subs.add_range(child.subs, filter)


class Trie:
    """A thread-safe collection of subscriptions with lookup capability."""

    def __init__(self, strategy: _LookupFn = _lookup_emitter) -> None:
        self._lock = threading.RLock()
        self._root = _Node()
        self._count = 0
        self._lookup = strategy
        seed = time.time_ns()
        self._rand = ((seed >> 32) ^ seed) & _MASK32

    def count(self) -> int:
        """Return the number of subscriptions."""
        with self._lock:
            return self._count

    def subscribe(self, ssid: Sequence[int], sub: Subscriber) -> Subscription:
        """Add the subscriber under the SSID and return the subscription."""
        ssid = Ssid(ssid)
        with self._lock:
            node = self._root
            for word in ssid:
                child = node.children.get(word)
                if child is None:
                    child = _Node(word, node)
                    node.children[word] = child
                node = child
            if node.subs.add_unique(sub):
                self._count += 1
        return Subscription(ssid=ssid, subscriber=sub)

    def unsubscribe(self, ssid: Sequence[int], subscriber: Subscriber) -> None:
        """Remove the subscriber from the SSID, pruning empty branches."""
        with self._lock:
            node = self._root
            for word in Ssid(ssid):
                child = node.children.get(word)
                if child is None:
                    return
                node = child
            if node.subs.remove(subscriber):
                self._count -= 1
            if not len(node.subs) and not node.children:
                node.prune()

    def lookup(self, ssid: Sequence[int], filter: SubscriberFilter = None) -> Subscribers:
        """Return the subscribers matching the SSID that pass the filter."""
        ssid = Ssid(ssid)
        subs = Subscribers()
        with self._lock:
            self._lookup(ssid, subs, self._root, filter)
            contract_node = self._root.children.get(ssid[0])
            if contract_node is not None:
                share_node = contract_node.children.get(SHARE)
                if share_node is not None:
                    self._random_by_group(ssid[1:], subs, share_node, filter)
        return subs

    def _next_random(self) -> int:
        x = self._rand
        x ^= (x << 13) & _MASK32
        x ^= x >> 17
        x ^= (x << 5) & _MASK32
        self._rand = x
        return x

    def _random_by_group(
        self,
        query: Sequence[int],
        subs: Subscribers,
        share_node: _Node,
        filter: SubscriberFilter,
    ) -> None:
        for group in list(share_node.children.values()):
            members = Subscribers()
            self._lookup(query, members, group, filter)
            if not len(members):
                continue
            subs.add_unique(members.random(self._next_random()))


def new_trie() -> Trie:
    """Create a trie using the emitter matching strategy."""
    return Trie(_lookup_emitter)


def new_trie_mqtt() -> Trie:
    """Create a trie using the MQTT matching strategy."""
    return Trie(_lookup_mqtt)