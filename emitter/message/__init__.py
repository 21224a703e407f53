"""Subscription and message identifiers, messages, frames, snappy and the subscription trie."""