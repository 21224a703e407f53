# emitter

Building blocks for a publish/subscribe message broker, written in plain
Python with no third-party dependencies.

## What is in it

- `emitter.message.ssid` — `Ssid`, a subscription id made of a contract and
  32-bit hashes of the channel parts (`new_ssid`, `new_ssid_for_presence`,
  `new_ssid_for_share`, `Ssid.encode` to hex with wildcards as dots);
  `Subscriber`, an abstract base class; `Subscribers`, a set of subscribers
  unique by id; `Counters`, thread-safe subscription counters.
- `emitter.message.id` — `MessageId`, a lexicographically sortable id holding
  a prefix, the reversed time, a reversed sequence number and the SSID words
  (`new_id`, `new_prefix`, `MessageId.match`, `MessageId.has_prefix`).
- `emitter.message.snappy` — snappy block-format `compress` and `decompress`;
  corrupt input raises `SnappyError`.
- `emitter.message.message` — `Message` and `Frame` (a list of messages) with a
  compact varint encoding compressed with snappy (`Message.encode`,
  `decode_message`, `Frame.encode`, `decode_frame`), plus `Frame.split`,
  `Frame.limit` and `Frame.sort_by_time`.
- `emitter.message.subtrie` — `Trie`, a thread-safe subscription trie.
  `new_trie()` matches emitter-style (a subscription also receives everything
  below it, `+` matches one level); `new_trie_mqtt()` matches MQTT-style
  (exact depth, `+` for one level, `#` for the rest). Shared subscriptions
  under the share word deliver to one random member of each group.
- `emitter.mqtt.wire` — fixed header and remaining-length encoding, string and
  integer helpers, and the errors `MqttError`, `MessageTooLargeError`,
  `BadPacketError`.
- `emitter.mqtt.packets` — MQTT 3.1 packets (`Connect`, `Connack`, `Publish`,
  `Puback`, `Pubrec`, `Pubrel`, `Pubcomp`, `Subscribe`, `Suback`,
  `Unsubscribe`, `Unsuback`, `Pingreq`, `Pingresp`, `Disconnect`) with
  `encode`/`encode_to`, and `decode_packet` to read one packet from a binary
  stream.
- `emitter.listener.matcher` — `PatriciaTree` and the matchers `match_any`,
  `match_prefix` and `match_http`, which look at the first bytes a client sends.
- `emitter.listener.conn` — `Conn`, a socket wrapper with read sniffing and
  rate-limited writes (writes over the rate are queued and flushed every
  second; rates outside 1–1000 per second become 60), and `RateLimiter`.
- `emitter.listener.listener` — `Listener`, a TCP listener (optionally TLS)
  that hands each connection to the first `MuxListener` whose matcher accepts
  it.
- `emitter.http.client` — a small HTTP client (`new_client`,
  `new_host_client` with round-robin over the resolved addresses) that
  follows 308 redirects, returns `None` for 204, raises `HttpError` for 4xx
  and 5xx, and with `decode=True` returns JSON-decoded bodies; `MockClient`
  answers from preset responses for tests.
- `emitter.websocket.transport` — `WebSocketTransport` (`new_conn`), which
  presents an already-open, message-based websocket connection as a byte
  stream.

## Install

```
pip install .
```

## Examples

Matching subscriptions:

```python
from emitter.message.ssid import Subscriber, SubscriberType
from emitter.message.subtrie import new_trie


class Printer(Subscriber):
    def __init__(self, name):
        self.name = name

    def id(self):
        return self.name

    def type(self):
        return SubscriberType.DIRECT

    def send(self, message):
        print(self.name, message)


trie = new_trie()
trie.subscribe([1, 2], Printer("alice"))
trie.subscribe([1], Printer("bob"))
print(len(trie.lookup([1, 2, 3], None)))  # 2
```

Encoding and decoding messages:

```python
from emitter.message.message import new_message, decode_message

msg = new_message([1, 2, 3], b"a/b/c/", b"hello")
assert decode_message(msg.encode()) == msg
```

Round-tripping an MQTT packet:

```python
import io
from emitter.mqtt.packets import Publish, decode_packet
from emitter.mqtt.wire import Header

packet = Publish(header=Header(qos=1), topic=b"a/b/c", message_id=7, payload=b"hi")
stream = io.BytesIO(packet.encode())
assert decode_packet(stream, 65536) == packet
```

Routing connections by protocol:

```python
import threading
from emitter.listener.listener import Listener
from emitter.listener.matcher import match_any, match_http

listener = Listener("127.0.0.1:0")
http_side = listener.match(match_http())
other_side = listener.match(match_any())
threading.Thread(target=listener.serve, daemon=True).start()
# http_side.accept() now returns connections that began with an HTTP method.
```

## What it does not do

This package provides parts, not a running broker. There is no command-line
program, no server that ties the listener, MQTT codec and trie together, no
message storage, no authentication or channel keys, and no clustering. The
websocket transport does not perform the HTTP upgrade handshake; it wraps a
connection that is already open.

## Tests

```
pip install .[test]
pytest
```