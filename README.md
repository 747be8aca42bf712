# linkagg

`linkagg` holds the protocol pieces for combining several network links
(TCP connections, TLS sessions, serial lines, anything that delivers bytes
in order) between two endpoints into one logical connection:

- **Wrapping sequence numbers** (`linkagg.seq.Seq`): 32-bit counters that
  wrap around and still compare correctly across the wrap, as long as the
  numbers in use lie within `Seq.USABLE_INTERVAL` of each other.
- **Identifiers** (`linkagg.ids`): random `ConnId`, `LinkId` and `ServerId`
  values (a server id is never zero). `EncryptedConnId` masks a connection
  id with the first 16 bytes of a shared secret, and `OwnedConnId` calls a
  callback once when it is released or garbage collected.
- **An integrity codec** (`linkagg.codec.IntegrityCodec`): frames packets
  with a length, a 16-bit sequence number and a CRC32 checksum. Oversized,
  skipped or corrupted packets raise `PacketTooBigError`, `SeqSkippedError`
  or `DataCorruptedError`, all subclasses of `IntegrityError`. The default
  maximum packet size is 8 MiB.
- **Stream wrappers** (`linkagg.streams.IoTx`, `linkagg.streams.IoRx`):
  turn an asyncio stream writer and reader into packet links using the
  codec. `IoRx` is also an async iterator over packets.
- **A peekable channel** (`linkagg.peekable`): `Channel` is a bounded,
  closable async queue; `PeekableReceiver` can look at the next item before
  taking it, and `recv_if` / `try_recv_if` take it only if a condition holds.
  `EmptyError`, `DisconnectedError` and `NoMatchError` report why nothing
  was received.
- **Protocol messages** (`linkagg.messages`): every message sent over a
  link — `Welcome`, `Connect`, `Accepted`, `Refused`, `Ping`, `Pong`,
  `Data`, `Ack`, `Consumed`, `SendFinish`, `ReceiveClose`, `ReceiveFinish`,
  `TestData`, `SetBlock` and `Goodbye` — with `LinkMsg.encode`, `decode`,
  `send_msg` and `recv_msg`. `ReliableMsg` converts between reliable
  payloads and their link messages. Malformed input raises `ProtocolError`.
- **The link handshake** (`linkagg.handshake`): `accept_handshake` runs the
  server side, `connect_handshake` the client side, using an X25519 key
  exchange so the connection id never travels in the clear.
  `send_accepted` and `send_refused` give the server's verdict.
- **Errors** (`linkagg.errors`): one exception class for each way that
  listening, accepting or adding a link can fail, and
  `add_link_error_from_refused` to map a `RefusedReason` to its error.

## Installation

```
pip install linkagg
```

Python 3.10 or newer is required. The only dependency is `cryptography`,
which provides the X25519 key exchange.

## Examples

### Sequence numbers

```python
from linkagg.seq import Seq

a = Seq(0xFFFF_FFF0)
b = a + 0x20          # wraps past zero
assert int(b) == 0x10
assert a < b          # still ordered correctly across the wrap
assert b - a == 0x20  # the difference is a plain int
```

### Framing a byte stream

```python
from linkagg.codec import IntegrityCodec

sender = IntegrityCodec()
receiver = IntegrityCodec()

wire = bytearray(sender.encode(b"hello") + sender.encode(b"world"))
assert receiver.decode(wire) == b"hello"
assert receiver.decode(wire) == b"world"
```

`decode` returns `None` until the buffer holds a complete packet and
removes consumed bytes from the buffer.

### Packet links over asyncio streams

```python
import asyncio
from linkagg.streams import IoRx, IoTx

async def echo(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    rx, tx = IoRx(reader), IoTx(writer)
    async for packet in rx:
        await tx.send(packet)
    await tx.close()
```

### Protocol messages

```python
from linkagg.messages import Ping, decode

raw = Ping().encode()
assert isinstance(decode(raw), Ping)
```

### A handshake over in-memory channels

```python
import asyncio
from linkagg.handshake import accept_handshake, connect_handshake, send_accepted
from linkagg.ids import ConnId, ServerId
from linkagg.peekable import Channel

async def main() -> None:
    to_server, to_client = Channel(8), Channel(8)
    server_id, conn_id = ServerId.generate(), ConnId.generate()

    async def server():
        info = await accept_handshake(to_client, to_server, server_id, timeout=5)
        await send_accepted(to_client)
        return info

    incoming, outgoing = await asyncio.gather(
        server(),
        connect_handshake(to_server, to_client, conn_id, None, timeout=5),
    )
    assert incoming.conn_id == conn_id
    assert outgoing.remote_server_id == server_id

asyncio.run(main())
```

## What this package does not do

It provides the wire format, framing, identifiers, handshake and error
types, but no server, listener or connection task: nothing here keeps a
set of links together, spreads data over them, acknowledges or resends
data, measures link speed or detects failed links. There is no
command-line tool.

## Running the tests

```
pip install -e ".[test]"
pytest
```