import asyncio

import pytest

from linkagg.errors import (
    AddLinkIoError,
    ConnectionClosedError,
    IncomingIoError,
    NotListeningError,
    ServerIdMismatchError,
)
from linkagg.handshake import (
    IncomingHandshake,
    OutgoingHandshake,
    accept_handshake,
    connect_handshake,
    send_accepted,
    send_refused,
)
from linkagg.ids import ConnId, ServerId
from linkagg.messages import (
    Connect,
    Ping,
    ProtocolError,
    RefusedReason,
    Welcome,
    decode,
)


class _Pipe:
    """One direction of an in-memory packet link."""

    def __init__(self):
        self.queue = asyncio.Queue()

    async def send(self, data):
        self.queue.put_nowait(bytes(data))

    async def recv(self):
        return await self.queue.get()

    def end(self):
        self.queue.put_nowait(None)

    def sent(self):
        items = []
        while not self.queue.empty():
            items.append(self.queue.get_nowait())
        return items


def _welcome_packet(server_id, user_data=b"", cfg=b""):
    return Welcome(0, bytes(32 * [9]), server_id, user_data, cfg).encode()


@pytest.mark.asyncio
async def test_full_handshake_exchanges_ids_and_data():
    to_server, to_client = _Pipe(), _Pipe()
    server_id = ServerId.generate()
    client_server_id = ServerId.generate()
    conn_id = ConnId.generate()

    async def server():
        result = await accept_handshake(
            to_client, to_server, server_id, b"srv", b"scfg", timeout=5
        )
        await send_accepted(to_client)
        return result

    incoming, outgoing = await asyncio.gather(
        server(),
        connect_handshake(
            to_server, to_client, conn_id, client_server_id,
            None, True, b"cli", b"ccfg", timeout=5,
        ),
    )
    assert isinstance(incoming, IncomingHandshake)
    assert isinstance(outgoing, OutgoingHandshake)
    assert incoming.conn_id == conn_id
    assert incoming.remote_server_id == client_server_id
    assert incoming.existing is True
    assert incoming.remote_user_data == b"cli"
    assert incoming.remote_cfg == b"ccfg"
    assert incoming.roundtrip >= 0
    assert outgoing.remote_server_id == server_id
    assert outgoing.remote_user_data == b"srv"
    assert outgoing.remote_cfg == b"scfg"
    assert outgoing.roundtrip >= 0


@pytest.mark.asyncio
async def test_outgoing_only_client_has_no_server_id():
    to_server, to_client = _Pipe(), _Pipe()
    conn_id = ConnId.generate()
    known = ServerId.generate()

    async def server():
        result = await accept_handshake(to_client, to_server, known)
        await send_accepted(to_client)
        return result

    incoming, outgoing = await asyncio.gather(
        server(),
        connect_handshake(to_server, to_client, conn_id, None, known),
    )
    assert incoming.remote_server_id is None
    assert incoming.existing is False
    assert incoming.conn_id == conn_id
    assert outgoing.remote_server_id == known


@pytest.mark.asyncio
async def test_connection_id_is_not_sent_in_clear():
    to_server, to_client = _Pipe(), _Pipe()
    conn_id = ConnId.generate()
    to_client.queue.put_nowait(_welcome_packet(ServerId.generate()))
    await send_refused(to_client, RefusedReason.CLOSED)
    with pytest.raises(ConnectionClosedError):
        await connect_handshake(to_server, to_client, conn_id, None, timeout=5)
    (packet,) = to_server.sent()
    msg = decode(packet)
    assert isinstance(msg, Connect)
    assert msg.connection_id.value != conn_id.value
    assert msg.existing_connection is False


@pytest.mark.asyncio
async def test_refused_maps_to_add_link_error():
    to_server, to_client = _Pipe(), _Pipe()

    async def server():
        await accept_handshake(to_client, to_server, ServerId.generate())
        await send_refused(to_client, RefusedReason.NOT_LISTENING)

    results = await asyncio.gather(
        server(),
        connect_handshake(to_server, to_client, ConnId.generate(), None, timeout=5),
        return_exceptions=True,
    )
    assert results[0] is None
    assert isinstance(results[1], NotListeningError)
    assert results[1].should_reconnect() is False


@pytest.mark.asyncio
async def test_server_id_mismatch_stops_before_connect():
    to_server, to_client = _Pipe(), _Pipe()
    present = ServerId.generate()
    expected = ServerId(present.value ^ 1)
    to_client.queue.put_nowait(_welcome_packet(present))
    with pytest.raises(ServerIdMismatchError) as info:
        await connect_handshake(to_server, to_client, ConnId.generate(), None, expected)
    assert info.value.expected == expected
    assert info.value.present == present
    assert to_server.sent() == []


@pytest.mark.asyncio
async def test_client_expects_welcome():
    to_server, to_client = _Pipe(), _Pipe()
    to_client.queue.put_nowait(Ping().encode())
    with pytest.raises(AddLinkIoError) as info:
        await connect_handshake(to_server, to_client, ConnId.generate(), None)
    assert isinstance(info.value.error, ProtocolError)
    assert "expected Welcome message" in str(info.value)
    assert info.value.should_reconnect() is True


@pytest.mark.asyncio
async def test_client_expects_accepted_or_refused():
    to_server, to_client = _Pipe(), _Pipe()
    to_client.queue.put_nowait(_welcome_packet(ServerId.generate()))
    to_client.queue.put_nowait(Ping().encode())
    with pytest.raises(AddLinkIoError) as info:
        await connect_handshake(to_server, to_client, ConnId.generate(), None)
    assert "expected Accepted or Refused message" in str(info.value)


@pytest.mark.asyncio
async def test_client_times_out():
    to_server, to_client = _Pipe(), _Pipe()
    with pytest.raises(AddLinkIoError) as info:
        await connect_handshake(
            to_server, to_client, ConnId.generate(), None, timeout=0.05
        )
    assert isinstance(info.value.error, asyncio.TimeoutError)


@pytest.mark.asyncio
async def test_server_expects_connect():
    to_server, to_client = _Pipe(), _Pipe()
    to_server.queue.put_nowait(Ping().encode())
    server_id = ServerId.generate()
    with pytest.raises(IncomingIoError) as info:
        await accept_handshake(to_client, to_server, server_id, b"x")
    assert "expected Connect message" in str(info.value)
    (packet,) = to_client.sent()
    welcome = decode(packet)
    assert isinstance(welcome, Welcome)
    assert welcome.server_id == server_id
    assert welcome.user_data == b"x"


@pytest.mark.asyncio
async def test_server_link_ends_early():
    to_server, to_client = _Pipe(), _Pipe()
    to_server.end()
    with pytest.raises(IncomingIoError) as info:
        await accept_handshake(to_client, to_server, ServerId.generate())
    assert isinstance(info.value.error, EOFError)


@pytest.mark.asyncio
async def test_server_times_out():
    to_server, to_client = _Pipe(), _Pipe()
    with pytest.raises(IncomingIoError) as info:
        await accept_handshake(to_client, to_server, ServerId.generate(), timeout=0.05)
    assert isinstance(info.value.error, asyncio.TimeoutError)


@pytest.mark.asyncio
async def test_user_data_too_big():
    to_server, to_client = _Pipe(), _Pipe()
    with pytest.raises(ValueError, match="user_data is too big"):
        await accept_handshake(to_client, to_server, ServerId.generate(), bytes(0x10000))
    with pytest.raises(ValueError, match="user_data is too big"):
        await connect_handshake(
            to_server, to_client, ConnId.generate(), None, None, False, bytes(0x10000)
        )
    assert to_client.sent() == []


@pytest.mark.asyncio
async def test_verdict_wire_bytes():
    pipe = _Pipe()
    await send_accepted(pipe)
    await send_refused(pipe, RefusedReason.CLOSED)
    await send_refused(pipe, RefusedReason.LINK_REFUSED)
    assert pipe.sent() == [b"\x03", b"\x04\x01", b"\x04\x04"]