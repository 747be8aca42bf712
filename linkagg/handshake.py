"""Protocol handshake performed when a link is added to a connection."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Optional, Protocol, TypeVar

from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .codec import IntegrityError
from .errors import (
    AddLinkError,
    AddLinkIoError,
    IncomingIoError,
    ServerIdMismatchError,
    add_link_error_from_refused,
)
from .ids import ConnId, EncryptedConnId, ServerId
from .messages import (
    MAX_USER_DATA,
    Accepted,
    Connect,
    ProtocolError,
    Refused,
    RefusedReason,
    Welcome,
    recv_msg,
    send_msg,
)

T = TypeVar("T")

_IO_ERRORS = (ProtocolError, IntegrityError, OSError, EOFError, asyncio.TimeoutError)


class _PacketSender(Protocol):
    def send(self, data: bytes) -> Awaitable[None]: ...


class _PacketReceiver(Protocol):
    def recv(self) -> Awaitable[Optional[bytes]]: ...


@dataclass(frozen=True)
class IncomingHandshake:
    """What the server learned from a client while accepting a link.

    ``roundtrip`` is in seconds.
    """

    remote_server_id: Optional[ServerId]
    conn_id: ConnId
    existing: bool
    remote_cfg: bytes
    roundtrip: float
    remote_user_data: bytes


@dataclass(frozen=True)
class OutgoingHandshake:
    """What the client learned from a server while adding a link.

    ``roundtrip`` is in seconds.
    """

    remote_server_id: ServerId
    remote_cfg: bytes
    roundtrip: float
    remote_user_data: bytes


def _check_user_data(user_data: bytes) -> None:
    if len(user_data) > MAX_USER_DATA:
        raise ValueError("user_data is too big")


def _keypair():
    private = X25519PrivateKey.generate()
    public = private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return private, public


def _shared_secret(private: X25519PrivateKey, peer_public: bytes) -> bytes:
    return private.exchange(X25519PublicKey.from_public_bytes(bytes(peer_public)))


async def _within(timeout: Optional[float], coro: Awaitable[T]) -> T:
    if timeout is None:
        return await coro
    return await asyncio.wait_for(coro, timeout)


async def accept_handshake(
    tx: _PacketSender,
    rx: _PacketReceiver,
    server_id: ServerId,
    user_data: bytes = b"",
    cfg_data: bytes = b"",
    timeout: Optional[float] = None,
) -> IncomingHandshake:
    """Run the server side of the handshake on an incoming link.

    Sends ``Welcome`` and waits for ``Connect``. Failures, including the
    timeout, raise ``IncomingIoError``.
    """
    _check_user_data(user_data)

    async def run() -> IncomingHandshake:
        private, public = _keypair()
        start = time.monotonic()
        await send_msg(Welcome(0, public, server_id, bytes(user_data), bytes(cfg_data)), tx)
        msg = await recv_msg(rx)
        if not isinstance(msg, Connect):
            raise ProtocolError("expected Connect message")
        secret = _shared_secret(private, msg.public_key)
        return IncomingHandshake(
            remote_server_id=msg.server_id,
            conn_id=msg.connection_id.decrypt(secret),
            existing=msg.existing_connection,
            remote_cfg=msg.cfg,
            roundtrip=time.monotonic() - start,
            remote_user_data=msg.user_data,
        )

    try:
        return await _within(timeout, run())
    except _IO_ERRORS as err:
        raise IncomingIoError(err) from err


async def connect_handshake(
    tx: _PacketSender,
    rx: _PacketReceiver,
    conn_id: ConnId,
    server_id: Optional[ServerId],
    known_server_id: Optional[ServerId] = None,
    existing: bool = False,
    user_data: bytes = b"",
    cfg_data: bytes = b"",
    timeout: Optional[float] = None,
) -> OutgoingHandshake:
    """Run the client side of the handshake on an outgoing link.

    Waits for ``Welcome``, sends ``Connect`` and waits for the server's
    verdict. If ``known_server_id`` is given and differs from the server's
    id, ``ServerIdMismatchError`` is raised before anything is sent.
    A refusal raises the matching ``AddLinkError``; other failures,
    including the timeout, raise ``AddLinkIoError``.
    """
    _check_user_data(user_data)

    async def run() -> OutgoingHandshake:
        private, public = _keypair()
        welcome = await recv_msg(rx)
        if not isinstance(welcome, Welcome):
            raise ProtocolError("expected Welcome message")
        secret = _shared_secret(private, welcome.public_key)

        if known_server_id is not None and known_server_id != welcome.server_id:
            raise ServerIdMismatchError(known_server_id, welcome.server_id)

        start = time.monotonic()
        await send_msg(
            Connect(
                0,
                public,
                server_id,
                EncryptedConnId.encrypt(conn_id, secret),
                bool(existing),
                bytes(user_data),
                bytes(cfg_data),
            ),
            tx,
        )

        reply = await recv_msg(rx)
        if isinstance(reply, Accepted):
            return OutgoingHandshake(
                remote_server_id=welcome.server_id,
                remote_cfg=welcome.cfg,
                roundtrip=time.monotonic() - start,
                remote_user_data=welcome.user_data,
            )
        if isinstance(reply, Refused):
            raise add_link_error_from_refused(reply.reason)
        raise ProtocolError("expected Accepted or Refused message")

    try:
        return await _within(timeout, run())
    except AddLinkError:
        raise
    except _IO_ERRORS as err:
        raise AddLinkIoError(err) from err


async def send_accepted(tx: _PacketSender) -> None:
    """Tell the client that its link was accepted."""
    await send_msg(Accepted(), tx)


async def send_refused(tx: _PacketSender, reason: RefusedReason) -> None:
    """Tell the client that its link was refused and why."""
    await send_msg(Refused(RefusedReason(reason)), tx)