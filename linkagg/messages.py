"""Protocol messages exchanged over a single link."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Awaitable, ClassVar, Dict, Optional, Protocol, Tuple, Type

from .ids import EncryptedConnId, ServerId
from .seq import Seq

PROTOCOL_VERSION = 4
MAGIC = b"LIAG\0"
PUBLIC_KEY_LEN = 32
MAX_USER_DATA = 0xFFFF


class ProtocolError(ValueError):
    """A message violated the link protocol."""


class RefusedReason(enum.IntEnum):
    """Reason for refusal of an incoming link."""

    CLOSED = 1
    NOT_LISTENING = 2
    CONNECTION_REFUSED = 3
    LINK_REFUSED = 4

    @classmethod
    def from_wire(cls, value: int) -> RefusedReason:
        """Parse the wire value, raising ``ProtocolError`` if unknown."""
        try:
            return cls(value)
        except ValueError:
            raise ProtocolError(f"unknown refused reason {value}") from None


class _Reader:
    """Reads big-endian fields from a received packet."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def take(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise ProtocolError("message too short")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def uint(self, size: int) -> int:
        return int.from_bytes(self.take(size), "big")

    def rest(self) -> bytes:
        chunk = self._data[self._pos:]
        self._pos = len(self._data)
        return chunk


def _user_data_field(user_data: bytes) -> bytes:
    if len(user_data) > MAX_USER_DATA:
        raise ProtocolError("user data is too long")
    return len(user_data).to_bytes(2, "big") + bytes(user_data)


def _read_preamble(reader: _Reader) -> None:
    if reader.take(len(MAGIC)) != MAGIC:
        raise ProtocolError("invalid magic")
    version = reader.uint(1)
    if version != PROTOCOL_VERSION:
        raise ProtocolError(
            f"expected protocol version {PROTOCOL_VERSION} but got {version}"
        )


def _check_public_key(public_key: bytes) -> None:
    if len(public_key) != PUBLIC_KEY_LEN:
        raise ValueError(f"public key must be {PUBLIC_KEY_LEN} bytes long")


class LinkMsg:
    """Base of all messages between two link endpoints."""

    __slots__ = ()
    MSG_ID: ClassVar[int]

    def _body(self) -> bytes:
        return b""

    @classmethod
    def _read(cls, reader: _Reader) -> LinkMsg:
        return cls()

    def encode(self) -> bytes:
        """Serialize the message into one packet."""
        return bytes([self.MSG_ID]) + self._body()


@dataclass(frozen=True)
class Welcome(LinkMsg):
    """Sent from server to client when a link is established."""

    MSG_ID: ClassVar[int] = 1

    extensions: int
    public_key: bytes
    server_id: ServerId
    user_data: bytes = b""
    cfg: bytes = b""

    def __post_init__(self) -> None:
        _check_public_key(self.public_key)

    def _body(self) -> bytes:
        return (
            MAGIC
            + bytes([PROTOCOL_VERSION])
            + self.extensions.to_bytes(4, "big")
            + bytes(self.public_key)
            + self.server_id.value.to_bytes(16, "big")
            + _user_data_field(self.user_data)
            + bytes(self.cfg)
        )

    @classmethod
    def _read(cls, reader: _Reader) -> Welcome:
        _read_preamble(reader)
        extensions = reader.uint(4)
        public_key = reader.take(PUBLIC_KEY_LEN)
        raw_server_id = reader.uint(16)
        if raw_server_id == 0:
            raise ProtocolError("server id must not be zero")
        user_data = reader.take(reader.uint(2))
        return cls(extensions, public_key, ServerId(raw_server_id), user_data, reader.rest())


@dataclass(frozen=True)
class Connect(LinkMsg):
    """Sent from client to server in reply to ``Welcome``.

    ``server_id`` is ``None`` if the client does not accept incoming links.
    """

    MSG_ID: ClassVar[int] = 2

    extensions: int
    public_key: bytes
    server_id: Optional[ServerId]
    connection_id: EncryptedConnId
    existing_connection: bool
    user_data: bytes = b""
    cfg: bytes = b""

    def __post_init__(self) -> None:
        _check_public_key(self.public_key)

    def _body(self) -> bytes:
        raw_server_id = self.server_id.value if self.server_id is not None else 0
        return (
            MAGIC
            + bytes([PROTOCOL_VERSION])
            + self.extensions.to_bytes(4, "big")
            + bytes(self.public_key)
            + raw_server_id.to_bytes(16, "big")
            + self.connection_id.value.to_bytes(16, "big")
            + bytes([int(bool(self.existing_connection))])
            + _user_data_field(self.user_data)
            + bytes(self.cfg)
        )

    @classmethod
    def _read(cls, reader: _Reader) -> Connect:
        _read_preamble(reader)
        extensions = reader.uint(4)
        public_key = reader.take(PUBLIC_KEY_LEN)
        raw_server_id = reader.uint(16)
        connection_id = EncryptedConnId(reader.uint(16))
        existing = reader.uint(1) != 0
        user_data = reader.take(reader.uint(2))
        return cls(
            extensions,
            public_key,
            ServerId(raw_server_id) if raw_server_id else None,
            connection_id,
            existing,
            user_data,
            reader.rest(),
        )


@dataclass(frozen=True)
class Accepted(LinkMsg):
    """Connection accepted by server."""

    MSG_ID: ClassVar[int] = 3


@dataclass(frozen=True)
class Refused(LinkMsg):
    """Connection refused by server."""

    MSG_ID: ClassVar[int] = 4

    reason: RefusedReason

    def _body(self) -> bytes:
        return bytes([int(self.reason)])

    @classmethod
    def _read(cls, reader: _Reader) -> Refused:
        return cls(RefusedReason.from_wire(reader.uint(1)))


@dataclass(frozen=True)
class Ping(LinkMsg):
    """Echo request."""

    MSG_ID: ClassVar[int] = 5


@dataclass(frozen=True)
class Pong(LinkMsg):
    """Echo reply."""

    MSG_ID: ClassVar[int] = 6


@dataclass(frozen=True)
class _SeqMsg(LinkMsg):
    seq: Seq

    def _body(self) -> bytes:
        return int(self.seq).to_bytes(4, "big")

    @classmethod
    def _read(cls, reader: _Reader):
        return cls(Seq(reader.uint(4)))


@dataclass(frozen=True)
class Data(_SeqMsg):
    """Announces one data packet that follows this message."""

    MSG_ID: ClassVar[int] = 7


@dataclass(frozen=True)
class Ack(LinkMsg):
    """Acknowledges data received over this link."""

    MSG_ID: ClassVar[int] = 8

    received: Seq

    def _body(self) -> bytes:
        return int(self.received).to_bytes(4, "big")

    @classmethod
    def _read(cls, reader: _Reader) -> Ack:
        return cls(Seq(reader.uint(4)))


@dataclass(frozen=True)
class Consumed(LinkMsg):
    """Notifies that received data has been consumed."""

    MSG_ID: ClassVar[int] = 9

    seq: Seq
    consumed: int

    def _body(self) -> bytes:
        return int(self.seq).to_bytes(4, "big") + self.consumed.to_bytes(4, "big")

    @classmethod
    def _read(cls, reader: _Reader) -> Consumed:
        seq = Seq(reader.uint(4))
        return cls(seq, reader.uint(4))


@dataclass(frozen=True)
class SendFinish(_SeqMsg):
    """No more data will be sent."""

    MSG_ID: ClassVar[int] = 10


@dataclass(frozen=True)
class ReceiveClose(_SeqMsg):
    """No interest in more data; data already sent is still processed."""

    MSG_ID: ClassVar[int] = 11


@dataclass(frozen=True)
class ReceiveFinish(_SeqMsg):
    """No more received data will be processed."""

    MSG_ID: ClassVar[int] = 12


@dataclass(frozen=True)
class TestData(LinkMsg):
    """Test payload of the given size used to check a link."""

    __test__ = False  # not a pytest test class
    MSG_ID: ClassVar[int] = 13

    size: int

    def _body(self) -> bytes:
        return bytes(n & 0xFF for n in range(self.size))

    @classmethod
    def _read(cls, reader: _Reader) -> TestData:
        return cls(len(reader.rest()))


@dataclass(frozen=True)
class SetBlock(LinkMsg):
    """Sets whether the link is blocked."""

    MSG_ID: ClassVar[int] = 14

    blocked: bool

    def _body(self) -> bytes:
        return bytes([int(bool(self.blocked))])

    @classmethod
    def _read(cls, reader: _Reader) -> SetBlock:
        return cls(reader.uint(1) != 0)


@dataclass(frozen=True)
class Goodbye(LinkMsg):
    """No more messages will be sent; receiving continues until ``Goodbye``."""

    MSG_ID: ClassVar[int] = 15


_MESSAGE_TYPES: Dict[int, Type[LinkMsg]] = {
    msg_type.MSG_ID: msg_type
    for msg_type in (
        Welcome, Connect, Accepted, Refused, Ping, Pong, Data, Ack, Consumed,
        SendFinish, ReceiveClose, ReceiveFinish, TestData, SetBlock, Goodbye,
    )
}


def decode(data: bytes) -> LinkMsg:
    """Parse one packet into a message."""
    reader = _Reader(data)
    msg_id = reader.uint(1)
    msg_type = _MESSAGE_TYPES.get(msg_id)
    if msg_type is None:
        raise ProtocolError(f"invalid message id {msg_id}")
    return msg_type._read(reader)


class _PacketSender(Protocol):
    def send(self, data: bytes) -> Awaitable[None]: ...


class _PacketReceiver(Protocol):
    def recv(self) -> Awaitable[Optional[bytes]]: ...


async def send_msg(msg: LinkMsg, tx: _PacketSender) -> None:
    """Encode ``msg`` and send it as one packet."""
    await tx.send(msg.encode())


async def recv_msg(rx: _PacketReceiver) -> LinkMsg:
    """Receive one packet and decode it.

    Raises ``EOFError`` if the link has ended.
    """
    packet = await rx.recv()
    if packet is None:
        raise EOFError("message too short")
    return decode(packet)


class ReliableKind(enum.Enum):
    """Kinds of messages whose reception is acknowledged and resent if lost."""

    DATA = "data"
    CONSUMED = "consumed"
    SEND_FINISH = "send_finish"
    RECEIVE_CLOSE = "receive_close"
    RECEIVE_FINISH = "receive_finish"


_SEQ_ONLY: Dict[ReliableKind, Type[_SeqMsg]] = {
    ReliableKind.SEND_FINISH: SendFinish,
    ReliableKind.RECEIVE_CLOSE: ReceiveClose,
    ReliableKind.RECEIVE_FINISH: ReceiveFinish,
}


@dataclass(frozen=True, repr=False)
class ReliableMsg:
    """A reliable message: data, a consumption notice or a stream state change."""

    kind: ReliableKind
    data: Optional[bytes] = None
    consumed: int = 0

    def __post_init__(self) -> None:
        if (self.kind is ReliableKind.DATA) != (self.data is not None):
            raise ValueError("data is required for and only for DATA messages")

    def to_link_msg(self, seq: Seq) -> Tuple[LinkMsg, Optional[bytes]]:
        """The link message announcing this message, and the data packet that follows."""
        if self.kind is ReliableKind.DATA:
            return Data(seq), self.data
        if self.kind is ReliableKind.CONSUMED:
            return Consumed(seq, self.consumed), None
        return _SEQ_ONLY[self.kind](seq), None

    @classmethod
    def from_link_msg(cls, msg: LinkMsg, data: Optional[bytes] = None) -> Tuple[ReliableMsg, Seq]:
        """Build from a received link message and, for ``Data``, its packet."""
        if isinstance(msg, Data):
            if data is None:
                raise ValueError("data message without data")
            return cls(ReliableKind.DATA, data=bytes(data)), msg.seq
        if isinstance(msg, Consumed):
            return cls(ReliableKind.CONSUMED, consumed=msg.consumed), msg.seq
        for kind, msg_type in _SEQ_ONLY.items():
            if type(msg) is msg_type:
                return cls(kind), msg.seq
        raise ValueError("not a reliable link message")

    def __repr__(self) -> str:
        if self.kind is ReliableKind.DATA:
            return f"Data({len(self.data)} bytes)"
        if self.kind is ReliableKind.CONSUMED:
            return f"Consumed({self.consumed} bytes)"
        return "".join(part.capitalize() for part in self.kind.value.split("_"))