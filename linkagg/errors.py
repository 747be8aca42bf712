"""Errors raised when listening, accepting links and connecting."""

from __future__ import annotations

from .ids import ServerId
from .messages import RefusedReason


class ListenError(OSError):
    """Listening for new connections failed."""


class AlreadyListeningError(ListenError):
    """A listener for the server already exists."""

    def __init__(self) -> None:
        super().__init__("already listening")


class IncomingError(ConnectionError):
    """An incoming link could not be handled."""


class IncomingIoError(IncomingError):
    """Sending or receiving over the incoming link failed."""

    def __init__(self, error: BaseException) -> None:
        super().__init__(f"IO error: {error}")
        self.error = error


class IncomingRefusedError(IncomingError, ConnectionRefusedError):
    """The incoming connection was refused by the listener."""

    def __init__(self) -> None:
        super().__init__("connection refused")


class NotListeningIncomingError(IncomingError, ConnectionRefusedError):
    """No listener is present to handle the incoming connection."""

    def __init__(self) -> None:
        super().__init__("not listening")


class IncomingClosedError(IncomingError, ConnectionAbortedError):
    """The incoming link belonged to an already closed connection."""

    def __init__(self) -> None:
        super().__init__("connection was closed")


class ServerDroppedError(IncomingError, ConnectionRefusedError):
    """The link aggregator server is gone."""

    def __init__(self) -> None:
        super().__init__("server dropped")


class ConnectError(OSError):
    """An outgoing connection could not be established."""


class ConnectTimeoutError(ConnectError, TimeoutError):
    """No working link was established within the configured timeout."""

    def __init__(self) -> None:
        super().__init__("connect timeout")


class AddLinkError(ConnectionError):
    """Adding a link to a connection failed."""

    def should_reconnect(self) -> bool:
        """Whether the attempt is worth retrying."""
        return isinstance(self, AddLinkIoError)


class AddLinkIoError(AddLinkError):
    """An IO error occurred while adding the link."""

    def __init__(self, error: BaseException) -> None:
        super().__init__(f"IO error: {error}")
        self.error = error


class ServerIdMismatchError(AddLinkError, ConnectionRefusedError):
    """The link reached a different server than the other links of the connection."""

    def __init__(self, expected: ServerId, present: ServerId) -> None:
        super().__init__(
            f"connected to server {expected} but link connects to server {present}"
        )
        self.expected = expected
        self.present = present


class NotListeningError(AddLinkError, ConnectionRefusedError):
    """The server is not accepting new connections."""

    def __init__(self) -> None:
        super().__init__("not listening")


class ConnectionClosedError(AddLinkError, ConnectionRefusedError):
    """The connection was closed."""

    def __init__(self) -> None:
        super().__init__("connection closed")


class ConnectionRefusedByPeerError(AddLinkError, ConnectionRefusedError):
    """The connection was actively refused."""

    def __init__(self) -> None:
        super().__init__("connection refused")


class LinkRefusedError(AddLinkError, ConnectionRefusedError):
    """The link was actively refused by the link filter."""

    def __init__(self) -> None:
        super().__init__("link refused")


_REFUSED_ERRORS = {
    RefusedReason.CLOSED: ConnectionClosedError,
    RefusedReason.NOT_LISTENING: NotListeningError,
    RefusedReason.CONNECTION_REFUSED: ConnectionRefusedByPeerError,
    RefusedReason.LINK_REFUSED: LinkRefusedError,
}


def add_link_error_from_refused(reason: RefusedReason) -> AddLinkError:
    """The error matching a refusal reason received from the remote endpoint."""
    return _REFUSED_ERRORS[RefusedReason(reason)]()