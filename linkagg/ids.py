"""Unique identifiers for servers, connections and links."""

from __future__ import annotations

import secrets
import weakref
from dataclasses import dataclass
from typing import Callable, Optional

_U128_MAX = (1 << 128) - 1


def debug_id(value: int) -> str:
    """Short form of an identifier: the first six hex digits."""
    return f"{value:016x}"[:6]


def _check_u128(value: int) -> None:
    if not 0 <= value <= _U128_MAX:
        raise ValueError(f"identifier {value} out of 128-bit range")


@dataclass(frozen=True, order=True, repr=False)
class ConnId:
    """Connection identifier."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)

    @classmethod
    def generate(cls) -> ConnId:
        """Generate a random connection id."""
        return cls(secrets.randbits(128))

    def __str__(self) -> str:
        return f"{self.value:016x}"

    def __repr__(self) -> str:
        return debug_id(self.value)


@dataclass(frozen=True, order=True, repr=False)
class LinkId:
    """Link identifier."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)

    @classmethod
    def generate(cls) -> LinkId:
        """Generate a random link id."""
        return cls(secrets.randbits(128))

    def __str__(self) -> str:
        return f"{self.value:016x}"

    def __repr__(self) -> str:
        return debug_id(self.value)


@dataclass(frozen=True, order=True, repr=False)
class ServerId:
    """Server identifier; never zero."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)
        if self.value == 0:
            raise ValueError("server id must not be zero")

    @classmethod
    def generate(cls) -> ServerId:
        """Generate a random, non-zero server id."""
        while True:
            value = secrets.randbits(128)
            if value:
                return cls(value)

    def __str__(self) -> str:
        return f"{self.value:016x}"

    def __repr__(self) -> str:
        return debug_id(self.value)


def _key_from(secret: bytes) -> int:
    if len(secret) < 16:
        raise ValueError("shared secret must be at least 16 bytes long")
    return int.from_bytes(bytes(secret[:16]), "big")


@dataclass(frozen=True, repr=False)
class EncryptedConnId:
    """Connection identifier masked with the first 16 bytes of a shared secret."""

    value: int

    def __post_init__(self) -> None:
        _check_u128(self.value)

    @classmethod
    def encrypt(cls, conn_id: ConnId, secret: bytes) -> EncryptedConnId:
        """Mask ``conn_id`` with the shared secret."""
        return cls(_key_from(secret) ^ conn_id.value)

    def decrypt(self, secret: bytes) -> ConnId:
        """Recover the connection id using the shared secret."""
        return ConnId(_key_from(secret) ^ self.value)

    def __repr__(self) -> str:
        return f"*{debug_id(self.value)}*"


class OwnedConnId:
    """A connection id that reports when it is released or garbage collected.

    Share the same instance to share ownership; the callback runs at most once.
    """

    def __init__(
        self, conn_id: ConnId, on_drop: Optional[Callable[[ConnId], object]] = None
    ) -> None:
        self._conn_id = conn_id
        self._finalizer: Optional[weakref.finalize] = None
        if on_drop is not None:
            self._finalizer = weakref.finalize(self, on_drop, conn_id)
            self._finalizer.atexit = False

    @classmethod
    def untracked(cls, conn_id: ConnId) -> OwnedConnId:
        """A wrapper that reports nothing."""
        return cls(conn_id, None)

    @property
    def conn_id(self) -> ConnId:
        """The wrapped connection id."""
        return self._conn_id

    @property
    def released(self) -> bool:
        """Whether the drop notification has already been delivered."""
        return self._finalizer is not None and not self._finalizer.alive

    def release(self) -> None:
        """Deliver the drop notification now, if not already done."""
        if self._finalizer is not None:
            self._finalizer()

    def __enter__(self) -> OwnedConnId:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __str__(self) -> str:
        return str(self._conn_id)

    def __repr__(self) -> str:
        return repr(self._conn_id)