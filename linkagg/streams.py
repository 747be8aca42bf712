"""Packet links on top of byte streams, using the integrity codec."""

from __future__ import annotations

from typing import Optional, Protocol

from .codec import IntegrityCodec

_READ_SIZE = 64 * 1024


class _Writer(Protocol):
    def write(self, data: bytes) -> object: ...

    async def drain(self) -> None: ...

    def close(self) -> object: ...

    async def wait_closed(self) -> None: ...


class _Reader(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class IoTx:
    """Sends packets over a stream writer."""

    def __init__(self, writer: _Writer, codec: Optional[IntegrityCodec] = None) -> None:
        self._writer = writer
        self.codec = codec if codec is not None else IntegrityCodec()

    async def send(self, data: bytes) -> None:
        """Frame and send one packet."""
        self._writer.write(self.codec.encode(data))
        await self._writer.drain()

    async def close(self) -> None:
        """Close the underlying writer."""
        self._writer.close()
        await self._writer.wait_closed()


class IoRx:
    """Receives packets from a stream reader."""

    def __init__(self, reader: _Reader, codec: Optional[IntegrityCodec] = None) -> None:
        self._reader = reader
        self.codec = codec if codec is not None else IntegrityCodec()
        self._buffer = bytearray()
        self._eof = False

    async def recv(self) -> Optional[bytes]:
        """Receive the next packet, or ``None`` at the end of the stream.

        Raises ``EOFError`` if the stream ends in the middle of a packet.
        """
        while True:
            packet = self.codec.decode(self._buffer)
            if packet is not None:
                return packet
            if self._eof:
                if self._buffer:
                    raise EOFError("bytes remaining on stream")
                return None
            chunk = await self._reader.read(_READ_SIZE)
            if chunk:
                self._buffer += chunk
            else:
                self._eof = True

    def __aiter__(self) -> IoRx:
        return self

    async def __anext__(self) -> bytes:
        packet = await self.recv()
        if packet is None:
            raise StopAsyncIteration
        return packet