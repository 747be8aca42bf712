"""Length-, sequence- and checksum-framed packets over byte streams."""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass
from typing import Optional

_HEADER = struct.Struct(">IHI")
HEADER_LEN = _HEADER.size
DEFAULT_MAX_PACKET_SIZE = 8 * 1024 * 1024


class IntegrityError(ValueError):
    """A packet failed integrity checks."""


class PacketTooBigError(IntegrityError):
    """A packet exceeds the maximum allowed size."""

    def __init__(self) -> None:
        super().__init__("packet too big")


class SeqSkippedError(IntegrityError):
    """A sequence number was skipped or corrupted."""

    def __init__(self) -> None:
        super().__init__("sequence number skipped")


class DataCorruptedError(IntegrityError):
    """Data checksum verification failed."""

    def __init__(self) -> None:
        super().__init__("data corrupted")


@dataclass(frozen=True)
class _Header:
    length: int
    checksum: int


class IntegrityCodec:
    """Frames packets with a length, a 16-bit sequence number and a CRC32 checksum."""

    def __init__(self, max_packet_size: int = DEFAULT_MAX_PACKET_SIZE) -> None:
        self.max_packet_size = max_packet_size
        self._pending: Optional[_Header] = None
        self._decode_seq = 0
        self._encode_seq = 0

    def encode(self, data: bytes) -> bytes:
        """Frame one packet for sending."""
        if len(data) > self.max_packet_size:
            raise PacketTooBigError()
        header = _HEADER.pack(len(data), self._encode_seq, zlib.crc32(data))
        self._encode_seq = (self._encode_seq + 1) & 0xFFFF
        return header + bytes(data)

    def decode(self, buffer: bytearray) -> Optional[bytes]:
        """Take one packet from the front of ``buffer``.

        Returns ``None`` when more bytes are needed. Consumed bytes are
        removed from ``buffer``.
        """
        if self._pending is None:
            if len(buffer) < HEADER_LEN:
                return None
            length, seq, checksum = _HEADER.unpack_from(buffer)
            if length > self.max_packet_size:
                del buffer[:4]
                raise PacketTooBigError()
            del buffer[:HEADER_LEN]
            if seq != self._decode_seq:
                raise SeqSkippedError()
            self._decode_seq = (self._decode_seq + 1) & 0xFFFF
            self._pending = _Header(length, checksum)

        header = self._pending
        if len(buffer) < header.length:
            return None
        data = bytes(buffer[: header.length])
        del buffer[: header.length]
        if zlib.crc32(data) != header.checksum:
            raise DataCorruptedError()
        self._pending = None
        return data