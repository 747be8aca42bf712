"""Sequence numbers, ids, packet framing, messages, handshake and errors for aggregated links."""

__version__ = "0.1.0"