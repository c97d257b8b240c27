"""
Error hierarchy for the streaming client.
Recoverable decode errors are skipped by the reader; transport and
startup errors are fatal to the session.
"""

from __future__ import annotations


class StreamError(Exception):
    """Base class for all streaming client errors."""


class FrameDecodeError(StreamError):
    """A frame payload could not be decoded into a unit."""


class MalformedHeartbeat(FrameDecodeError):
    """Heartbeat payload did not carry an unsigned integer."""

    def __init__(self, payload: str):
        super().__init__(f"Malformed heartbeat payload: {payload[:50]!r}")
        self.payload = payload


class StructuredParseError(StreamError):
    """Payload is not a valid {"m": ..., "p": [...]} message."""


class QueueClosed(StreamError):
    """The outbound queue no longer accepts frames."""


class ProtocolInitError(StreamError):
    """Mandatory startup frames could not be enqueued."""


class TransportError(StreamError, ConnectionError):
    """Handshake, read or write failure on the websocket."""
