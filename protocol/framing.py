"""
Frame codec for the length-prefixed text framing.

Wire unit:  ~m~<N>~m~<payload>   (N = UTF-8 byte length of payload)
Heartbeat:  payload is ~h~<n>
Message:    payload is {"m": <method>, "p": [<params>...]}

All functions are pure: every call works on one complete received
message, nothing is buffered between calls.
"""

from __future__ import annotations
import json
from typing import Callable, List, Optional

from protocol.errors import FrameDecodeError, MalformedHeartbeat, StructuredParseError
from protocol.models import DecodedUnit, Heartbeat, Opaque, StructuredMessage
import logging

logger = logging.getLogger(__name__)

FRAME_MARKER = "~m~"
HEARTBEAT_MARKER = "~h~"


def wrap(payload: str) -> str:
    """Length-prefix an already serialized payload."""
    return f"{FRAME_MARKER}{len(payload.encode('utf-8'))}{FRAME_MARKER}{payload}"


def serialize(message: StructuredMessage) -> str:
    """Canonical compact JSON text of a structured message."""
    return json.dumps(message.to_wire(), separators=(",", ":"), ensure_ascii=False)


def encode(message: StructuredMessage) -> str:
    """
    Serialize a message and frame it.
    The length is taken from the serialized payload, not the message object.
    """
    return wrap(serialize(message))


def format_ping(n: int) -> str:
    """
    Heartbeat echo frame.
    Length is len(str(n)) + 3 for the literal ~h~ marker.
    """
    return f"{FRAME_MARKER}{len(str(n)) + 3}{FRAME_MARKER}{HEARTBEAT_MARKER}{n}"


def split(buffer: str) -> List[str]:
    """
    Split a received buffer into frame payloads, in order.
    Empty and all-digit segments are the length markers and are dropped.
    """
    return [
        segment for segment in buffer.split(FRAME_MARKER)
        if segment and not (segment.isascii() and segment.isdigit())
    ]


def classify(payload: str) -> DecodedUnit:
    """
    Classify one payload.

    A payload is a heartbeat only if it starts with the heartbeat marker;
    the marker inside JSON text does not count. Raises MalformedHeartbeat
    if what follows the marker is not an unsigned integer. JSON that
    does not match the message schema is returned as Opaque.
    """
    if payload.startswith(HEARTBEAT_MARKER):
        number = payload[len(HEARTBEAT_MARKER):]
        if not (number.isascii() and number.isdigit()):
            raise MalformedHeartbeat(payload)
        return Heartbeat(int(number))

    try:
        return parse_message(payload)
    except StructuredParseError as e:
        logger.debug(f"[CODEC] Opaque payload ({e}): {payload[:100]}")
        return Opaque(payload)


def parse_message(payload: str) -> StructuredMessage:
    """Parse a payload as a structured message or raise StructuredParseError."""
    try:
        obj = json.loads(payload)
    except ValueError as e:
        raise StructuredParseError(f"Invalid JSON: {e}") from e
    return StructuredMessage.from_wire(obj)


def decode(
    buffer: str,
    on_error: Optional[Callable[[FrameDecodeError], None]] = None,
) -> List[DecodedUnit]:
    """
    split + classify, skipping units that fail to decode.
    on_error is called with each skipped unit's error.
    """
    units: List[DecodedUnit] = []
    for payload in split(buffer):
        try:
            units.append(classify(payload))
        except FrameDecodeError as e:
            logger.warning(f"[CODEC] Skipping unit: {e}")
            if on_error:
                on_error(e)
    return units
