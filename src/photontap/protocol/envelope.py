"""
Envelope decoder — the message carried by a complete command payload.

Layout:
    [0xF3 signature][message type][body]

The message type picks the body layout (event, operation request,
operation response; see values.py). Bit 0x80 of the message type marks
an encrypted body, which we report and skip.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from .deserializer import ValueDecoder
from .errors import (
    EncryptedPayloadError,
    FramingError,
    LengthMismatchError,
    UnknownMessageTypeError,
)
from .reader import ByteReader
from .values import Envelope

SIGNATURE = 0xF3
ENCRYPTED_FLAG = 0x80


class MessageType(IntEnum):
    OPERATION_REQUEST = 2
    OPERATION_RESPONSE = 3
    EVENT = 4
    INTERNAL_OPERATION_REQUEST = 6
    INTERNAL_OPERATION_RESPONSE = 7


@dataclass(frozen=True)
class DisconnectSignal:
    """A peer announced it is going away. Carries no payload."""
    peer_id: int
    channel_id: int = 0
    timestamp: int = 0


def decode_envelope(payload: bytes | bytearray | memoryview, decoder: ValueDecoder) -> Envelope:
    """Decode one complete message payload into an Envelope."""
    reader = ByteReader(payload)
    if reader.remaining < 2:
        raise FramingError(f"message payload too short ({reader.remaining} bytes)")

    signature = reader.u8()
    if signature != SIGNATURE:
        raise FramingError(f"bad message signature 0x{signature:02x}")

    raw_type = reader.u8()
    if raw_type & ENCRYPTED_FLAG:
        raise EncryptedPayloadError(f"encrypted message type 0x{raw_type:02x}")

    match raw_type:
        case MessageType.EVENT:
            envelope = decoder.read_event_body(reader)
        case MessageType.OPERATION_REQUEST:
            envelope = decoder.read_request_body(reader)
        case MessageType.INTERNAL_OPERATION_REQUEST:
            envelope = decoder.read_request_body(reader, internal=True)
        case MessageType.OPERATION_RESPONSE:
            envelope = decoder.read_response_body(reader)
        case MessageType.INTERNAL_OPERATION_RESPONSE:
            envelope = decoder.read_response_body(reader, internal=True)
        case _:
            raise UnknownMessageTypeError(raw_type)

    if not reader.at_end():
        raise LengthMismatchError(
            f"{reader.remaining} trailing bytes after {type(envelope).__name__}"
        )
    return envelope
