"""
Command Decoder — one command inside a Photon packet.

Command header (12 bytes, big-endian):
    [u8 kind][u8 channel][u8 flags][u8 reserved][u32 length][u32 reliable seq]

length includes the header. The framer slices exactly length - 12 payload
bytes and hands them here; what happens next depends on the kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

from .deserializer import ValueDecoder
from .envelope import DisconnectSignal, decode_envelope
from .errors import FramingError, UnknownCommandKindError
from .fragments import FragmentHeader, FragmentReassembler
from .reader import ByteReader
from .values import Envelope

log = logging.getLogger(__name__)

COMMAND_HEADER_SIZE = 12
UNRELIABLE_PREFIX_SIZE = 4  # unreliable sequence number before the message


class CommandKind(IntEnum):
    ACKNOWLEDGE = 1
    CONNECT = 2
    VERIFY_CONNECT = 3
    DISCONNECT = 4
    PING = 5
    SEND_RELIABLE = 6
    SEND_UNRELIABLE = 7
    SEND_FRAGMENT = 8


# Transport housekeeping: well-formed, carries nothing for subscribers.
CONTROL_KINDS = frozenset({
    CommandKind.ACKNOWLEDGE,
    CommandKind.CONNECT,
    CommandKind.VERIFY_CONNECT,
    CommandKind.PING,
})


@dataclass(frozen=True)
class CommandHeader:
    kind: int
    channel_id: int
    flags: int
    reserved: int
    length: int
    reliable_sequence_number: int

    @property
    def payload_length(self) -> int:
        return self.length - COMMAND_HEADER_SIZE

    @classmethod
    def read(cls, reader: ByteReader) -> CommandHeader:
        if reader.remaining < COMMAND_HEADER_SIZE:
            raise FramingError(
                f"command header needs {COMMAND_HEADER_SIZE} bytes, {reader.remaining} left"
            )
        header = cls(reader.u8(), reader.u8(), reader.u8(), reader.u8(), reader.u32(), reader.u32())
        if header.length < COMMAND_HEADER_SIZE:
            raise FramingError(f"command length {header.length} shorter than its header")
        return header

    def __repr__(self) -> str:
        try:
            name = CommandKind(self.kind).name
        except ValueError:
            name = f"kind={self.kind}"
        return f"Command({name} ch={self.channel_id} seq={self.reliable_sequence_number} len={self.length})"


class CommandDecoder:
    """Turn one command payload into an Envelope, a DisconnectSignal or nothing."""

    def __init__(self, values: ValueDecoder, reassembler: FragmentReassembler):
        self.values = values
        self.reassembler = reassembler
        self.control_count = 0

    def decode(
        self, header: CommandHeader, payload: ByteReader, peer_id: int = 0, timestamp: int = 0,
    ) -> Envelope | DisconnectSignal | None:
        match header.kind:
            case CommandKind.SEND_RELIABLE:
                return decode_envelope(payload.read(payload.remaining), self.values)
            case CommandKind.SEND_UNRELIABLE:
                payload.skip(UNRELIABLE_PREFIX_SIZE)
                return decode_envelope(payload.read(payload.remaining), self.values)
            case CommandKind.SEND_FRAGMENT:
                return self._fragment(header, payload, peer_id)
            case CommandKind.DISCONNECT:
                return DisconnectSignal(peer_id, header.channel_id, timestamp)
            case kind if kind in CONTROL_KINDS:
                self.control_count += 1
                return None
            case _:
                raise UnknownCommandKindError(header.kind)

    def _fragment(self, header: CommandHeader, payload: ByteReader, peer_id: int) -> Envelope | None:
        frag = FragmentHeader.read(payload)
        data = payload.read(payload.remaining)
        key = (peer_id, header.channel_id, frag.start_sequence_number)
        message = self.reassembler.add(key, frag, data)
        if message is None:
            return None
        log.debug("reassembled %d bytes from %d fragments for %s",
                  len(message), frag.fragment_count, key)
        return decode_envelope(message, self.values)
