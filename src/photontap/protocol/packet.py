"""
Packet Framer — split one UDP payload into commands.

Packet header (12 bytes, big-endian):
    [u16 peer id][u8 flags][u8 command count][u32 timestamp][u32 challenge]

The cursor always advances by each command's own length field, so a
broken command only costs the rest of this packet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from .commands import COMMAND_HEADER_SIZE, CommandDecoder, CommandHeader
from .envelope import DisconnectSignal
from .errors import EncryptedPayloadError, FramingError, LengthMismatchError, PhotonError
from .reader import ByteReader
from .values import Envelope

log = logging.getLogger(__name__)

PACKET_HEADER_SIZE = 12
ENCRYPTED_PACKET_FLAG = 0x01


@dataclass(frozen=True)
class PacketHeader:
    peer_id: int
    flags: int
    command_count: int
    timestamp: int
    challenge: int

    @classmethod
    def read(cls, reader: ByteReader) -> PacketHeader:
        if reader.remaining < PACKET_HEADER_SIZE:
            raise FramingError(
                f"packet of {reader.remaining} bytes shorter than {PACKET_HEADER_SIZE}-byte header"
            )
        return cls(reader.u16(), reader.u8(), reader.u8(), reader.u32(), reader.u32())


class PacketFramer:
    """Iterate the commands of one packet, yielding decoded results in order.

    Errors are passed to `report(error, scope)` and never raised out of
    frame(). The one exception is the packet header itself: a short or
    encrypted packet raises before anything is yielded.
    """

    def __init__(self, commands: CommandDecoder, report=None):
        self.commands = commands
        self._report = report or _log_only

    def frame(self, data: bytes | bytearray | memoryview) -> Iterator[Envelope | DisconnectSignal]:
        reader = ByteReader(data)
        header = PacketHeader.read(reader)
        if header.flags == ENCRYPTED_PACKET_FLAG:
            raise EncryptedPayloadError(f"encrypted packet from peer {header.peer_id}")
        return self._iter_commands(reader, header)

    def _iter_commands(
        self, reader: ByteReader, packet: PacketHeader,
    ) -> Iterator[Envelope | DisconnectSignal]:
        for index in range(packet.command_count):
            if reader.remaining < COMMAND_HEADER_SIZE:
                self._report(FramingError(
                    f"packet declares {packet.command_count} commands, "
                    f"only {index} fit ({reader.remaining} bytes left)"
                ), "packet")
                return

            try:
                command = CommandHeader.read(reader)
                payload = reader.sub_reader(command.payload_length)
            except (FramingError, LengthMismatchError) as e:
                # Cannot trust the length: nothing after this point is framed.
                self._report(e, "packet")
                return

            try:
                result = self.commands.decode(command, payload, packet.peer_id, packet.timestamp)
            except PhotonError as e:
                log.debug("command %d %r failed: %s", index, command, e)
                self._report(e, "command")
                continue

            if result is not None:
                yield result


def _log_only(error: PhotonError, scope: str) -> None:
    log.debug("%s error: %s", scope, error)
