"""Tests for the packet framer and command decoder."""

import struct

import pytest

from photontap.protocol.commands import CommandDecoder, CommandHeader, CommandKind
from photontap.protocol.deserializer import ValueDecoder
from photontap.protocol.envelope import DisconnectSignal
from photontap.protocol.errors import (
    EncryptedPayloadError,
    FramingError,
    UnknownCommandKindError,
    UnknownTypeTagError,
)
from photontap.protocol.fragments import FragmentReassembler
from photontap.protocol.packet import PacketFramer, PacketHeader
from photontap.protocol.reader import ByteReader
from photontap.protocol.values import Byte, EventRecord, Integer, OperationResponse, String

from builders import (
    command,
    event_message,
    fragment,
    packet,
    reliable,
    response_message,
    split_message,
    unreliable,
)


class Recorder:
    def __init__(self):
        self.errors: list[tuple[Exception, str]] = []

    def __call__(self, error, scope):
        self.errors.append((error, scope))

    @property
    def kinds(self) -> list[str]:
        return [type(e).__name__ for e, _ in self.errors]


@pytest.fixture
def report() -> Recorder:
    return Recorder()


@pytest.fixture
def framer(report) -> PacketFramer:
    return PacketFramer(CommandDecoder(ValueDecoder(), FragmentReassembler()), report=report)


def _frame(framer, data: bytes) -> list:
    return list(framer.frame(data))


# ---- Headers ----

def test_packet_header_fields():
    raw = bytes.fromhex("0001" "cc" "02" "00000005" "deadbeef")
    assert PacketHeader.read(ByteReader(raw)) == PacketHeader(1, 0xCC, 2, 5, 0xDEADBEEF)


def test_command_header_fields():
    raw = struct.pack(">BBBBII", 6, 2, 1, 0, 20, 77)
    header = CommandHeader.read(ByteReader(raw))
    assert header == CommandHeader(6, 2, 1, 0, 20, 77)
    assert header.payload_length == 8
    assert "SEND_RELIABLE" in repr(header)


def test_command_header_shorter_than_itself():
    raw = struct.pack(">BBBBII", 6, 0, 0, 0, 8, 1)
    with pytest.raises(FramingError):
        CommandHeader.read(ByteReader(raw))


# ---- Scenarios ----

def test_single_reliable_event(framer, report):
    raw = (
        bytes.fromhex("0001" "00" "01" "00000001" "00000000")
        + struct.pack(">BBBBII", 6, 0, 0, 0, 12 + 11, 1)
        + bytes.fromhex("f3" "04" "01" "0001" "00" "69" "0000002a")
    )
    assert _frame(framer, raw) == [EventRecord(1, {0: Integer(42)})]
    assert report.errors == []


def test_fragmented_event_reverse_order_matches_unfragmented(framer, report):
    message = event_message(1, {0: Integer(42), 1: String("split across two fragments")})
    whole = _frame(framer, packet([reliable(message)]))
    frags = split_message(message, 2)

    assert _frame(framer, packet([frags[1]])) == []
    assert _frame(framer, packet([frags[0]])) == whole
    assert report.errors == []


def test_fragments_in_one_packet(framer):
    message = event_message(3, {5: String("x" * 40)})
    assert _frame(framer, packet(split_message(message, 3))) == [EventRecord(3, {5: String("x" * 40)})]


def test_fewer_commands_than_declared(framer, report):
    cmds = [reliable(event_message(1)), reliable(event_message(2))]
    results = _frame(framer, packet(cmds, command_count=3))
    assert [r.event_code for r in results] == [1, 2]
    assert report.kinds == ["FramingError"]


def test_declared_length_past_end_of_packet(framer, report):
    good = reliable(event_message(1))
    bad = command(6, event_message(2), length=500)
    results = _frame(framer, packet([good, bad]))
    assert [r.event_code for r in results] == [1]
    assert report.kinds == ["LengthMismatchError"]


def test_length_shorter_than_header_aborts_rest(framer, report):
    bad = struct.pack(">BBBBII", 6, 0, 0, 0, 4, 1)
    results = _frame(framer, packet([bad, reliable(event_message(2))]))
    assert results == []
    assert report.kinds == ["FramingError"]


def test_bad_value_only_costs_its_command(framer, report):
    bad_value = b"\xf3\x04\x02\x00\x01\x00\x01"  # tag 0x01 does not exist
    cmds = [reliable(event_message(1)), reliable(bad_value), reliable(event_message(3))]
    results = _frame(framer, packet(cmds))
    assert [r.event_code for r in results] == [1, 3]
    assert report.kinds == ["UnknownTypeTagError"]
    assert report.errors[0][1] == "command"


def test_truncated_dictionary_leaves_earlier_results(framer, report):
    # Dictionary declares 5 pairs, carries 3.
    dict_value = b"\x44\x62\x73\x00\x05" + b"".join(bytes([k]) + b"\x00\x01a" for k in range(3))
    bad = b"\xf3\x04\x02\x00\x01\x00" + dict_value
    emitted = []
    for item in framer.frame(packet([reliable(event_message(1)), reliable(bad)])):
        emitted.append(item)
    assert [e.event_code for e in emitted] == [1]
    assert report.kinds == ["LengthMismatchError"]


def test_unknown_command_kind_is_skipped(framer, report):
    cmds = [command(0x63, b"\x00" * 6), reliable(event_message(2))]
    results = _frame(framer, packet(cmds))
    assert [r.event_code for r in results] == [2]
    assert report.kinds == ["UnknownCommandKindError"]
    assert report.errors[0][0].kind == 0x63


def test_control_commands_produce_nothing(framer, report):
    cmds = [
        command(CommandKind.ACKNOWLEDGE, b"\x00" * 8),
        command(CommandKind.PING),
        command(CommandKind.CONNECT, b"\x00" * 32),
        command(CommandKind.VERIFY_CONNECT, b"\x00" * 32),
    ]
    assert _frame(framer, packet(cmds)) == []
    assert report.errors == []
    assert framer.commands.control_count == 4


def test_disconnect(framer):
    results = _frame(framer, packet([command(CommandKind.DISCONNECT, channel=2)], peer_id=7, timestamp=99))
    assert results == [DisconnectSignal(peer_id=7, channel_id=2, timestamp=99)]


def test_unreliable_strips_sequence_prefix(framer, report):
    results = _frame(framer, packet([unreliable(event_message(4, {1: Byte(1)}), unreliable_seq=12)]))
    assert results == [EventRecord(4, {1: Byte(1)})]
    assert report.errors == []


def test_unreliable_too_short(framer, report):
    assert _frame(framer, packet([command(CommandKind.SEND_UNRELIABLE, b"\x00\x01")])) == []
    assert report.kinds == ["LengthMismatchError"]


def test_trailing_payload_bytes_fail_command(framer, report):
    cmd = reliable(event_message(1) + b"\xff\xff")
    assert _frame(framer, packet([cmd])) == []
    assert report.kinds == ["LengthMismatchError"]


def test_mixed_packet_keeps_order(framer):
    cmds = [
        reliable(event_message(1)),
        command(CommandKind.ACKNOWLEDGE, b"\x00" * 8),
        reliable(response_message(9, -1, String("err"))),
        command(CommandKind.DISCONNECT),
    ]
    results = _frame(framer, packet(cmds))
    assert [type(r) for r in results] == [EventRecord, OperationResponse, DisconnectSignal]


def test_fragment_overflow_is_command_scoped(report):
    framer = PacketFramer(
        CommandDecoder(ValueDecoder(), FragmentReassembler(max_slots=1)), report=report,
    )
    cmds = [
        fragment(b"ab", start_seq=1, count=2, number=0, total=4),
        fragment(b"ab", start_seq=50, count=2, number=0, total=4),
        reliable(event_message(8)),
    ]
    results = _frame(framer, packet(cmds))
    assert [r.event_code for r in results] == [8]
    assert report.kinds == ["FragmentOverflowError"]


def test_short_packet(framer):
    with pytest.raises(FramingError):
        _frame(framer, b"\x00\x01\x00")


def test_encrypted_packet(framer):
    with pytest.raises(EncryptedPayloadError):
        _frame(framer, packet([reliable(event_message(1))], flags=0x01))


def test_zero_commands(framer, report):
    assert _frame(framer, packet([])) == []
    assert report.errors == []


def test_command_decoder_direct():
    decoder = CommandDecoder(ValueDecoder(), FragmentReassembler())
    header = CommandHeader(0x42, 0, 0, 0, 12, 1)
    with pytest.raises(UnknownCommandKindError):
        decoder.decode(header, ByteReader(b""))


def test_command_decoder_bad_envelope():
    decoder = CommandDecoder(ValueDecoder(), FragmentReassembler())
    payload = b"\xf3\x04\x01\x00\x01\x00\x05"
    header = CommandHeader(6, 0, 0, 0, 12 + len(payload), 1)
    with pytest.raises(UnknownTypeTagError):
        decoder.decode(header, ByteReader(payload))
