"""Tests for console rendering and the replay command."""

from rich.console import Console

from photontap.data.diagnostics import Diagnostics
from photontap.main import main, make_parser, parse_ports
from photontap.monitor import MAX_PARAM_CHARS, diagnostics_table, format_delivery
from photontap.protocol.envelope import DisconnectSignal
from photontap.protocol.values import (
    Array,
    ByteArray,
    EventRecord,
    Hashtable,
    Integer,
    OperationRequest,
    OperationResponse,
    String,
)
from photontap.sniffer.capture import PhotonPacket
from photontap.sniffer.session import CaptureSession

from builders import event_message, packet, reliable


def _render(renderable) -> str:
    console = Console(width=200, record=True)
    console.print(renderable)
    return console.export_text()


def test_format_event():
    text = format_delivery(EventRecord(3, {0: Integer(42), 1: String("hi")}), ts=0).plain
    assert "EVENT" in text
    assert "code=3" in text
    assert '"0": 42' in text
    assert '"1": "hi"' in text


def test_format_request_and_response():
    assert "REQUEST" in format_delivery(OperationRequest(5), ts=0).plain
    text = format_delivery(OperationResponse(5, -2, String("denied")), ts=0).plain
    assert "RESPONSE" in text
    assert "rc=-2" in text
    assert "denied" in text


def test_format_non_string_container_keys():
    table = Hashtable((
        (ByteArray(b"\x01\xff"), Integer(1)),
        (Array(0x69, (Integer(2), Integer(3))), String("pair")),
    ))
    text = format_delivery(EventRecord(1, {0: table}), ts=0).plain
    assert '"01ff": 1' in text
    assert "pair" in text


def test_format_disconnect():
    text = format_delivery(DisconnectSignal(peer_id=9, channel_id=1), ts=0).plain
    assert "DISCONNECT" in text
    assert "peer=9" in text


def test_long_params_truncated():
    text = format_delivery(EventRecord(1, {0: String("x" * 500)}), ts=0).plain
    assert text.endswith("...")
    assert "x" * MAX_PARAM_CHARS not in text


def test_diagnostics_table():
    diagnostics = Diagnostics()
    diagnostics.record("LengthMismatchError", "value")
    diagnostics.record("LengthMismatchError", "value")
    out = _render(diagnostics_table(diagnostics, packets=10, emitted=7))
    assert "packets" in out and "10" in out
    assert "emitted" in out
    assert "LengthMismatchError" in out


def test_parse_ports():
    assert parse_ports("5055, 5056") == [5055, 5056]


def test_parser_global_flags():
    args = make_parser().parse_args(["--max-depth", "8", "--ports", "5056", "replay", "f.json", "-q"])
    assert args.max_depth == 8
    assert args.ports == [5056]
    assert args.command == "replay"
    assert args.quiet


def test_replay_command(tmp_path):
    session = CaptureSession(name="cli")
    session.record(PhotonPacket(
        timestamp=1.0, direction="S2C",
        src_ip="5.188.125.10", dst_ip="192.168.1.100",
        src_port=5056, dst_port=54321,
        payload=packet([reliable(event_message(1, {0: Integer(1)}))]),
    ))
    session.record(PhotonPacket(
        timestamp=2.0, direction="S2C",
        src_ip="5.188.125.10", dst_ip="192.168.1.100",
        src_port=5056, dst_port=54321,
        payload=b"\x00\x01",
    ))
    path = session.save(tmp_path)
    assert main(["replay", str(path), "-q"]) == 0


def test_bad_config_exit_code(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"max_depth": 0}')
    assert main(["--config", str(path), "replay", "missing.json"]) == 2
