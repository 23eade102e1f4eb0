"""Shared fixtures for photontap tests."""

import pytest

from photontap.config import DecoderConfig
from photontap.data.pipeline import PhotonPipeline
from photontap.protocol.deserializer import ValueDecoder
from photontap.protocol.values import Integer
from photontap.sniffer.capture import PhotonPacket

from builders import event_message, packet, reliable


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def decoder() -> ValueDecoder:
    return ValueDecoder()


@pytest.fixture
def pipeline() -> PhotonPipeline:
    return PhotonPipeline(DecoderConfig())


@pytest.fixture
def collected(pipeline) -> list:
    """Everything the pipeline emits, in order."""
    items: list = []
    pipeline.subscribe(items.append)
    return items


@pytest.fixture
def event_packet() -> bytes:
    """peer 1, one reliable command carrying event 1 with {0: Integer(42)}."""
    return packet([reliable(event_message(1, {0: Integer(42)}))])


@pytest.fixture
def sample_s2c_packet(event_packet) -> PhotonPacket:
    """A server→client datagram carrying event_packet."""
    return PhotonPacket(
        timestamp=1000.5,
        direction="S2C",
        src_ip="5.188.125.10",
        dst_ip="192.168.1.100",
        src_port=5056,
        dst_port=54321,
        payload=event_packet,
    )


@pytest.fixture
def sample_c2s_packet() -> PhotonPacket:
    """A client→server datagram (ASCII payload for hex-dump checks)."""
    return PhotonPacket(
        timestamp=1000.0,
        direction="C2S",
        src_ip="192.168.1.100",
        dst_ip="5.188.125.10",
        src_port=54321,
        dst_port=5056,
        payload=b"\x00\x01\x00\x00Hello\x00\x00\x00",
    )
