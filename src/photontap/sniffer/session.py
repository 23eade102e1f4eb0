"""
Capture Session — a recording of Photon datagrams, replayable offline.

Sessions are saved as JSON (one hex payload per datagram) and replay
through a PhotonPipeline in capture order, which is how captures are
decoded without live traffic.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

from .capture import PhotonPacket, PhotonSniffer

if TYPE_CHECKING:
    from photontap.data.pipeline import PhotonPipeline

log = logging.getLogger(__name__)


class CaptureSession:
    """Ordered list of captured datagrams with save/load/replay."""

    def __init__(self, sniffer: PhotonSniffer | None = None, name: str = ""):
        self.sniffer = sniffer
        self.name = name or time.strftime("%Y%m%d_%H%M%S")
        self.packets: list[PhotonPacket] = []
        self._start_time: float = 0

    def record(self, pkt: PhotonPacket) -> None:
        self.packets.append(pkt)
        log.debug("#%d %r", len(self.packets), pkt)

    def start(self, timeout: int | None = None) -> None:
        """Start recording. Blocks until the sniffer stops."""
        if self.sniffer is None:
            raise RuntimeError("session has no sniffer to record from")
        self._start_time = time.time()
        self.sniffer.on_packet(self.record)
        log.info("Session '%s' recording...", self.name)
        self.sniffer.start(timeout=timeout)

    def replay(self, pipeline: PhotonPipeline, direction: str | None = None) -> int:
        """Feed recorded payloads into a pipeline in order. Returns packets fed."""
        fed = 0
        for pkt in self.packets:
            if direction and pkt.direction != direction:
                continue
            pipeline.submit_packet(pkt.payload)
            fed += 1
        return fed

    def save(self, directory: str | Path = "captures") -> Path:
        """Save session to JSON."""
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"{self.name}.json"

        data = {
            "name": self.name,
            "start_time": self._start_time,
            "duration": time.time() - self._start_time if self._start_time else 0,
            "packet_count": len(self.packets),
            "packets": [p.to_dict() for p in self.packets],
        }

        out_path.write_text(json.dumps(data, indent=2))
        log.info("Session saved: %s (%d packets)", out_path, len(self.packets))
        return out_path

    @classmethod
    def load(cls, path: str | Path) -> CaptureSession:
        """Load a saved session for replay."""
        data = json.loads(Path(path).read_text())

        session = cls(name=data.get("name", Path(path).stem))
        session._start_time = data.get("start_time", 0)
        for p in data.get("packets", []):
            session.packets.append(PhotonPacket.from_dict(p))
        return session

    def summary(self) -> str:
        c2s = sum(1 for p in self.packets if p.direction == "C2S")
        s2c = len(self.packets) - c2s
        total = sum(p.size for p in self.packets)
        return "\n".join([
            f"Session: {self.name}",
            f"  Packets: {len(self.packets)} total ({c2s} C2S, {s2c} S2C)",
            f"  Payload: {total} bytes",
        ])
