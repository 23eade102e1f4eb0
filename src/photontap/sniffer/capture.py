"""
photontap — UDP capture source for Photon traffic

Captures UDP datagrams on the Photon ports using scapy and hands each
payload to registered callbacks in capture order.
Requires libpcap/Npcap + capture privileges.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from scapy.all import IP, UDP, sniff

from photontap.config import DEFAULT_PORTS

log = logging.getLogger(__name__)


@dataclass
class PhotonPacket:
    """One captured UDP datagram with metadata."""
    timestamp: float
    direction: str          # "C2S" (client→server) or "S2C" (server→client)
    src_ip: str
    dst_ip: str
    src_port: int
    dst_port: int
    payload: bytes

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def hex_dump(self) -> str:
        return self.payload.hex()

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "direction": self.direction,
            "src": f"{self.src_ip}:{self.src_port}",
            "dst": f"{self.dst_ip}:{self.dst_port}",
            "size": self.size,
            "payload_hex": self.hex_dump,
        }

    @classmethod
    def from_dict(cls, d: dict) -> PhotonPacket:
        src_ip, src_port = d.get("src", "0.0.0.0:0").rsplit(":", 1)
        dst_ip, dst_port = d.get("dst", "0.0.0.0:0").rsplit(":", 1)
        return cls(
            timestamp=d.get("timestamp", 0.0),
            direction=d.get("direction", "S2C"),
            src_ip=src_ip,
            dst_ip=dst_ip,
            src_port=int(src_port),
            dst_port=int(dst_port),
            payload=bytes.fromhex(d.get("payload_hex", "")),
        )

    def __repr__(self) -> str:
        arrow = "→" if self.direction == "C2S" else "←"
        return (
            f"[{self.direction}] {self.src_ip}:{self.src_port} "
            f"{arrow} {self.dst_ip}:{self.dst_port} "
            f"({self.size} bytes)"
        )


class PhotonSniffer:
    """Capture Photon UDP traffic.

    Direction is decided by port: a datagram sent from one of the Photon
    ports comes from the server.
    """

    def __init__(
        self,
        ports: list[int] | None = None,
        iface: str | None = None,
        server_ips: list[str] | None = None,
    ):
        self.ports = ports or list(DEFAULT_PORTS)
        self.iface = iface
        self.server_ips = server_ips or []
        self.callbacks: list[Callable[[PhotonPacket], None]] = []

    @property
    def bpf_filter(self) -> str:
        """Build BPF filter string for Photon traffic."""
        port_filters = " or ".join(f"port {p}" for p in self.ports)
        bpf = f"udp and ({port_filters})"
        if self.server_ips:
            ip_filters = " or ".join(f"host {ip}" for ip in self.server_ips)
            bpf += f" and ({ip_filters})"
        return bpf

    def on_packet(self, callback: Callable[[PhotonPacket], None]) -> None:
        """Register a callback for each captured datagram."""
        self.callbacks.append(callback)

    def _direction(self, src_port: int, dst_port: int) -> str | None:
        if src_port in self.ports:
            return "S2C"
        if dst_port in self.ports:
            return "C2S"
        return None

    def _process_packet(self, raw_pkt) -> None:
        """Convert scapy packet to PhotonPacket and dispatch."""
        if not raw_pkt.haslayer(UDP) or not raw_pkt.haslayer(IP):
            return

        ip_layer = raw_pkt[IP]
        udp_layer = raw_pkt[UDP]

        payload = bytes(udp_layer.payload)
        if not payload:
            return

        direction = self._direction(udp_layer.sport, udp_layer.dport)
        if direction is None:
            return

        pkt = PhotonPacket(
            timestamp=float(getattr(raw_pkt, "time", time.time())),
            direction=direction,
            src_ip=ip_layer.src,
            dst_ip=ip_layer.dst,
            src_port=udp_layer.sport,
            dst_port=udp_layer.dport,
            payload=payload,
        )

        for cb in self.callbacks:
            try:
                cb(pkt)
            except Exception:
                log.exception("capture callback failed")

    def start(self, count: int = 0, timeout: int | None = None) -> None:
        """Start capturing. count=0 means infinite. Blocks until done."""
        log.info("Capture starting, filter: %s, interface: %s", self.bpf_filter, self.iface or "auto")

        try:
            sniff(
                filter=self.bpf_filter,
                prn=self._process_packet,
                iface=self.iface,
                count=count,
                timeout=timeout,
                store=False,
            )
        except KeyboardInterrupt:
            log.info("Capture stopped by user")

