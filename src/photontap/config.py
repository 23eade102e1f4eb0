"""
Decoder configuration.

The protocol does not document limits for fragment slot age/count or
value nesting depth, so they are tuning knobs here. Every limit fails
closed: past it, data is dropped and counted, never buffered further.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

from photontap.protocol.deserializer import DEFAULT_MAX_DEPTH
from photontap.protocol.fragments import (
    DEFAULT_MAX_AGE,
    DEFAULT_MAX_BUFFERED,
    DEFAULT_MAX_SLOTS,
    DEFAULT_MAX_TOTAL_LENGTH,
)

DEFAULT_PORTS = [5055, 5056]


@dataclass
class DecoderConfig:
    """Pipeline limits and capture settings."""
    # Deepest container nesting accepted by the value decoder
    max_depth: int = DEFAULT_MAX_DEPTH
    # Fragment slots kept in flight at once
    max_fragment_slots: int = DEFAULT_MAX_SLOTS
    # Seconds before an incomplete fragment slot is purged
    fragment_max_age: float = DEFAULT_MAX_AGE
    # Largest reassembled message accepted (bytes)
    max_message_size: int = DEFAULT_MAX_TOTAL_LENGTH
    # Bytes reserved by all in-flight fragment slots together
    max_fragment_bytes: int = DEFAULT_MAX_BUFFERED
    # Captured payloads waiting for the decode worker
    packet_queue_size: int = 1024
    # Pending items per QueuedSubscriber before drop-oldest kicks in
    subscriber_queue_size: int = 1024
    # Custom type codes accepted; None accepts all
    custom_type_codes: list[int] | None = None
    # UDP ports the capture source listens on
    udp_ports: list[int] = field(default_factory=lambda: list(DEFAULT_PORTS))

    def __post_init__(self) -> None:
        for name in ("max_depth", "max_fragment_slots", "max_message_size",
                     "max_fragment_bytes", "packet_queue_size", "subscriber_queue_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.fragment_max_age <= 0:
            raise ValueError(f"fragment_max_age must be > 0, got {self.fragment_max_age}")
        if not self.udp_ports:
            raise ValueError("udp_ports must not be empty")

    @classmethod
    def from_dict(cls, data: dict) -> DecoderConfig:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def load(cls, path: str | Path) -> DecoderConfig:
        """Load from a JSON file."""
        return cls.from_dict(json.loads(Path(path).read_text()))

    def to_dict(self) -> dict:
        return asdict(self)

    def replace(self, **overrides) -> DecoderConfig:
        """Copy with the non-None overrides applied (CLI flags)."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return DecoderConfig.from_dict(data)
