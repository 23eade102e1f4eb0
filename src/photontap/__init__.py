"""
photontap — passive decoder for the Photon realtime protocol

Turns captured UDP payloads into an ordered stream of events, operation
requests and operation responses with typed parameters.

Components:
    protocol/  : framing, commands, fragment reassembly, value decoding
    data/      : pipeline, worker, emitter, diagnostics
    sniffer/   : scapy capture source and recorded sessions
    main.py    : CLI (live / record / replay)
"""

__version__ = "0.3.0"

from photontap.config import DecoderConfig
from photontap.data.pipeline import DecodeWorker, PhotonPipeline

__all__ = ["DecoderConfig", "DecodeWorker", "PhotonPipeline", "__version__"]
