from .diagnostics import Diagnostic, Diagnostics
from .emitter import EventEmitter, QueuedSubscriber
from .pipeline import DecodeWorker, PhotonPipeline

__all__ = [
    "Diagnostic", "Diagnostics", "EventEmitter", "QueuedSubscriber",
    "DecodeWorker", "PhotonPipeline",
]
