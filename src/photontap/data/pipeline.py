"""
Decode pipeline and its single worker thread.

Architecture:
  PhotonSniffer (capture thread) → DecodeWorker.offer() → bounded queue
                                                            ↓
                                           PhotonPipeline.submit_packet()
                                    PacketFramer → CommandDecoder → FragmentReassembler
                                                                  → Envelope decoder
                                                            ↓
                                                      EventEmitter → subscribers

Packets must reach submit_packet() in capture order. Only the worker
thread touches the fragment table, so it needs no lock.
"""

from __future__ import annotations

import logging
import queue
import threading
import time

from photontap.config import DecoderConfig
from photontap.data.diagnostics import Diagnostics
from photontap.data.emitter import EventEmitter, Subscriber
from photontap.protocol.commands import CommandDecoder
from photontap.protocol.deserializer import ValueDecoder
from photontap.protocol.errors import PhotonError
from photontap.protocol.fragments import FragmentReassembler
from photontap.protocol.packet import PacketFramer

log = logging.getLogger(__name__)


class PhotonPipeline:
    """Raw UDP payload in, ordered Envelopes / DisconnectSignals out."""

    def __init__(
        self,
        config: DecoderConfig | None = None,
        diagnostics: Diagnostics | None = None,
        reassembler: FragmentReassembler | None = None,
    ):
        self.config = config or DecoderConfig()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.values = ValueDecoder(
            max_depth=self.config.max_depth,
            custom_type_codes=self.config.custom_type_codes,
        )
        self.reassembler = reassembler if reassembler is not None else FragmentReassembler(
            max_slots=self.config.max_fragment_slots,
            max_age=self.config.fragment_max_age,
            max_total_length=self.config.max_message_size,
            max_buffered=self.config.max_fragment_bytes,
        )
        self.commands = CommandDecoder(self.values, self.reassembler)
        self.framer = PacketFramer(self.commands, report=self.diagnostics.record_error)
        self.emitter = EventEmitter(self.diagnostics)
        self.packets_processed = 0

    def subscribe(self, callback: Subscriber):
        """Register a subscriber. Returns an unsubscribe function."""
        return self.emitter.on(callback)

    def submit_packet(self, data: bytes) -> None:
        """Decode one UDP payload and emit everything it yields, in order."""
        self.packets_processed += 1
        try:
            for item in self.framer.frame(data):
                self.emitter.emit(item)
        except PhotonError as e:
            self.diagnostics.record_error(e, "packet")
        self._report_expired()

    def _report_expired(self) -> None:
        for slot in self.reassembler.expire():
            self.diagnostics.record(
                "FragmentSlotExpired", "fragment",
                f"{slot.key}: {len(slot.received)}/{slot.fragment_count} fragments",
            )

    def reset(self) -> None:
        """Discard in-flight fragment state."""
        self.reassembler.clear()


_STOP = object()


class DecodeWorker:
    """Single consumer draining captured payloads into a PhotonPipeline.

    offer() is safe to call from the capture thread and never blocks:
    when the queue is full the new payload is dropped and counted.
    After stop() further offers are refused until the next start().
    """

    def __init__(self, pipeline: PhotonPipeline, maxsize: int | None = None):
        self.pipeline = pipeline
        self._queue: queue.Queue = queue.Queue(maxsize or pipeline.config.packet_queue_size)
        self._thread: threading.Thread | None = None
        self._closed = False
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def offer(self, data: bytes) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(data)
            return True
        except queue.Full:
            self.dropped += 1
            self.pipeline.diagnostics.record("PacketQueueFull", "worker", f"{len(data)} bytes dropped")
            return False

    def start(self) -> DecodeWorker:
        if self._closed and self.running:
            # A timed-out stop() left its stop signal queued.
            self._discard_pending()
        self._closed = False
        if self.running:
            return self
        self._thread = threading.Thread(target=self._run, name="photon-decode", daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> bool:
        """Wait until every offered payload has been processed. False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.005)
        return True

    def stop(self, timeout: float = 2.0) -> bool:
        """Stop the worker. Pending payloads and partial fragments are discarded.

        Returns False if the thread is still busy after timeout; fragment
        state is then left alone and stop() can be called again.
        """
        self._closed = True
        self._discard_pending()
        if self._thread is not None:
            if self._thread.is_alive():
                try:
                    self._queue.put(_STOP, timeout=timeout)
                except queue.Full:
                    log.warning("decode worker queue still full, stop signal not sent")
                self._thread.join(timeout)
            if self._thread.is_alive():
                log.warning("decode worker still busy after %.1fs", timeout)
                return False
            self._thread = None
        self.pipeline.reset()
        return True

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return
            self._queue.task_done()

    def _run(self) -> None:
        log.info("decode worker started")
        while True:
            data = self._queue.get()
            try:
                if data is _STOP:
                    break
                self.pipeline.submit_packet(data)
            except Exception as e:
                # Anything that is not a PhotonError is a decoder bug; keep going.
                log.exception("unexpected error decoding %d-byte packet", len(data))
                self.pipeline.diagnostics.record_error(e, "worker")
            finally:
                self._queue.task_done()
        log.info("decode worker stopped after %d packets", self.pipeline.packets_processed)
