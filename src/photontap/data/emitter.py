"""
Event Emitter — ordered, synchronous fan-out of decoded results.

Subscribers are called in registration order for every item, and every
subscriber sees item N before anyone sees item N+1. A subscriber that
cannot keep up should be wrapped in QueuedSubscriber, which moves its
work to its own thread behind a bounded drop-oldest queue.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Union

from photontap.data.diagnostics import Diagnostics
from photontap.protocol.envelope import DisconnectSignal
from photontap.protocol.values import Envelope

log = logging.getLogger(__name__)

Delivery = Union[Envelope, DisconnectSignal]
Subscriber = Callable[[Delivery], None]


class EventEmitter:
    """Broadcast point between the decoder and downstream consumers."""

    def __init__(self, diagnostics: Diagnostics | None = None):
        self._subscribers: list[Subscriber] = []
        self.diagnostics = diagnostics
        self.emitted = 0

    def on(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unregisters it."""
        self._subscribers.append(callback)
        return lambda: self.off(callback)

    def off(self, callback: Subscriber) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, item: Delivery) -> None:
        """Deliver one item to every current subscriber before returning."""
        self.emitted += 1
        for cb in list(self._subscribers):
            try:
                cb(item)
            except Exception as e:
                log.exception("subscriber %r failed on %s", cb, type(item).__name__)
                if self.diagnostics is not None:
                    self.diagnostics.record_error(e, "subscriber")


class QueuedSubscriber:
    """Run a slow subscriber on its own thread behind a bounded queue.

    When the queue is full the oldest pending item is dropped, so the
    decode pipeline never blocks on this subscriber. Items that do get
    delivered keep their original order.
    """

    def __init__(self, callback: Subscriber, maxsize: int = 1024, name: str | None = None):
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.callback = callback
        self._queue: deque[Delivery] = deque(maxlen=maxsize)
        self._cond = threading.Condition()
        self._busy = False
        self._running = False
        self._thread: threading.Thread | None = None
        self.name = name or f"subscriber-{id(self):x}"
        self.dropped = 0
        self.delivered = 0

    def __call__(self, item: Delivery) -> None:
        with self._cond:
            if len(self._queue) == self._queue.maxlen:
                self.dropped += 1
            self._queue.append(item)
            self._cond.notify_all()

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def start(self) -> QueuedSubscriber:
        if self._running:
            return self
        self._running = True
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float | None = 1.0) -> None:
        """Stop delivering. Anything still queued is discarded."""
        with self._cond:
            self._running = False
            self._queue.clear()
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def flush(self, timeout: float = 5.0) -> bool:
        """Block until the queue is drained. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._queue and not self._busy, timeout)

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._queue or not self._running)
                if not self._running:
                    return
                item = self._queue.popleft()
                self._busy = True
            try:
                self.callback(item)
                self.delivered += 1
            except Exception:
                log.exception("queued subscriber %s failed", self.name)
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()
