"""
Diagnostics — counted, non-fatal reports from the decode pipeline.

Every absorbed error (bad value, bad command, short packet, expired
fragment slot, dropped packet) lands here: a counter keyed by kind plus a
short history of the most recent reports for the CLI summary.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    """One recorded report."""
    timestamp: float
    kind: str        # error class name or report name, e.g. "LengthMismatchError"
    scope: str       # "value", "command", "packet", "fragment", "worker", "subscriber"
    message: str

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "kind": self.kind,
            "scope": self.scope,
            "message": self.message,
        }


class Diagnostics:
    """Thread-safe diagnostic counters."""

    def __init__(self, history: int = 100):
        self.counts: Counter[str] = Counter()
        self.recent: deque[Diagnostic] = deque(maxlen=history)
        self._lock = threading.Lock()

    def record(self, kind: str, scope: str, message: str = "") -> Diagnostic:
        diag = Diagnostic(time.time(), kind, scope, message)
        with self._lock:
            self.counts[kind] += 1
            self.recent.append(diag)
        log.debug("[%s] %s: %s", scope, kind, message)
        return diag

    def record_error(self, error: Exception, scope: str | None = None) -> Diagnostic:
        return self.record(type(error).__name__, scope or getattr(error, "scope", "value"), str(error))

    def count(self, kind: str | None = None) -> int:
        with self._lock:
            if kind is None:
                return sum(self.counts.values())
            return self.counts[kind]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self.counts)

    def reset(self) -> None:
        with self._lock:
            self.counts.clear()
            self.recent.clear()

    def __len__(self) -> int:
        return self.count()
