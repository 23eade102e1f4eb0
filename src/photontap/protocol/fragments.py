"""
Fragment Reassembler — rebuild reliable messages split across commands.

Each fragment command carries a 16-byte sub-header:
    [u32 start sequence][u32 fragment count][u32 fragment number][u32 total length]
followed by its slice of the message. Every fragment but the last has the
same size; the last carries the remainder. A slot collects slices for one
message until they cover the whole buffer, then hands it back.

Slot lifecycle: AWAITING_FIRST -> ASSEMBLING -> COMPLETE | EXPIRED.

The table is bounded by slot count, slot age and the bytes reserved by
all open slots. Completed keys are remembered for the same age so a
retransmitted fragment of an already delivered message is ignored
instead of opening a new slot.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable

from .errors import FragmentOverflowError, LengthMismatchError
from .reader import ByteReader

# (peer id, channel id, start sequence number)
SlotKey = tuple[int, int, int]

DEFAULT_MAX_SLOTS = 256
DEFAULT_MAX_AGE = 10.0
DEFAULT_MAX_TOTAL_LENGTH = 4 * 1024 * 1024
DEFAULT_MAX_BUFFERED = 16 * 1024 * 1024


class SlotState(Enum):
    AWAITING_FIRST = auto()
    ASSEMBLING = auto()
    COMPLETE = auto()
    EXPIRED = auto()


@dataclass(frozen=True)
class FragmentHeader:
    start_sequence_number: int
    fragment_count: int
    fragment_number: int
    total_length: int

    SIZE = 16

    @classmethod
    def read(cls, reader: ByteReader) -> FragmentHeader:
        return cls(reader.u32(), reader.u32(), reader.u32(), reader.u32())


@dataclass
class FragmentSlot:
    """In-flight message being reassembled."""
    key: SlotKey
    total_length: int
    fragment_count: int
    created_at: float
    buffer: bytearray = field(default_factory=bytearray)
    received: set[int] = field(default_factory=set)
    state: SlotState = SlotState.AWAITING_FIRST
    # Size of every fragment but the last, and of the last one, once seen
    fragment_size: int | None = None
    last_size: int | None = None
    covered: int = 0

    def is_expired(self, max_age: float, now: float) -> bool:
        return (now - self.created_at) > max_age

    def check_size(self, fragment_number: int, size: int) -> None:
        """Reject a fragment whose size breaks the equal-size layout."""
        fragment_size, last_size = self.fragment_size, self.last_size
        if fragment_number == self.fragment_count - 1:
            last_size = size
        elif size == 0 or (fragment_size is not None and size != fragment_size):
            raise LengthMismatchError(
                f"fragment {fragment_number} of {self.key} is {size}b, "
                f"expected {fragment_size if fragment_size is not None else 'non-empty'}"
            )
        else:
            fragment_size = size

        leading = (self.fragment_count - 1) * (fragment_size or 0)
        if leading > self.total_length:
            raise LengthMismatchError(
                f"{self.fragment_count} fragments of {fragment_size}b overrun "
                f"message of {self.total_length}b"
            )
        if last_size is not None and (fragment_size is not None or self.fragment_count == 1):
            if last_size != self.total_length - leading:
                raise LengthMismatchError(
                    f"last fragment of {self.key} is {last_size}b, "
                    f"expected {self.total_length - leading}b"
                )
        self.fragment_size, self.last_size = fragment_size, last_size

    def apply(self, fragment_number: int, offset: int, data: bytes) -> None:
        self.buffer[offset:offset + len(data)] = data
        self.received.add(fragment_number)
        self.covered += len(data)
        self.state = SlotState.ASSEMBLING

    @property
    def complete(self) -> bool:
        return len(self.received) == self.fragment_count and self.covered == self.total_length


class FragmentReassembler:
    """Owned, bounded table of fragment slots. Single writer, no locking."""

    def __init__(
        self,
        max_slots: int = DEFAULT_MAX_SLOTS,
        max_age: float = DEFAULT_MAX_AGE,
        max_total_length: int = DEFAULT_MAX_TOTAL_LENGTH,
        clock: Callable[[], float] = time.monotonic,
        max_buffered: int = DEFAULT_MAX_BUFFERED,
    ):
        self.max_slots = max_slots
        self.max_age = max_age
        self.max_total_length = max_total_length
        self.max_buffered = max_buffered
        self._clock = clock
        self.slots: OrderedDict[SlotKey, FragmentSlot] = OrderedDict()
        self._completed: OrderedDict[SlotKey, float] = OrderedDict()
        self._expired_pending: list[FragmentSlot] = []
        self.buffered = 0
        self.completed_count = 0
        self.expired_count = 0
        self.duplicate_count = 0

    def __len__(self) -> int:
        return len(self.slots)

    def add(self, key: SlotKey, header: FragmentHeader, data: bytes) -> bytes | None:
        """Apply one fragment. Returns the full message once the slot completes."""
        now = self._clock()
        self._purge(now)

        if key in self._completed:
            self.duplicate_count += 1
            return None

        offset = self._offset(header, len(data))

        slot = self.slots.get(key)
        if slot is None:
            if len(self.slots) >= self.max_slots:
                raise FragmentOverflowError(
                    f"fragment table full ({self.max_slots} slots), dropping {key}"
                )
            if self.buffered + header.total_length > self.max_buffered:
                raise FragmentOverflowError(
                    f"fragment buffers full ({self.buffered}b of {self.max_buffered}b), "
                    f"dropping {header.total_length}b message {key}"
                )
            slot = FragmentSlot(
                key=key,
                total_length=header.total_length,
                fragment_count=header.fragment_count,
                created_at=now,
            )
            slot.check_size(header.fragment_number, len(data))
            slot.buffer = bytearray(header.total_length)
            self.slots[key] = slot
            self.buffered += header.total_length
        else:
            if (slot.total_length, slot.fragment_count) != (header.total_length, header.fragment_count):
                raise LengthMismatchError(
                    f"fragment {header.fragment_number} of {key} declares "
                    f"{header.fragment_count}x/{header.total_length}b, slot has "
                    f"{slot.fragment_count}x/{slot.total_length}b"
                )
            if header.fragment_number in slot.received:
                self.duplicate_count += 1
                return None
            slot.check_size(header.fragment_number, len(data))

        slot.apply(header.fragment_number, offset, data)
        if not slot.complete:
            return None

        slot.state = SlotState.COMPLETE
        self._release(key)
        self._completed[key] = now
        self.completed_count += 1
        return bytes(slot.buffer)

    def _offset(self, header: FragmentHeader, size: int) -> int:
        if header.fragment_count < 1 or header.fragment_number >= header.fragment_count:
            raise LengthMismatchError(
                f"fragment number {header.fragment_number} outside count {header.fragment_count}"
            )
        if header.total_length > self.max_total_length:
            raise FragmentOverflowError(
                f"declared message length {header.total_length} exceeds {self.max_total_length}"
            )
        if header.fragment_number == header.fragment_count - 1:
            # Last fragment carries the remainder.
            offset = header.total_length - size
        else:
            offset = header.fragment_number * size
        if offset < 0 or offset + size > header.total_length:
            raise LengthMismatchError(
                f"fragment {header.fragment_number} ({size}b at {offset}) "
                f"outside message of {header.total_length}b"
            )
        return offset

    def _release(self, key: SlotKey) -> FragmentSlot:
        slot = self.slots.pop(key)
        self.buffered -= slot.total_length
        return slot

    def _purge(self, now: float) -> None:
        # Slots and tombstones are kept in creation order: stop at the first young one.
        while self.slots:
            key, slot = next(iter(self.slots.items()))
            if not slot.is_expired(self.max_age, now):
                break
            self._release(key)
            slot.state = SlotState.EXPIRED
            self._expired_pending.append(slot)
            self.expired_count += 1
        while self._completed:
            key, done_at = next(iter(self._completed.items()))
            if (now - done_at) <= self.max_age and len(self._completed) <= self.max_slots:
                break
            del self._completed[key]

    def expire(self) -> list[FragmentSlot]:
        """Purge old slots and return every slot expired since the last call."""
        self._purge(self._clock())
        expired, self._expired_pending = self._expired_pending, []
        return expired

    def clear(self) -> None:
        """Drop all in-flight state (shutdown / cancellation)."""
        self.slots.clear()
        self._completed.clear()
        self._expired_pending.clear()
        self.buffered = 0
