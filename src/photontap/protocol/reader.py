"""Big-endian byte cursor shared by every decode stage."""

from __future__ import annotations

import struct

from .errors import LengthMismatchError

_U8 = struct.Struct(">B")
_I8 = struct.Struct(">b")
_U16 = struct.Struct(">H")
_I16 = struct.Struct(">h")
_U32 = struct.Struct(">I")
_I32 = struct.Struct(">i")
_I64 = struct.Struct(">q")
_F32 = struct.Struct(">f")
_F64 = struct.Struct(">d")


class ByteReader:
    """Read-only cursor over a bytes-like buffer.

    Every read checks the remaining length first; running past the end
    raises LengthMismatchError instead of returning short data.
    """

    __slots__ = ("data", "pos", "end")

    def __init__(self, data: bytes | bytearray | memoryview, pos: int = 0, end: int | None = None):
        self.data = memoryview(data)
        self.pos = pos
        self.end = len(self.data) if end is None else end

    @property
    def remaining(self) -> int:
        return self.end - self.pos

    def at_end(self) -> bool:
        return self.pos >= self.end

    def require(self, n: int) -> None:
        if n < 0 or self.pos + n > self.end:
            raise LengthMismatchError(
                f"need {n} bytes at offset {self.pos}, only {self.remaining} left"
            )

    def skip(self, n: int) -> None:
        self.require(n)
        self.pos += n

    def read(self, n: int) -> bytes:
        self.require(n)
        chunk = bytes(self.data[self.pos:self.pos + n])
        self.pos += n
        return chunk

    def _unpack(self, fmt: struct.Struct):
        self.require(fmt.size)
        (value,) = fmt.unpack_from(self.data, self.pos)
        self.pos += fmt.size
        return value

    def u8(self) -> int:
        return self._unpack(_U8)

    def i8(self) -> int:
        return self._unpack(_I8)

    def u16(self) -> int:
        return self._unpack(_U16)

    def i16(self) -> int:
        return self._unpack(_I16)

    def u32(self) -> int:
        return self._unpack(_U32)

    def i32(self) -> int:
        return self._unpack(_I32)

    def i64(self) -> int:
        return self._unpack(_I64)

    def f32(self) -> float:
        return self._unpack(_F32)

    def f64(self) -> float:
        return self._unpack(_F64)

    def sub_reader(self, n: int) -> ByteReader:
        """Split off the next n bytes as an independent reader and skip them."""
        self.require(n)
        sub = ByteReader(self.data, self.pos, self.pos + n)
        self.pos += n
        return sub
