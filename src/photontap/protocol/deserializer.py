"""
Type-tagged value decoder (Protocol16).

Decodes exactly one self-describing value from a ByteReader. Containers
recurse with an explicit depth counter; going past max_depth raises
RecursionLimitExceededError for that value rather than exhausting the
interpreter stack.

Declared counts are checked against the remaining buffer before any
element is decoded, so a hostile count cannot make us loop or allocate
past the end of the payload.
"""

from __future__ import annotations

from typing import Iterable

from .errors import (
    LengthMismatchError,
    RecursionLimitExceededError,
    UnknownTypeTagError,
    UnsupportedCustomTypeError,
)
from .reader import ByteReader
from .values import (
    Array,
    Boolean,
    Byte,
    ByteArray,
    Custom,
    DecodedValue,
    Dictionary,
    Double,
    EventRecord,
    Float,
    Hashtable,
    Integer,
    IntegerArray,
    Long,
    Null,
    ObjectArray,
    OperationRequest,
    OperationResponse,
    Short,
    String,
    StringArray,
    TypeTag,
)

DEFAULT_MAX_DEPTH = 64

# Smallest encoded size of one element of each type, used to reject
# declared counts that cannot possibly fit in what is left of the buffer.
_MIN_WIDTH: dict[int, int] = {
    TypeTag.BYTE: 1,
    TypeTag.BOOLEAN: 1,
    TypeTag.SHORT: 2,
    TypeTag.INTEGER: 4,
    TypeTag.LONG: 8,
    TypeTag.FLOAT: 4,
    TypeTag.DOUBLE: 8,
    TypeTag.STRING: 2,
    TypeTag.BYTE_ARRAY: 4,
    TypeTag.INTEGER_ARRAY: 4,
    TypeTag.STRING_ARRAY: 2,
    TypeTag.ARRAY: 3,
    TypeTag.OBJECT_ARRAY: 2,
    TypeTag.DICTIONARY: 4,
    TypeTag.HASHTABLE: 2,
    TypeTag.CUSTOM: 2,  # per element, type code is shared
    TypeTag.EVENT_DATA: 3,
    TypeTag.OPERATION_REQUEST: 3,
    TypeTag.OPERATION_RESPONSE: 6,
    TypeTag.UNKNOWN: 1,  # tagged: at least the tag byte
    TypeTag.NULL: 0,
}


_KNOWN_TAGS = frozenset(TypeTag)


def _min_width(tag: int) -> int:
    return _MIN_WIDTH.get(tag, 1)


class ValueDecoder:
    """Recursive Protocol16 value decoder.

    Args:
        max_depth: deepest container nesting accepted.
        custom_type_codes: when given, Custom values with any other type
            code raise UnsupportedCustomTypeError. None accepts every code.
    """

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        custom_type_codes: Iterable[int] | None = None,
    ):
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        self.max_depth = max_depth
        self.custom_type_codes = (
            frozenset(custom_type_codes) if custom_type_codes is not None else None
        )

    # ---- Public entry points ----

    def decode(self, reader: ByteReader, depth: int = 0) -> DecodedValue:
        """Read one type tag, then the value it announces."""
        offset = reader.pos
        tag = reader.u8()
        return self.decode_typed(reader, tag, depth, offset)

    def decode_typed(
        self, reader: ByteReader, tag: int, depth: int = 0, offset: int | None = None,
    ) -> DecodedValue:
        """Decode a value whose tag is already known (array elements, typed dict sides)."""
        match tag:
            case TypeTag.NULL | TypeTag.UNKNOWN:
                return Null()
            case TypeTag.BYTE:
                return Byte(reader.u8())
            case TypeTag.BOOLEAN:
                return Boolean(reader.u8() != 0)
            case TypeTag.SHORT:
                return Short(reader.i16())
            case TypeTag.INTEGER:
                return Integer(reader.i32())
            case TypeTag.LONG:
                return Long(reader.i64())
            case TypeTag.FLOAT:
                return Float(reader.f32())
            case TypeTag.DOUBLE:
                return Double(reader.f64())
            case TypeTag.STRING:
                return String(self._read_string(reader))
            case TypeTag.BYTE_ARRAY:
                return ByteArray(reader.read(reader.u32()))
            case TypeTag.INTEGER_ARRAY:
                count = reader.u32()
                self._check_count(reader, count, TypeTag.INTEGER)
                return IntegerArray(tuple(reader.i32() for _ in range(count)))
            case TypeTag.STRING_ARRAY:
                count = reader.u16()
                self._check_count(reader, count, TypeTag.STRING)
                return StringArray(tuple(self._read_string(reader) for _ in range(count)))
            case TypeTag.ARRAY:
                return self._read_array(reader, self._enter(depth))
            case TypeTag.OBJECT_ARRAY:
                return self._read_object_array(reader, self._enter(depth))
            case TypeTag.DICTIONARY:
                return self._read_dictionary(reader, self._enter(depth))
            case TypeTag.HASHTABLE:
                return self._read_hashtable(reader, self._enter(depth))
            case TypeTag.CUSTOM:
                code = reader.u8()
                self._check_custom(code)
                return Custom(code, reader.read(reader.u16()))
            case TypeTag.EVENT_DATA:
                return self.read_event_body(reader, self._enter(depth))
            case TypeTag.OPERATION_REQUEST:
                return self.read_request_body(reader, self._enter(depth))
            case TypeTag.OPERATION_RESPONSE:
                return self.read_response_body(reader, self._enter(depth))
            case _:
                raise UnknownTypeTagError(tag, reader.pos if offset is None else offset)

    # ---- Envelope bodies (shared with the envelope decoder) ----

    def read_parameters(self, reader: ByteReader, depth: int) -> dict[int, DecodedValue]:
        """Parameter table: [u16 count] then count x [u8 key][tagged value]."""
        count = reader.u16()
        reader.require(count * 2)
        params: dict[int, DecodedValue] = {}
        for _ in range(count):
            key = reader.u8()
            params[key] = self.decode(reader, depth)
        return params

    def read_event_body(self, reader: ByteReader, depth: int = 0) -> EventRecord:
        code = reader.u8()
        return EventRecord(code, self.read_parameters(reader, depth))

    def read_request_body(
        self, reader: ByteReader, depth: int = 0, internal: bool = False,
    ) -> OperationRequest:
        code = reader.u8()
        return OperationRequest(code, self.read_parameters(reader, depth), internal=internal)

    def read_response_body(
        self, reader: ByteReader, depth: int = 0, internal: bool = False,
    ) -> OperationResponse:
        code = reader.u8()
        return_code = reader.i16()
        debug_message = self.decode(reader, depth)
        params = self.read_parameters(reader, depth)
        return OperationResponse(code, return_code, debug_message, params, internal=internal)

    # ---- Containers ----

    def _enter(self, depth: int) -> int:
        depth += 1
        if depth > self.max_depth:
            raise RecursionLimitExceededError(self.max_depth)
        return depth

    def _check_count(self, reader: ByteReader, count: int, element_type: int) -> None:
        needed = count * _min_width(element_type)
        if needed > reader.remaining:
            raise LengthMismatchError(
                f"declared {count} elements of type 0x{element_type:02x} "
                f"need >= {needed} bytes, {reader.remaining} left"
            )

    def _check_custom(self, code: int) -> None:
        if self.custom_type_codes is not None and code not in self.custom_type_codes:
            raise UnsupportedCustomTypeError(code)

    def _read_string(self, reader: ByteReader) -> str:
        raw = reader.read(reader.u16())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise LengthMismatchError(f"invalid utf-8 in string at offset {reader.pos - len(raw)}") from e

    def _read_array(self, reader: ByteReader, depth: int) -> Array:
        element_type = reader.u8()
        count = reader.u16()
        self._check_count(reader, count, element_type)

        if element_type == TypeTag.CUSTOM:
            # Custom arrays share one type code; each element is [u16 len][bytes].
            code = reader.u8()
            self._check_custom(code)
            items = tuple(Custom(code, reader.read(reader.u16())) for _ in range(count))
            return Array(element_type, items)

        if element_type not in _KNOWN_TAGS:
            raise UnknownTypeTagError(element_type, reader.pos - 3)

        items = tuple(self._read_side(reader, element_type, depth) for _ in range(count))
        return Array(element_type, items)

    def _read_object_array(self, reader: ByteReader, depth: int) -> ObjectArray:
        count = reader.u16()
        self._check_count(reader, count, TypeTag.UNKNOWN)
        return ObjectArray(tuple(self.decode(reader, depth) for _ in range(count)))

    def _read_dictionary(self, reader: ByteReader, depth: int) -> Dictionary:
        key_type = reader.u8()
        value_type = reader.u8()
        count = reader.u16()
        needed = count * (_min_width(key_type) + _min_width(value_type))
        if needed > reader.remaining:
            raise LengthMismatchError(
                f"dictionary declares {count} pairs, {reader.remaining} bytes left"
            )
        pairs = []
        for _ in range(count):
            key = self._read_side(reader, key_type, depth)
            value = self._read_side(reader, value_type, depth)
            pairs.append((key, value))
        return Dictionary(key_type, value_type, tuple(pairs))

    def _read_side(self, reader: ByteReader, declared: int, depth: int) -> DecodedValue:
        if declared == TypeTag.UNKNOWN:
            return self.decode(reader, depth)
        return self.decode_typed(reader, declared, depth, reader.pos)

    def _read_hashtable(self, reader: ByteReader, depth: int) -> Hashtable:
        count = reader.u16()
        self._check_count(reader, count, TypeTag.UNKNOWN)
        pairs = []
        for _ in range(count):
            key = self.decode(reader, depth)
            value = self.decode(reader, depth)
            pairs.append((key, value))
        return Hashtable(tuple(pairs))
