"""
Protocol16 value model — the closed set of typed values a payload can carry.

Each wire type tag maps to exactly one frozen dataclass below. Consumers
match on the concrete class (see to_python) instead of probing attributes,
so a new tag means a new class here plus a new case at every match site.

Layouts (all integers big-endian):
    Null / Unknown      no payload
    Byte, Boolean       1 byte
    Short               i16
    Integer             i32
    Long                i64
    Float, Double       f32, f64
    String              [u16 len][utf-8]
    ByteArray           [u32 len][bytes]
    IntegerArray        [u32 count][i32 * count]
    StringArray         [u16 count][String * count]
    Array               [u8 element tag][u16 count][element * count]
    ObjectArray         [u16 count][tagged value * count]
    Dictionary          [u8 key tag][u8 value tag][u16 count][pairs]
    Hashtable           [u16 count][tagged key, tagged value] * count
    Custom              [u8 type code][u16 len][bytes]
    EventData           [u8 code][parameters]
    OperationRequest    [u8 code][parameters]
    OperationResponse   [u8 code][i16 return code][tagged debug message][parameters]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Any, ClassVar, Mapping


class TypeTag(IntEnum):
    """One-byte type discriminators, bit-exact with the Photon wire format."""
    UNKNOWN = 0x00  # "object" in dictionary headers, Null as a value
    NULL = 0x2A  # '*'
    DICTIONARY = 0x44  # 'D'
    STRING_ARRAY = 0x61  # 'a'
    BYTE = 0x62  # 'b'
    CUSTOM = 0x63  # 'c'
    DOUBLE = 0x64  # 'd'
    EVENT_DATA = 0x65  # 'e'
    FLOAT = 0x66  # 'f'
    HASHTABLE = 0x68  # 'h'
    INTEGER = 0x69  # 'i'
    SHORT = 0x6B  # 'k'
    LONG = 0x6C  # 'l'
    INTEGER_ARRAY = 0x6E  # 'n'
    BOOLEAN = 0x6F  # 'o'
    OPERATION_RESPONSE = 0x70  # 'p'
    OPERATION_REQUEST = 0x71  # 'q'
    STRING = 0x73  # 's'
    BYTE_ARRAY = 0x78  # 'x'
    ARRAY = 0x79  # 'y'
    OBJECT_ARRAY = 0x7A  # 'z'


@dataclass(frozen=True)
class DecodedValue:
    """Base of every decoded value."""
    tag: ClassVar[TypeTag] = TypeTag.UNKNOWN


# ---- Primitives ----

@dataclass(frozen=True)
class Null(DecodedValue):
    tag: ClassVar[TypeTag] = TypeTag.NULL


@dataclass(frozen=True)
class Byte(DecodedValue):
    value: int
    tag: ClassVar[TypeTag] = TypeTag.BYTE


@dataclass(frozen=True)
class Boolean(DecodedValue):
    value: bool
    tag: ClassVar[TypeTag] = TypeTag.BOOLEAN


@dataclass(frozen=True)
class Short(DecodedValue):
    value: int
    tag: ClassVar[TypeTag] = TypeTag.SHORT


@dataclass(frozen=True)
class Integer(DecodedValue):
    value: int
    tag: ClassVar[TypeTag] = TypeTag.INTEGER


@dataclass(frozen=True)
class Long(DecodedValue):
    value: int
    tag: ClassVar[TypeTag] = TypeTag.LONG


@dataclass(frozen=True)
class Float(DecodedValue):
    value: float
    tag: ClassVar[TypeTag] = TypeTag.FLOAT


@dataclass(frozen=True)
class Double(DecodedValue):
    value: float
    tag: ClassVar[TypeTag] = TypeTag.DOUBLE


@dataclass(frozen=True)
class String(DecodedValue):
    value: str
    tag: ClassVar[TypeTag] = TypeTag.STRING


@dataclass(frozen=True)
class ByteArray(DecodedValue):
    value: bytes
    tag: ClassVar[TypeTag] = TypeTag.BYTE_ARRAY


# ---- Collections ----

@dataclass(frozen=True)
class Array(DecodedValue):
    """Homogeneous array: every item was decoded with element_type."""
    element_type: int
    items: tuple[DecodedValue, ...] = ()
    tag: ClassVar[TypeTag] = TypeTag.ARRAY


@dataclass(frozen=True)
class ObjectArray(DecodedValue):
    items: tuple[DecodedValue, ...] = ()
    tag: ClassVar[TypeTag] = TypeTag.OBJECT_ARRAY


@dataclass(frozen=True)
class StringArray(DecodedValue):
    items: tuple[str, ...] = ()
    tag: ClassVar[TypeTag] = TypeTag.STRING_ARRAY


@dataclass(frozen=True)
class IntegerArray(DecodedValue):
    items: tuple[int, ...] = ()
    tag: ClassVar[TypeTag] = TypeTag.INTEGER_ARRAY


@dataclass(frozen=True)
class Dictionary(DecodedValue):
    """Ordered key/value pairs as they appeared on the wire.

    key_type / value_type are the declared header tags; UNKNOWN (0x00)
    means each key or value carried its own tag.
    """
    key_type: int
    value_type: int
    items: tuple[tuple[DecodedValue, DecodedValue], ...] = ()
    tag: ClassVar[TypeTag] = TypeTag.DICTIONARY

    def as_dict(self) -> dict[DecodedValue, DecodedValue]:
        """Pairs as a dict. Later duplicates win."""
        return dict(self.items)


@dataclass(frozen=True)
class Hashtable(DecodedValue):
    items: tuple[tuple[DecodedValue, DecodedValue], ...] = ()
    tag: ClassVar[TypeTag] = TypeTag.HASHTABLE

    def as_dict(self) -> dict[DecodedValue, DecodedValue]:
        return dict(self.items)


@dataclass(frozen=True)
class Custom(DecodedValue):
    """Registered custom type, kept as raw bytes."""
    type_code: int
    data: bytes = b""
    tag: ClassVar[TypeTag] = TypeTag.CUSTOM


# ---- Envelopes ----

def _freeze(parameters: Mapping[int, DecodedValue]) -> Mapping[int, DecodedValue]:
    return MappingProxyType(dict(parameters))


@dataclass(frozen=True)
class EventRecord(DecodedValue):
    """Server-pushed event."""
    event_code: int
    parameters: Mapping[int, DecodedValue] = field(default_factory=dict)
    tag: ClassVar[TypeTag] = TypeTag.EVENT_DATA

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", _freeze(self.parameters))

    @property
    def code(self) -> int:
        return self.event_code


@dataclass(frozen=True)
class OperationRequest(DecodedValue):
    operation_code: int
    parameters: Mapping[int, DecodedValue] = field(default_factory=dict)
    internal: bool = False
    tag: ClassVar[TypeTag] = TypeTag.OPERATION_REQUEST

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", _freeze(self.parameters))

    @property
    def code(self) -> int:
        return self.operation_code


@dataclass(frozen=True)
class OperationResponse(DecodedValue):
    operation_code: int
    return_code: int = 0
    debug_message: DecodedValue = field(default_factory=Null)
    parameters: Mapping[int, DecodedValue] = field(default_factory=dict)
    internal: bool = False
    tag: ClassVar[TypeTag] = TypeTag.OPERATION_RESPONSE

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", _freeze(self.parameters))

    @property
    def code(self) -> int:
        return self.operation_code


Envelope = EventRecord | OperationRequest | OperationResponse


def to_python(value: DecodedValue) -> Any:
    """Strip the tags, returning plain Python objects (for display / JSON)."""
    match value:
        case Null():
            return None
        case Byte(v) | Boolean(v) | Short(v) | Integer(v) | Long(v) | Float(v) | Double(v) | String(v):
            return v
        case ByteArray(v):
            return v
        case Array(items=items) | ObjectArray(items=items):
            return [to_python(item) for item in items]
        case StringArray(items=items) | IntegerArray(items=items):
            return list(items)
        case Dictionary(items=items) | Hashtable(items=items):
            return {_hashable(to_python(k)): to_python(v) for k, v in items}
        case Custom(type_code=code, data=data):
            return {"custom_type": code, "data": data}
        case EventRecord(event_code=code, parameters=params):
            return {"event_code": code, "parameters": _params(params)}
        case OperationRequest(operation_code=code, parameters=params):
            return {"operation_code": code, "parameters": _params(params)}
        case OperationResponse():
            return {
                "operation_code": value.operation_code,
                "return_code": value.return_code,
                "debug_message": to_python(value.debug_message),
                "parameters": _params(value.parameters),
            }
        case _:
            raise TypeError(f"not a decoded value: {value!r}")


def _params(params: Mapping[int, DecodedValue]) -> dict[int, Any]:
    return {k: to_python(v) for k, v in params.items()}


def _hashable(obj: Any) -> Any:
    if isinstance(obj, list):
        return tuple(_hashable(o) for o in obj)
    if isinstance(obj, dict):
        return tuple((k, _hashable(v)) for k, v in obj.items())
    return obj
