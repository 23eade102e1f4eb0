from .commands import CommandDecoder, CommandHeader, CommandKind
from .deserializer import ValueDecoder
from .envelope import DisconnectSignal, MessageType, decode_envelope
from .errors import (
    EncryptedPayloadError,
    FragmentOverflowError,
    FramingError,
    LengthMismatchError,
    PhotonError,
    RecursionLimitExceededError,
    UnknownCommandKindError,
    UnknownMessageTypeError,
    UnknownTypeTagError,
    UnsupportedCustomTypeError,
)
from .fragments import FragmentHeader, FragmentReassembler, FragmentSlot, SlotState
from .packet import PacketFramer, PacketHeader
from .reader import ByteReader
from .values import (
    DecodedValue,
    Envelope,
    EventRecord,
    OperationRequest,
    OperationResponse,
    TypeTag,
    to_python,
)

__all__ = [
    "ByteReader", "CommandDecoder", "CommandHeader", "CommandKind",
    "DecodedValue", "DisconnectSignal", "Envelope", "EventRecord",
    "FragmentHeader", "FragmentReassembler", "FragmentSlot", "MessageType",
    "OperationRequest", "OperationResponse", "PacketFramer", "PacketHeader",
    "SlotState", "TypeTag", "ValueDecoder", "decode_envelope", "to_python",
    "PhotonError", "FramingError", "LengthMismatchError", "UnknownTypeTagError",
    "UnknownCommandKindError", "UnknownMessageTypeError", "EncryptedPayloadError",
    "FragmentOverflowError", "RecursionLimitExceededError",
    "UnsupportedCustomTypeError",
]
