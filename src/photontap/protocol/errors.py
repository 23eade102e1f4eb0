"""
Decode error taxonomy.

Every error carries the smallest scope that can absorb it. The pipeline
catches these at the value/command/packet boundary and turns them into
counted diagnostics, so none of them ever reach the capture thread.
"""

from __future__ import annotations


class PhotonError(Exception):
    """Base class for every decode failure."""

    scope = "value"


class FramingError(PhotonError):
    """Packet or command header truncated or malformed."""

    scope = "packet"


class LengthMismatchError(PhotonError):
    """Declared length disagrees with the bytes actually available or consumed."""


class UnknownTypeTagError(PhotonError):
    def __init__(self, tag: int, offset: int = -1):
        self.tag = tag
        self.offset = offset
        super().__init__(f"unknown type tag 0x{tag:02x} at offset {offset}")


class UnknownCommandKindError(PhotonError):
    scope = "command"

    def __init__(self, kind: int):
        self.kind = kind
        super().__init__(f"unknown command kind {kind}")


class UnknownMessageTypeError(PhotonError):
    def __init__(self, message_type: int):
        self.message_type = message_type
        super().__init__(f"unknown message type 0x{message_type:02x}")


class EncryptedPayloadError(PhotonError):
    """Message flagged as encrypted; decryption is not supported."""


class FragmentOverflowError(PhotonError):
    """Fragment slot table at capacity or fragment outside its slot."""

    scope = "command"


class RecursionLimitExceededError(PhotonError):
    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        super().__init__(f"nesting deeper than {max_depth} levels")


class UnsupportedCustomTypeError(PhotonError):
    def __init__(self, type_code: int):
        self.type_code = type_code
        super().__init__(f"unsupported custom type code {type_code}")
