"""Tests for the envelope decoder (signature + message type + body)."""

import pytest

from photontap.protocol.deserializer import ValueDecoder
from photontap.protocol.envelope import decode_envelope
from photontap.protocol.errors import (
    EncryptedPayloadError,
    FramingError,
    LengthMismatchError,
    RecursionLimitExceededError,
    UnknownMessageTypeError,
    UnknownTypeTagError,
)
from photontap.protocol.values import (
    Byte,
    EventRecord,
    Integer,
    Null,
    OperationRequest,
    OperationResponse,
    String,
)

from builders import event_message, request_message, response_message


def test_event(decoder):
    env = decode_envelope(event_message(1, {0: Integer(42)}), decoder)
    assert env == EventRecord(1, {0: Integer(42)})
    assert env.code == 1


def test_event_exact_bytes(decoder):
    raw = bytes.fromhex("f3" "04" "01" "0001" "00" "69" "0000002a")
    assert decode_envelope(raw, decoder) == EventRecord(1, {0: Integer(42)})


def test_event_without_parameters(decoder):
    assert decode_envelope(b"\xf3\x04\x07\x00\x00", decoder) == EventRecord(7, {})


def test_operation_request(decoder):
    env = decode_envelope(request_message(21, {1: String("x"), 253: Byte(3)}), decoder)
    assert env == OperationRequest(21, {1: String("x"), 253: Byte(3)})
    assert env.internal is False


def test_internal_operation_request(decoder):
    env = decode_envelope(request_message(1, internal=True), decoder)
    assert isinstance(env, OperationRequest)
    assert env.internal is True


def test_operation_response_with_debug_message(decoder):
    raw = response_message(5, return_code=-3, debug=String("denied"), params={0: Integer(1)})
    env = decode_envelope(raw, decoder)
    assert env == OperationResponse(5, -3, String("denied"), {0: Integer(1)})


def test_operation_response_null_debug(decoder):
    env = decode_envelope(response_message(5), decoder)
    assert env.debug_message == Null()
    assert env.return_code == 0


def test_unrecognised_event_code_still_delivered(decoder):
    env = decode_envelope(event_message(250, {9: Byte(1)}), decoder)
    assert env == EventRecord(250, {9: Byte(1)})


def test_parameters_are_read_only(decoder):
    env = decode_envelope(event_message(1, {0: Integer(42)}), decoder)
    with pytest.raises(TypeError):
        env.parameters[0] = Integer(1)


def test_duplicate_parameter_key_last_wins(decoder):
    raw = b"\xf3\x04\x01\x00\x02" + b"\x00\x62\x01" + b"\x00\x62\x02"
    assert decode_envelope(raw, decoder).parameters == {0: Byte(2)}


def test_bad_signature(decoder):
    with pytest.raises(FramingError):
        decode_envelope(b"\xf2\x04\x01\x00\x00", decoder)


def test_too_short(decoder):
    with pytest.raises(FramingError):
        decode_envelope(b"\xf3", decoder)


def test_unknown_message_type(decoder):
    with pytest.raises(UnknownMessageTypeError) as exc:
        decode_envelope(b"\xf3\x09\x00", decoder)
    assert exc.value.message_type == 9


def test_encrypted_message(decoder):
    with pytest.raises(EncryptedPayloadError):
        decode_envelope(b"\xf3\x84\x00\x00", decoder)


def test_trailing_bytes(decoder):
    with pytest.raises(LengthMismatchError):
        decode_envelope(event_message(1) + b"\x00", decoder)


def test_bad_parameter_value(decoder):
    raw = b"\xf3\x04\x01\x00\x01\x00\x01"
    with pytest.raises(UnknownTypeTagError):
        decode_envelope(raw, decoder)


def test_parameter_count_beyond_buffer(decoder):
    with pytest.raises(LengthMismatchError):
        decode_envelope(b"\xf3\x04\x01\x00\x05\x00\x2a", decoder)


def test_recursion_limit_applies_to_parameters():
    decoder = ValueDecoder(max_depth=2)
    nested = b"\x7a\x00\x01" * 3 + b"\x2a"
    raw = b"\xf3\x04\x01\x00\x01\x00" + nested
    with pytest.raises(RecursionLimitExceededError):
        decode_envelope(raw, decoder)
