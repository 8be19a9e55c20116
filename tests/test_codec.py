from __future__ import annotations

import pytest

from dlsp.codec import (
    Bicoder,
    CodecError,
    DecoderState,
    FramingError,
    decode_frame,
    encode_frame,
)
from dlsp.constants import ESC, FTR, HDR, XOR

H, E, F, X = HDR, ESC, FTR, XOR


def decode_stream(coder: Bicoder, stream: bytes) -> list[bytes]:
    payloads = []
    for byte in stream:
        coder.decode_byte(byte)
        if coder.is_completed():
            payloads.append(bytes(coder.contents()))
    return payloads


def test_encode_escapes_header_and_escape():
    coder = Bicoder(5)
    frame = coder.encode(bytes([H, E]))
    assert frame is not None
    assert bytes(frame) == bytes([0x7B, 0x7C, 0x5B, 0x7C, 0x5C, 0x7D])
    assert coder.is_completed()
    assert coder.size() == 6


def test_decode_bytewise_completes_once():
    coder = Bicoder(5)
    frame = bytes([H, E, H ^ X, E, E ^ X, F])
    assert decode_stream(coder, frame) == [bytes([H, E])]


def test_mixed_message():
    msg = bytes([H, E, H, 0, 0, 0, E, F, 0, 0])
    enc = bytes(
        [H, E, H ^ X, E, E ^ X, E, H ^ X, 0, 0, 0, E, E ^ X, E, F ^ X, 0, 0, F]
    )
    coder = Bicoder(10)

    assert bytes(coder.encode(msg)) == enc
    assert bytes(coder.decode_message(enc)) == msg


@pytest.mark.parametrize("capacity", [1, 5, 10, 126])
def test_roundtrip_every_length(capacity):
    coder = Bicoder(capacity)
    source = bytes(range(256)) * 2
    for length in range(capacity + 1):
        raw = source[length : length * 2]
        frame = bytes(coder.encode(raw))
        payload = coder.decode_message(frame)
        assert payload is not None, f"failed at length {length}"
        assert bytes(payload) == raw


def test_empty_payload():
    coder = Bicoder(3)
    assert bytes(coder.encode(b"")) == bytes([H, F])
    payload = coder.decode_message(bytes([H, F]))
    assert payload is not None
    assert bytes(payload) == b""


def test_encode_overflow_leaves_instance_empty():
    coder = Bicoder(5)
    assert coder.encode(b"abc") is not None

    assert coder.encode(b"abcdef") is None
    assert coder.size() == 0
    assert not coder.is_completed()
    assert coder.last_error is CodecError.OVERFLOW


def test_encode_at_capacity_all_special():
    coder = Bicoder(4)
    frame = coder.encode(bytes([F, F, F, F]))
    assert frame is not None
    assert len(frame) == coder.max_encoded_size


def test_corrupted_message():
    enc = bytes(
        [H, E, H ^ X, E, E ^ X, E, H ^ X, 0, 0, 0, E, E ^ X, E, F ^ X, 0, 0, H]
    )
    coder = Bicoder(10)
    assert coder.decode_message(enc) is None
    assert coder.last_error is CodecError.CORRUPTION
    assert coder.state is DecoderState.WAIT_HEADER
    assert coder.size() == 0


def test_decoded_overflow():
    coder = Bicoder(3)
    assert coder.decode_message(bytes([H, 1, 2, 3, 4, F])) is None
    assert coder.last_error is CodecError.OVERFLOW
    assert coder.size() == 0


def test_long_escaped_message_needs_bigger_capacity():
    msg = bytes([E] * 11)
    enc = bytes([H] + [E, E ^ X] * 11 + [F])

    small = Bicoder(10)
    assert small.encode(msg) is None
    assert small.decode_message(enc) is None

    large = Bicoder(11)
    assert bytes(large.encode(msg)) == enc
    assert bytes(large.decode_message(enc)) == msg


def test_overflow_after_escape_is_lenient_by_default():
    coder = Bicoder(2)
    for byte in (H, 1, 2, E):
        assert coder.decode_byte(byte)

    assert coder.decode_byte(H ^ X) is True
    assert coder.last_error is CodecError.OVERFLOW
    assert coder.state is DecoderState.WAIT_HEADER
    assert coder.size() == 0


def test_overflow_after_escape_strict():
    coder = Bicoder(2, strict=True)
    for byte in (H, 1, 2, E):
        assert coder.decode_byte(byte)

    assert coder.decode_byte(H ^ X) is False
    assert coder.last_error is CodecError.OVERFLOW
    assert coder.state is DecoderState.WAIT_HEADER


def test_strict_decode_message_reports_overflow():
    enc = bytes([H, 1, 2, E, H ^ X, F])
    lenient = Bicoder(2)
    assert lenient.decode_message(enc) is None
    assert lenient.last_error is CodecError.OVERFLOW
    coder = Bicoder(2, strict=True)
    assert coder.decode_message(enc) is None
    assert coder.last_error is CodecError.OVERFLOW


def test_trailing_byte_after_footer_fails():
    coder = Bicoder(5)
    frame = bytes(coder.encode(b"ok"))

    assert coder.decode_message(frame + b"\x00") is None
    assert coder.last_error is CodecError.TRUNCATION
    assert coder.size() == 0


def test_unterminated_frame_fails():
    coder = Bicoder(5)
    assert coder.decode_message(bytes([H, 1, 2])) is None
    assert coder.last_error is CodecError.TRUNCATION
    assert coder.state is DecoderState.WAIT_HEADER
    assert coder.size() == 0

    assert coder.decode_message(b"") is None


def test_stream_resynchronization():
    coder = Bicoder(10)
    first = bytes(Bicoder(10).encode(b"first"))
    second = bytes(Bicoder(10).encode(bytes([F, 0, H])))
    stream = b"\x00\x11" + bytes([F, E]) + first + b"\x42\x7d" + second + b"\x00"

    assert decode_stream(coder, stream) == [b"first", bytes([F, 0, H])]


def test_stream_of_repeated_frames():
    frame = [H, E, E ^ X, E, H ^ X, F]
    stream = bytes([0, 0, 0] + frame + frame + [0] + frame + [0, 0, 0])

    assert decode_stream(Bicoder(10), stream) == [bytes([E, H])] * 3


def test_stream_recovers_after_corruption():
    coder = Bicoder(10)
    good = bytes(Bicoder(10).encode(b"abc"))

    assert coder.decode_byte(H)
    assert coder.decode_byte(1)
    assert coder.decode_byte(H) is False
    assert coder.last_error is CodecError.CORRUPTION

    assert decode_stream(coder, good) == [b"abc"]


def test_decode_byte_after_encode_discards_frame():
    coder = Bicoder(5)
    coder.encode(b"xyz")
    assert coder.is_completed()

    assert coder.decode_byte(0x00)
    assert not coder.is_completed()
    assert coder.size() == 0


def test_reset():
    coder = Bicoder(5)
    coder.decode_byte(H)
    coder.decode_byte(1)
    assert coder.state is DecoderState.IN_FRAME

    coder.reset()
    assert coder.state is DecoderState.WAIT_HEADER
    assert coder.size() == 0
    assert not coder.is_completed()


def test_contents_is_read_only():
    coder = Bicoder(5)
    view = coder.encode(b"a")
    with pytest.raises(TypeError):
        view[0] = 0


@pytest.mark.parametrize("capacity", [0, -1, 127, 255])
def test_capacity_out_of_range(capacity):
    with pytest.raises(ValueError, match="capacity"):
        Bicoder(capacity)


def test_max_encoded_size():
    assert Bicoder(1).max_encoded_size == 4
    assert Bicoder(126).max_encoded_size == 254


def test_capacity_is_fixed():
    coder = Bicoder(1)
    with pytest.raises(AttributeError):
        coder.capacity = 126
    assert coder.capacity == 1
    assert coder.encode(bytes(126)) is None
    assert coder.last_error is CodecError.OVERFLOW


def test_one_shot_helpers():
    frame = encode_frame(bytes([H, E]), capacity=5)
    assert frame == bytes([0x7B, 0x7C, 0x5B, 0x7C, 0x5C, 0x7D])
    assert decode_frame(frame, capacity=5) == bytes([H, E])


def test_one_shot_errors():
    with pytest.raises(FramingError) as exc:
        encode_frame(b"x" * 11)
    assert exc.value.kind is CodecError.OVERFLOW

    with pytest.raises(ValueError, match="corruption"):
        decode_frame(bytes([H, 1, H, F]))

    with pytest.raises(FramingError) as exc:
        decode_frame(bytes([H, 1]))
    assert exc.value.kind is CodecError.TRUNCATION


def test_escape_overflow_reported_as_overflow():
    with pytest.raises(FramingError) as exc:
        decode_frame(bytes([H, 1, E, H ^ X, F]), capacity=1)
    assert exc.value.kind is CodecError.OVERFLOW


def test_escape_overflow_then_valid_frame_succeeds():
    coder = Bicoder(1)
    payload = coder.decode_message(bytes([H, 1, E, H ^ X, H, 2, F]))
    assert payload is not None
    assert bytes(payload) == b"\x02"
