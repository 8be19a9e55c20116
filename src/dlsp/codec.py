"""Byte-stuffing codec.

Wire format: HDR . E(payload) . FTR, where E escapes HDR/ESC/FTR as
ESC, byte ^ XOR and passes every other byte through.
"""
from __future__ import annotations

import enum
import logging

from .constants import (
    DEFAULT_CAPACITY,
    ESC,
    FTR,
    HDR,
    MAX_CAPACITY,
    MIN_CAPACITY,
    SPECIAL_BYTES,
    XOR,
)

log = logging.getLogger(__name__)


class DecoderState(enum.Enum):
    WAIT_HEADER = enum.auto()
    IN_FRAME = enum.auto()
    AFTER_ESCAPE = enum.auto()


class CodecError(enum.Enum):
    OVERFLOW = "overflow"
    CORRUPTION = "corruption"
    TRUNCATION = "truncation"


class FramingError(ValueError):
    def __init__(self, kind: CodecError, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class Bicoder:
    """Encoder and decoder sharing one buffer of 2 * capacity + 2 bytes.

    Every encode, decode_message and reset overwrites the visible contents,
    so copy a result out before starting the next operation.

    With strict=False an overflow on the byte following an escape resets the
    decoder but still reports success for that byte, which is what deployed
    peers do. strict=True reports it as a failure.
    """

    __slots__ = ("_capacity", "strict", "last_error", "_buf", "_index", "_state", "_completed")

    def __init__(self, capacity: int = DEFAULT_CAPACITY, strict: bool = False):
        if not MIN_CAPACITY <= capacity <= MAX_CAPACITY:
            raise ValueError(f"capacity out of range: expected {MIN_CAPACITY}..{MAX_CAPACITY}, got {capacity}")
        self._capacity = capacity
        self.strict = strict
        self.last_error: CodecError | None = None
        self._buf = bytearray(2 * capacity + 2)
        self._index = 0
        self._state = DecoderState.WAIT_HEADER
        self._completed = False

    def __repr__(self) -> str:
        return f"Bicoder(capacity={self._capacity}, strict={self.strict}, state={self._state.name})"

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def max_encoded_size(self) -> int:
        return 2 * self.capacity + 2

    @property
    def state(self) -> DecoderState:
        return self._state

    def is_completed(self) -> bool:
        return self._completed

    def size(self) -> int:
        return self._index

    def contents(self) -> memoryview:
        """Read-only view of the current result, valid until the next operation."""
        return memoryview(self._buf)[: self._index].toreadonly()

    def reset(self) -> None:
        # Buffer bytes are left in place; only [0, size()) is ever exposed.
        self._index = 0
        self._state = DecoderState.WAIT_HEADER
        self._completed = False
        self.last_error = None

    def encode(self, raw: bytes) -> memoryview | None:
        self.reset()

        if len(raw) > self.capacity:
            log.debug("payload too large: %d > %d", len(raw), self.capacity)
            self.last_error = CodecError.OVERFLOW
            return None

        buf = self._buf
        buf[0] = HDR
        i = 1
        for byte in raw:
            if byte in SPECIAL_BYTES:
                buf[i] = ESC
                buf[i + 1] = byte ^ XOR
                i += 2
            else:
                buf[i] = byte
                i += 1
        buf[i] = FTR

        self._index = i + 1
        self._completed = True
        return self.contents()

    def decode_byte(self, byte: int) -> bool:
        """Advance the decoder by one byte.

        Returns False on corruption or overflow; the decoder is then back in
        WAIT_HEADER and the next HDR starts a fresh frame. Poll
        is_completed() after each call to catch frame boundaries.
        """
        state = self._state

        if state is DecoderState.WAIT_HEADER:
            self.reset()
            if byte == HDR:
                self._state = DecoderState.IN_FRAME
            return True

        if state is DecoderState.IN_FRAME:
            if byte == FTR:
                self._state = DecoderState.WAIT_HEADER
                self._completed = True
                return True
            if byte == ESC:
                self._state = DecoderState.AFTER_ESCAPE
                return True
            if byte == HDR:
                log.debug("unescaped header inside frame after %d bytes", self._index)
                self._fail(CodecError.CORRUPTION)
                return False
            return self._push(byte)

        self._state = DecoderState.IN_FRAME
        pushed = self._push(byte ^ XOR)
        return pushed or not self.strict

    def decode_message(self, frame: bytes) -> memoryview | None:
        """Decode exactly one frame.

        The footer must be the last byte: anything after it sends the decoder
        back to WAIT_HEADER, which clears the completion flag.
        """
        self.reset()
        absorbed_overflow = False

        for byte in frame:
            if not self.decode_byte(byte):
                return None
            if self.last_error is CodecError.OVERFLOW:
                absorbed_overflow = True

        if not self._completed:
            if absorbed_overflow:
                self._fail(CodecError.OVERFLOW)
                return None
            log.debug("frame not closed by a footer (%d bytes in)", len(frame))
            self._fail(CodecError.TRUNCATION)
            return None

        return self.contents()

    def _push(self, byte: int) -> bool:
        if self._index >= self.capacity:
            log.debug("decoded payload exceeds capacity %d", self.capacity)
            self._fail(CodecError.OVERFLOW)
            return False
        self._buf[self._index] = byte
        self._index += 1
        return True

    def _fail(self, kind: CodecError) -> None:
        self.reset()
        self.last_error = kind


def encode_frame(raw: bytes, capacity: int = DEFAULT_CAPACITY) -> bytes:
    coder = Bicoder(capacity)
    frame = coder.encode(raw)
    if frame is None:
        raise FramingError(CodecError.OVERFLOW, f"payload too large: {len(raw)} > {capacity}")
    return bytes(frame)


def decode_frame(frame: bytes, capacity: int = DEFAULT_CAPACITY, strict: bool = False) -> bytes:
    coder = Bicoder(capacity, strict=strict)
    payload = coder.decode_message(frame)
    if payload is None:
        kind = coder.last_error or CodecError.TRUNCATION
        raise FramingError(kind, f"invalid frame: {kind.value}")
    return bytes(payload)
