from __future__ import annotations

import random
from dataclasses import dataclass

import serial

from .constants import DEFAULT_BAUDRATE, DEFAULT_READ_SIZE, DEFAULT_TIMEOUT_MS, HDR

# A stray HDR would open a bogus frame and swallow the next real one.
_NOISE = bytes(b for b in range(256) if b != HDR)


@dataclass(frozen=True, slots=True)
class Impairment:
    noise_rate: float = 0.0
    flip_rate: float = 0.0

    def should_add_noise(self) -> bool:
        return random.random() < self.noise_rate

    def should_flip(self) -> bool:
        return random.random() < self.flip_rate

    def apply(self, data: bytes) -> bytes:
        out = bytearray(data)
        if out and self.should_flip():
            out[random.randrange(len(out))] ^= 1 << random.randrange(8)
        if self.should_add_noise():
            out[:0] = bytes([random.choice(_NOISE)])
        return bytes(out)


class SerialLink:
    """Byte link over a pyserial port, with optional write-side impairment."""

    def __init__(self, port: serial.SerialBase, impairment: Impairment | None = None):
        self.port = port
        self.impairment = impairment or Impairment()

    @classmethod
    def open(
        cls,
        url: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        impairment: Impairment | None = None,
    ) -> "SerialLink":
        port = serial.serial_for_url(url, baudrate=baudrate, timeout=timeout_ms / 1000.0)
        return cls(port, impairment)

    @property
    def in_waiting(self) -> int:
        return self.port.in_waiting

    def write(self, data: bytes) -> None:
        self.port.write(self.impairment.apply(data))

    def read(self, size: int = DEFAULT_READ_SIZE) -> bytes:
        return self.port.read(size)

    def close(self) -> None:
        self.port.close()
