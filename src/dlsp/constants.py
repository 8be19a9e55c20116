from __future__ import annotations

# Special bytes; the escaped form of a special byte is ESC, byte ^ XOR.
HDR = 0x7B
ESC = 0x7C
FTR = 0x7D
XOR = 0x20

SPECIAL_BYTES = frozenset((HDR, ESC, FTR))

# Keeps 2 * N + 2 within a signed byte, as existing peers expect.
MIN_CAPACITY = 1
MAX_CAPACITY = 126
DEFAULT_CAPACITY = 10

DEFAULT_BAUDRATE = 115200
DEFAULT_TIMEOUT_MS = 100
DEFAULT_READ_SIZE = 256
