"""Data Link Serial Protocol (DLSP)

Byte-stuffed framing for raw payloads over serial links:
- a frame is HDR, the escaped payload, FTR
- one Bicoder instance encodes and decodes through a single fixed-size buffer
- decoding runs byte by byte and resynchronizes on the next header after noise

Everything above the codec (link, sender, receiver, CLI) is a thin shell around it.
"""

from .codec import Bicoder, CodecError, DecoderState, FramingError, decode_frame, encode_frame

__all__ = [
    "Bicoder",
    "CodecError",
    "DecoderState",
    "FramingError",
    "decode_frame",
    "encode_frame",
]
