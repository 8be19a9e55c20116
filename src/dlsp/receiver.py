from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import BinaryIO

from .codec import Bicoder
from .constants import DEFAULT_CAPACITY
from .link import SerialLink

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Metrics:
    frames: int = 0
    frames_bad: int = 0
    wire_bytes: int = 0
    payload_bytes: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.payload_bytes * 8 / 1_000_000) / self.duration_s


@dataclass(slots=True)
class FrameReceiver:
    link: SerialLink
    capacity: int = DEFAULT_CAPACITY
    strict: bool = False
    metrics: Metrics = field(default_factory=Metrics, init=False)
    _coder: Bicoder = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._coder = Bicoder(self.capacity, strict=self.strict)

    def feed(self, data: bytes, limit: int | None = None) -> list[bytes]:
        """Decode bytes as they arrive; return the payloads completed by them.

        With a limit, bytes after the limit-th completed payload are not consumed.
        """
        coder = self._coder
        payloads: list[bytes] = []
        consumed = 0

        for byte in data:
            if limit is not None and len(payloads) >= limit:
                break
            consumed += 1
            ok = coder.decode_byte(byte)
            # A lenient overflow after an escape returns True but leaves last_error set.
            if not ok or coder.last_error is not None:
                self.metrics.frames_bad += 1
                log.debug("frame dropped: %s", coder.last_error)
                continue
            if coder.is_completed():
                payload = bytes(coder.contents())
                payloads.append(payload)
                self.metrics.frames += 1
                self.metrics.payload_bytes += len(payload)

        self.metrics.wire_bytes += consumed
        return payloads

    def run(
        self,
        out: BinaryIO,
        max_frames: int | None = None,
        idle_timeouts: int | None = None,
    ) -> Metrics:
        log.info("receiver listening; capacity=%d strict=%s", self.capacity, self.strict)
        idle = 0

        while max_frames is None or self.metrics.frames < max_frames:
            data = self.link.read(self.link.in_waiting or 1)
            if not data:
                idle += 1
                if idle_timeouts is not None and idle >= idle_timeouts:
                    log.info("receiver idle after %d empty reads", idle)
                    break
                continue

            idle = 0
            remaining = None if max_frames is None else max_frames - self.metrics.frames
            for payload in self.feed(data, limit=remaining):
                out.write(payload)

        out.flush()
        self.metrics.end_ts = time.monotonic()
        log.info(
            "receiver done; frames=%d bad=%d payload_bytes=%d",
            self.metrics.frames,
            self.metrics.frames_bad,
            self.metrics.payload_bytes,
        )
        return self.metrics
