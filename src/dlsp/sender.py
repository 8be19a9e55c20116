from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import BinaryIO

from .codec import Bicoder
from .constants import DEFAULT_CAPACITY
from .link import SerialLink
from .receiver import Metrics

log = logging.getLogger(__name__)


@dataclass(slots=True)
class FrameSender:
    link: SerialLink
    capacity: int = DEFAULT_CAPACITY
    metrics: Metrics = field(default_factory=Metrics, init=False)
    _coder: Bicoder = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._coder = Bicoder(self.capacity)

    def send(self, payload: bytes) -> bool:
        frame = self._coder.encode(payload)
        if frame is None:
            log.warning("payload of %d bytes exceeds capacity %d; not sent", len(payload), self.capacity)
            return False

        self.link.write(frame)
        self.metrics.frames += 1
        self.metrics.wire_bytes += len(frame)
        self.metrics.payload_bytes += len(payload)
        return True

    def run(self, f: BinaryIO) -> Metrics:
        """Send f as consecutive frames of at most capacity bytes each."""
        log.info("sender start; capacity=%d", self.capacity)

        while True:
            chunk = f.read(self.capacity)
            if not chunk:
                break
            self.send(chunk)

        self.metrics.end_ts = time.monotonic()
        log.info("sender done; frames=%d wire_bytes=%d", self.metrics.frames, self.metrics.wire_bytes)
        return self.metrics
