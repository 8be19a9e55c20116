from __future__ import annotations

import random
import time
from dataclasses import dataclass

from .constants import DEFAULT_CAPACITY
from .link import Impairment, SerialLink
from .receiver import FrameReceiver
from .sender import FrameSender


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_sent: int
    bytes_delivered: int
    frames_sent: int
    frames_received: int
    frames_bad: int
    intact: bool
    duration_s: float
    throughput_mbps: float


def run_benchmark(
    *,
    size_bytes: int,
    capacity: int = DEFAULT_CAPACITY,
    noise_rate: float = 0.0,
    flip_rate: float = 0.0,
) -> BenchmarkResult:
    payload = random.randbytes(size_bytes)
    impair = Impairment(noise_rate=noise_rate, flip_rate=flip_rate)

    # loop:// holds a bounded queue, so drain it after every frame.
    link = SerialLink.open("loop://", timeout_ms=0, impairment=impair)
    sender = FrameSender(link, capacity=capacity)
    receiver = FrameReceiver(link, capacity=capacity)
    delivered = bytearray()

    start = time.perf_counter()
    try:
        for offset in range(0, size_bytes, capacity):
            sender.send(payload[offset : offset + capacity])
            for chunk in receiver.feed(link.read(link.in_waiting)):
                delivered += chunk
    finally:
        link.close()
    duration_s = max(0.001, time.perf_counter() - start)

    return BenchmarkResult(
        bytes_sent=size_bytes,
        bytes_delivered=len(delivered),
        frames_sent=sender.metrics.frames,
        frames_received=receiver.metrics.frames,
        frames_bad=receiver.metrics.frames_bad,
        intact=bytes(delivered) == payload,
        duration_s=duration_s,
        throughput_mbps=(len(delivered) * 8 / 1_000_000) / duration_s,
    )
