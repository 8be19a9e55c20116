from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from .bench import run_benchmark
from .codec import Bicoder
from .constants import (
    DEFAULT_BAUDRATE,
    DEFAULT_CAPACITY,
    DEFAULT_TIMEOUT_MS,
    MAX_CAPACITY,
    MIN_CAPACITY,
)
from .link import Impairment, SerialLink
from .receiver import FrameReceiver, Metrics
from .sender import FrameSender


def _parse_hex(text: str) -> bytes:
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a hex string: {text!r}") from e


def _capacity(text: str) -> int:
    value = int(text)
    if not MIN_CAPACITY <= value <= MAX_CAPACITY:
        raise argparse.ArgumentTypeError(f"capacity must be in {MIN_CAPACITY}..{MAX_CAPACITY}, got {value}")
    return value


def _emit(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2))
        return
    for key, value in payload.items():
        print(f"{key}={value}")


def _metrics_payload(role: str, metrics: Metrics) -> dict:
    return {
        "role": role,
        "frames": metrics.frames,
        "frames_bad": metrics.frames_bad,
        "wire_bytes": metrics.wire_bytes,
        "payload_bytes": metrics.payload_bytes,
        "seconds": metrics.duration_s,
        "mbps": metrics.throughput_mbps,
    }


def cmd_encode(args: argparse.Namespace) -> int:
    frame = Bicoder(args.capacity).encode(args.payload)
    if frame is None:
        print(f"payload too large: {len(args.payload)} > {args.capacity}", file=sys.stderr)
        return 1
    print(frame.hex())
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    coder = Bicoder(args.capacity, strict=args.strict)
    payload = coder.decode_message(args.frame)
    if payload is None:
        kind = coder.last_error.value if coder.last_error else "invalid"
        print(f"decode failed: {kind}", file=sys.stderr)
        return 1
    print(payload.hex())
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    impair = Impairment(args.noise_rate, args.flip_rate)
    link = SerialLink.open(args.port, baudrate=args.baudrate, timeout_ms=args.timeout_ms, impairment=impair)
    try:
        with open(args.file, "rb") as f:
            metrics = FrameSender(link, capacity=args.capacity).run(f)
    finally:
        link.close()

    _emit(_metrics_payload("sender", metrics), args.json)
    return 0


def cmd_recv(args: argparse.Namespace) -> int:
    link = SerialLink.open(args.port, baudrate=args.baudrate, timeout_ms=args.timeout_ms)
    receiver = FrameReceiver(link, capacity=args.capacity, strict=args.strict)
    try:
        with open(args.out, "wb") as out:
            metrics = receiver.run(out, max_frames=args.max_frames, idle_timeouts=args.idle_timeouts)
    finally:
        link.close()

    _emit(_metrics_payload("receiver", metrics), args.json)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        capacity=args.capacity,
        noise_rate=args.noise_rate,
        flip_rate=args.flip_rate,
    )
    _emit({"role": "bench", **asdict(r)}, args.json)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="dlsp", description="Byte-stuffed framing over serial links.")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_capacity(x: argparse.ArgumentParser) -> None:
        x.add_argument("--capacity", type=_capacity, default=DEFAULT_CAPACITY)

    def add_link(x: argparse.ArgumentParser) -> None:
        x.add_argument("--port", required=True, help="device path or pyserial URL, e.g. loop://")
        x.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE)
        x.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS)
        x.add_argument("--json", action="store_true")

    encode = sub.add_parser("encode", help="frame a hex payload")
    add_capacity(encode)
    encode.add_argument("payload", type=_parse_hex)
    encode.set_defaults(func=cmd_encode)

    decode = sub.add_parser("decode", help="unframe a single hex frame")
    add_capacity(decode)
    decode.add_argument("--strict", action="store_true")
    decode.add_argument("frame", type=_parse_hex)
    decode.set_defaults(func=cmd_decode)

    send = sub.add_parser("send", help="send a file as consecutive frames")
    add_capacity(send)
    add_link(send)
    send.add_argument("--file", required=True)
    send.add_argument("--noise-rate", type=float, default=0.0)
    send.add_argument("--flip-rate", type=float, default=0.0)
    send.set_defaults(func=cmd_send)

    recv = sub.add_parser("recv", help="write received payloads to a file")
    add_capacity(recv)
    add_link(recv)
    recv.add_argument("--out", required=True)
    recv.add_argument("--strict", action="store_true")
    recv.add_argument("--max-frames", type=int, default=None)
    recv.add_argument("--idle-timeouts", type=int, default=None)
    recv.set_defaults(func=cmd_recv)

    bench = sub.add_parser("bench", help="loopback benchmark")
    add_capacity(bench)
    bench.add_argument("--size-bytes", type=int, default=1_000_000)
    bench.add_argument("--noise-rate", type=float, default=0.0)
    bench.add_argument("--flip-rate", type=float, default=0.0)
    bench.add_argument("--json", action="store_true")
    bench.set_defaults(func=cmd_bench)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
