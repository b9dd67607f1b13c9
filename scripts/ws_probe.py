#!/usr/bin/env python3
"""Live subscriber probe for a running patchbridge server.

Connects to the bridge WebSocket, prints the initial snapshot as a table
and then every update as it arrives. Optionally writes test frames to a
serial device (for loopback adapters or a second port of a virtual pair)
so the whole pipeline can be exercised without the real hardware.

Examples:
    python scripts/ws_probe.py --url ws://localhost:8080/ws
    python scripts/ws_probe.py --emit-device /dev/pts/4 --channel 1 --channel 2
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import aiohttp
import serial

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from patchbridge.decoding import encode_channel_record  # noqa: E402
from patchbridge.models import ChannelRecord  # noqa: E402


def _format_record(record: dict[str, Any]) -> str:
    marker = "ok " if record.get("matchesReference") else "!! "
    fields = ", ".join(
        f"{key}={value!r}"
        for key, value in record.items()
        if key not in {"channelNumber", "matchesReference", "mismatchedFields", "diagnostic"}
    )
    line = f"{marker}ch {record.get('channelNumber')}: {fields}"
    if record.get("diagnostic"):
        line += f"  [{record['diagnostic']}]"
    return line


def _print_message(message: dict[str, Any]) -> None:
    kind = message.get("type")
    if kind == "initialData":
        data = message.get("data") or {}
        print(f"initialData: {len(data)} channel(s)")
        for key in sorted(data, key=lambda k: int(k) if k.isdigit() else k):
            print("  " + _format_record(data[key]))
    elif kind == "update":
        print("update: " + _format_record(message.get("data") or {}))
    else:
        print(f"unknown message: {json.dumps(message)}")


def _emit_frames(device: str, baud_rate: int, channels: list[int]) -> None:
    with serial.Serial(device, baudrate=baud_rate, timeout=1) as port:
        for channel in channels:
            record = ChannelRecord(
                channel_number=channel,
                mic_or_di="Probe Mic",
                patch_name=f"Probe {channel}",
                comments_or_stand="Probe Stand",
            )
            port.write(encode_channel_record(record))
        port.flush()


async def _probe(args: argparse.Namespace) -> int:
    timeout = aiohttp.ClientTimeout(total=None)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        try:
            ws = await session.ws_connect(args.url)
        except aiohttp.ClientError as exc:
            print(f"Could not connect to {args.url}: {exc}", file=sys.stderr)
            return 1

        async with ws:
            if args.emit_device:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, _emit_frames, args.emit_device, args.baud_rate, args.channel or [1])

            received = 0
            while args.count is None or received < args.count:
                try:
                    msg = await asyncio.wait_for(ws.receive(), timeout=args.idle_timeout)
                except asyncio.TimeoutError:
                    print(f"No message for {args.idle_timeout:.0f}s, stopping")
                    break
                if msg.type != aiohttp.WSMsgType.TEXT:
                    print(f"Connection ended ({msg.type.name})")
                    break
                _print_message(json.loads(msg.data))
                received += 1
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--url", default="ws://localhost:8080/ws", help="Bridge WebSocket URL")
    parser.add_argument("--count", type=int, help="Stop after this many messages")
    parser.add_argument("--idle-timeout", type=float, default=30.0, help="Stop after this many idle seconds")
    parser.add_argument("--emit-device", help="Serial device to write probe frames to")
    parser.add_argument("--baud-rate", type=int, default=115200)
    parser.add_argument("--channel", type=int, action="append", help="Channel to emit (repeatable)")
    args = parser.parse_args()

    try:
        return asyncio.run(_probe(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
