#!/usr/bin/env python3
"""Passive probe for DCC IO daemon state observation.

This script reuses pydccio to:
1) load systems, ports and the connection registry,
2) open the event stream and the command channel,
3) print every state change and every new log line.

Use this to check which channel delivers which update, and how fast.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pydccio import BoundedLogBuffer, DccIoClient, DccIoConfig, DccIoError, StateSnapshot  # noqa: E402

_LOG = logging.getLogger("event_probe")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Passive probe for the DCC IO daemon event stream and command channel.",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Daemon HTTP base URL (default: $DCCIO_BASE_URL or http://localhost:9000).",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--throttle",
        type=int,
        default=0,
        help="Open a throttle for this address so its updates are mirrored.",
    )
    parser.add_argument(
        "--long-address",
        action="store_true",
        help="Treat --throttle as a long address.",
    )
    parser.add_argument(
        "--no-snapshots",
        action="store_true",
        help="Print log lines only.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_snapshot(snapshot: StateSnapshot) -> None:
    for record in snapshot.connections:
        station = record.command_station.describe() if record.command_station else "-"
        roles = ",".join(sorted(str(role) for role in record.roles)) or "-"
        print(
            f"[probe] {record.id} ({record.system_type}) connected={record.connected} "
            f"power={record.power_status or '-'} roles={roles} station={station}",
        )
    if snapshot.focus is not None:
        throttle = snapshot.throttle
        functions = ",".join(f"F{n}" for n, on in sorted(throttle.functions.items()) if on) or "-"
        print(
            f"[probe] throttle {snapshot.focus}: speed={throttle.speed:.2f} "
            f"{'fwd' if throttle.forward else 'rev'} functions={functions}",
        )
    if snapshot.accessory_status:
        print(f"[probe] {snapshot.accessory_status}")
    if snapshot.status is not None:
        print(f"[probe] status ({snapshot.status.level}): {snapshot.status.text}")
    channels = " ".join(f"{channel}={state}" for channel, state in snapshot.channel_states.items())
    print(f"[probe] channels: {channels}")


def _drain(label: str, buffer: BoundedLogBuffer) -> None:
    for entry in buffer.entries():
        print(f"[{label}] {entry.format()}")
    buffer.clear()


async def _run(args: argparse.Namespace) -> int:
    overrides = {} if args.base_url is None else {"base_url": args.base_url}
    config = DccIoConfig.from_env(**overrides)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    listener = None if args.no_snapshots else _print_snapshot
    async with DccIoClient(config, on_state_change=listener) as client:
        print(f"[probe] Connecting to {config.http_base} (channel {config.command_channel_url})")
        await client.start()
        if args.throttle:
            try:
                await client.open_throttle(args.throttle, args.long_address)
            except DccIoError as exc:
                print(f"[probe] Could not open throttle {args.throttle}: {exc}", file=sys.stderr)

        elapsed = 0.0
        while not stop.is_set():
            _drain("transport", client.transport_log)
            _drain("channel", client.channel_log)
            try:
                await asyncio.wait_for(stop.wait(), timeout=0.5)
            except TimeoutError:
                pass
            elapsed += 0.5
            if args.duration and elapsed >= args.duration:
                break

        if args.throttle and client.snapshot().focus is not None:
            try:
                await client.close_throttle()
            except DccIoError as exc:
                _LOG.debug("Closing throttle failed: %s", exc)
    print("[probe] Stopped.")
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except DccIoError as exc:  # pragma: no cover - network/system interaction
        print(f"[probe] Failed: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(_main())
