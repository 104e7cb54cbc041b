#!/usr/bin/env python3
"""Drive the remote platform from a terminal.

Modes:
    - Sequence: connect, send a comma-separated list with dwell spacing, exit
    - Interactive: REPL to type commands in real time

Interactive keys:
    f/b/l/r = press forward/backward/left/right
    s = release forward/backward (stop), c = release left/right (center)
    n = toggle light, quit = disconnect and exit

Examples:
    python -m controlrc.tools.drive_cli --cmd f,s,l,c --dwell 0.5
    python -m controlrc.tools.drive_cli --sim --interactive
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from controlrc.core.config_loader import DEFAULT_CONFIG, ConfigLoader
from controlrc.core.logging_setup import get_logger
from controlrc.link.controller import LinkController
from controlrc.session.commands import Command, parse_command
from controlrc.session.coordinator import SessionCoordinator
from controlrc.session.view import SessionView


def print_view(view: SessionView) -> None:
    light = "on" if view.light_on else "off"
    print(f"[{view.state.value}] {view.message} (light {light})")


async def run_sequence(session: SessionCoordinator, tokens: List[str], dwell: float) -> int:
    for token in tokens:
        try:
            cmd = parse_command(token)
        except ValueError as exc:
            print(exc, file=sys.stderr)
            return 2
        if cmd is Command.LIGHT:
            await session.toggle_light()
            sent = session.view.connected
        else:
            sent = await session.send_command(cmd)
        print(f"TX {cmd.value} {'ok' if sent else 'not sent'}")
        await asyncio.sleep(max(dwell, 0))
    return 0


async def run_repl(session: SessionCoordinator) -> int:
    print("Interactive mode. Commands: f/b/l/r/s/c/n; 'quit' to exit.")
    while True:
        try:
            raw = (await asyncio.to_thread(input, "> ")).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        if not raw:
            continue
        if raw.lower() in {"q", "quit", "exit"}:
            return 0
        if raw.lower() in {"connect", "reconnect"}:
            await session.connect()
            continue
        try:
            cmd = parse_command(raw)
        except ValueError as exc:
            print(exc)
            continue
        if cmd is Command.LIGHT:
            await session.toggle_light()
        elif not await session.send_command(cmd):
            print("not sent")


async def run(args: argparse.Namespace) -> int:
    cfg = ConfigLoader(Path(args.config)).load()
    if args.sim:
        cfg.link.transport = "sim"
    if args.peer:
        cfg.link.target_peer_name = args.peer

    logger = get_logger("tools.drive_cli", cfg.log_dir)
    logger.info("Driving %s over %s", cfg.link.target_peer_name, cfg.link.transport)
    session = SessionCoordinator(LinkController.from_config(cfg.link))
    session.add_listener(print_view)
    async with session:
        result = await session.connect()
        if result is not None and not result.ok:
            logger.warning("Connect failed: %s", result.message)
            if not args.interactive:
                return 1
        if args.interactive:
            return await run_repl(session)
        return await run_sequence(session, [t for t in args.cmd.split(",") if t.strip()], args.dwell)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Bluetooth serial remote control")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG), help="Path to system config")
    parser.add_argument("--sim", action="store_true", help="Use the simulated radio and TCP peer")
    parser.add_argument("--peer", default=None, help="Override the target peer name")
    parser.add_argument("--cmd", default="", help="Comma-separated commands, e.g. f,s,n")
    parser.add_argument("--dwell", type=float, default=0.5, help="Seconds between sequence commands")
    parser.add_argument("--interactive", action="store_true", help="Start a REPL")
    args = parser.parse_args(argv)

    if not args.interactive and not args.cmd:
        parser.error("either --cmd or --interactive is required")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
