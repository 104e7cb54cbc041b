#!/usr/bin/env python3
"""Publish one drive intent to a running link bridge, optionally watch state.

Examples:
    python -m controlrc.tools.send_intent connect --watch 3
    python -m controlrc.tools.send_intent command F
    python -m controlrc.tools.send_intent press forward
    python -m controlrc.tools.send_intent toggle_light
"""
from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import zmq

from controlrc.core.config_loader import DEFAULT_CONFIG, load_config
from controlrc.core.ipc import TOPIC_DRIVE, TOPIC_LINK_STATE, decode_json, make_publisher, make_subscriber, publish_json
from controlrc.session.bridge import ACTIONS, parse_intent


def build_payload(action: str, argument: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"action": action}
    if action == "command":
        payload["command"] = argument or ""
    elif action in ("press", "release"):
        payload["control"] = argument or ""
    parse_intent(payload)
    return payload


def watch(sub: zmq.Socket, seconds: float) -> None:
    poller = zmq.Poller()
    poller.register(sub, zmq.POLLIN)
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        remaining_ms = max(1, int((deadline - time.monotonic()) * 1000))
        if not dict(poller.poll(remaining_ms)):
            continue
        _topic, snapshot = decode_json(sub.recv_multipart())
        print(f"[{snapshot.get('state')}] {snapshot.get('message')} (light {'on' if snapshot.get('light_on') else 'off'})")


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Publish one drive intent to the link bridge")
    ap.add_argument("action", choices=ACTIONS)
    ap.add_argument("argument", nargs="?", help="Command letter for 'command', control name for press/release")
    ap.add_argument("--config", default=str(DEFAULT_CONFIG))
    ap.add_argument("--sleep", type=float, default=0.2, help="Sleep after connect (PUB/SUB warmup)")
    ap.add_argument("--watch", type=float, default=0.0, help="Seconds to print link.state updates afterwards")
    args = ap.parse_args(argv)

    try:
        payload = build_payload(args.action, args.argument)
    except ValueError as exc:
        ap.error(str(exc))

    cfg = load_config(Path(args.config))
    pub = make_publisher(cfg, channel="downstream")
    sub = make_subscriber(cfg, topics=(TOPIC_LINK_STATE,), channel="upstream") if args.watch > 0 else None
    try:
        time.sleep(max(0.0, args.sleep))
        publish_json(pub, TOPIC_DRIVE, payload)
        print(f"sent {TOPIC_DRIVE.decode()} {payload}")
        if sub is not None:
            watch(sub, args.watch)
    finally:
        pub.close(linger=500)
        if sub is not None:
            sub.close(linger=0)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
