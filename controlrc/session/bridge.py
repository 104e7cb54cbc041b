#!/usr/bin/env python3
"""ZeroMQ bridge between operator intents and the serial command link.

Subscribes to drive intents on the downstream channel and publishes every
SessionView change upstream, so any presentation process can render the
session without touching the link. The bridge binds both channels; operator
tools and displays connect to it.

Intent payloads (JSON on ``drive.intent``):
  {"action": "connect"} / {"action": "disconnect"}
  {"action": "command", "command": "F"}
  {"action": "press", "control": "forward"} / {"action": "release", ...}
  {"action": "toggle_light"}
"""
from __future__ import annotations

import argparse
import asyncio
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Set

import zmq.asyncio

from controlrc.core.config_loader import DEFAULT_CONFIG, AppConfig, ConfigLoader
from controlrc.core.ipc import (
    TOPIC_DRIVE,
    TOPIC_LINK_STATE,
    async_context,
    decode_json,
    encode_json,
    make_publisher,
    make_subscriber,
)
from controlrc.core.logging_setup import get_logger
from controlrc.link.controller import LinkController
from controlrc.session.commands import Command, Control, parse_command
from controlrc.session.coordinator import SessionCoordinator
from controlrc.session.view import SessionView


ACTIONS = ("connect", "disconnect", "command", "press", "release", "toggle_light")


@dataclass(frozen=True, slots=True)
class DriveIntent:
    action: str
    command: Optional[Command] = None
    control: Optional[Control] = None


def parse_intent(payload: Dict[str, Any]) -> DriveIntent:
    """Validate an intent payload; raises ValueError when malformed."""
    if not isinstance(payload, dict):
        raise ValueError("intent payload must be a JSON object")
    action = str(payload.get("action", "")).lower()
    if action not in ACTIONS:
        raise ValueError(f"Unknown intent action {action!r}")
    if action == "command":
        return DriveIntent(action, command=parse_command(str(payload.get("command", ""))))
    if action in ("press", "release"):
        return DriveIntent(action, control=Control(str(payload.get("control", "")).lower()))
    return DriveIntent(action)


class LinkBridge:
    def __init__(self, config: AppConfig, sim: bool = False) -> None:
        self.config = config
        self.logger = get_logger("session.bridge", config.log_dir)
        if sim:
            config.link.transport = "sim"
        self.controller = LinkController.from_config(config.link)
        self.coordinator = SessionCoordinator(self.controller)

        self._ctx = async_context()
        self.sub: Optional[zmq.asyncio.Socket] = None
        self.pub: Optional[zmq.asyncio.Socket] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._tasks: Set[asyncio.Task] = set()

    async def apply(self, intent: DriveIntent) -> None:
        if intent.action == "connect":
            # connect blocks for the handshake; keep reading intents meanwhile
            task = asyncio.create_task(self.coordinator.connect())
            self._tasks.add(task)
            task.add_done_callback(self._connect_done)
        elif intent.action == "disconnect":
            await self.coordinator.disconnect()
        elif intent.action == "command":
            await self.coordinator.send_command(intent.command)
        elif intent.action in ("press", "release"):
            await self.coordinator.press(intent.control, intent.action == "press")
        elif intent.action == "toggle_light":
            await self.coordinator.toggle_light()

    def _connect_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Connect request failed: %r", exc, exc_info=exc)

    def _on_view(self, view: SessionView) -> None:
        if self._outbox is not None:
            self._outbox.put_nowait(view.to_dict())

    async def _publish_loop(self) -> None:
        while True:
            snapshot = await self._outbox.get()
            await self.pub.send_multipart(encode_json(TOPIC_LINK_STATE, snapshot))
            self.logger.debug("Published session view: %s", snapshot)

    async def run(self) -> None:
        raw = self.config.raw
        self.sub = make_subscriber(raw, topics=(TOPIC_DRIVE,), channel="downstream", bind=True, context=self._ctx)
        self.pub = make_publisher(raw, channel="upstream", bind=True, context=self._ctx)
        self._outbox = asyncio.Queue()
        self.coordinator.add_listener(self._on_view)
        publisher = asyncio.create_task(self._publish_loop(), name="link-state-publisher")

        self.logger.info(
            "Link bridge running (peer=%s, transport=%s)",
            self.config.link.target_peer_name,
            self.config.link.transport,
        )
        try:
            async with self.coordinator:
                self._on_view(self.coordinator.view)
                while True:
                    frames = await self.sub.recv_multipart()
                    try:
                        _topic, payload = decode_json(frames)
                        intent = parse_intent(payload)
                    except ValueError as e:
                        self.logger.error("Invalid drive intent: %s", e)
                        continue
                    await self.apply(intent)
        finally:
            for task in list(self._tasks):
                task.cancel()
            publisher.cancel()
            with suppress(asyncio.CancelledError):
                await publisher
            self.sub.close(linger=0)
            self.pub.close(linger=0)
            self.logger.info("Link bridge stopped")


def main() -> None:
    parser = argparse.ArgumentParser(description="ZeroMQ bridge for the Bluetooth serial link")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG), help="Path to system config")
    parser.add_argument("--sim", action="store_true", help="Use the simulated radio and TCP peer")
    parser.add_argument("--peer", default=None, help="Override the target peer name")
    args = parser.parse_args()

    cfg = ConfigLoader(Path(args.config)).load()
    if args.peer:
        cfg.link.target_peer_name = args.peer

    bridge = LinkBridge(cfg, sim=args.sim)
    try:
        asyncio.run(bridge.run())
    except KeyboardInterrupt:
        bridge.logger.info("Bridge interrupted")


if __name__ == "__main__":
    main()
