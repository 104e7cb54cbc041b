"""ZeroMQ plumbing between the link bridge and presentation processes.

Two channels, mirrored from ``ipc:`` in the system config:
  upstream   - the bridge publishes ``link.state`` snapshots here
  downstream - operators publish ``drive.intent`` requests here

Every message is two frames: ``[topic, json-utf8]``.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import zmq
import zmq.asyncio

TOPIC_DRIVE = b"drive.intent"      # downstream: operator intents for the link bridge
TOPIC_LINK_STATE = b"link.state"   # upstream: session view snapshots

DEFAULT_UPSTREAM = "tcp://127.0.0.1:6110"
DEFAULT_DOWNSTREAM = "tcp://127.0.0.1:6111"
CHANNELS = ("upstream", "downstream")


def endpoint(config: Optional[Dict[str, Any]], channel: str) -> str:
    """Resolve a channel address; ``IPC_UPSTREAM``/``IPC_DOWNSTREAM`` win over config."""
    if channel not in CHANNELS:
        raise ValueError(f"Unknown IPC channel {channel!r}")
    ipc_cfg = (config or {}).get("ipc") or {}
    fallback = DEFAULT_UPSTREAM if channel == "upstream" else DEFAULT_DOWNSTREAM
    return os.environ.get(f"IPC_{channel.upper()}", ipc_cfg.get(channel, fallback))


def _open(kind: int, addr: str, bind: bool, context: Optional[zmq.Context]) -> zmq.Socket:
    ctx = context or zmq.Context.instance()
    sock = ctx.socket(kind)
    if bind:
        sock.bind(addr)
    else:
        sock.connect(addr)
    return sock


def make_publisher(
    config: Dict[str, Any],
    *,
    channel: str = "upstream",
    bind: bool = False,
    context: Optional[zmq.Context] = None,
) -> zmq.Socket:
    """PUB socket on ``channel``; pass a ``zmq.asyncio.Context`` for awaitable sends."""
    return _open(zmq.PUB, endpoint(config, channel), bind, context)


def make_subscriber(
    config: Dict[str, Any],
    *,
    topics: Sequence[bytes] = (b"",),
    channel: str = "upstream",
    bind: bool = False,
    context: Optional[zmq.Context] = None,
) -> zmq.Socket:
    sock = _open(zmq.SUB, endpoint(config, channel), bind, context)
    for topic in topics:
        sock.setsockopt(zmq.SUBSCRIBE, topic)
    return sock


def async_context() -> zmq.asyncio.Context:
    return zmq.asyncio.Context.instance()


def encode_json(topic: bytes, payload: Dict[str, Any]) -> List[bytes]:
    return [topic, json.dumps(payload).encode("utf-8")]


def decode_json(frames: Sequence[bytes]) -> Tuple[bytes, Dict[str, Any]]:
    """Split ``[topic, body]``; raises ValueError on a malformed message."""
    if len(frames) != 2:
        raise ValueError(f"expected 2 frames, got {len(frames)}")
    topic, body = frames
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"invalid JSON body on {topic!r}: {exc}") from exc
    return topic, payload


def publish_json(sock: zmq.Socket, topic: bytes, payload: Dict[str, Any]) -> None:
    sock.send_multipart(encode_json(topic, payload))
