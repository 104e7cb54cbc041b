"""Connection-state events and the channel that carries them to the owner loop."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class LinkEvent:
    connected: bool
    message: str


class EventSink(Protocol):
    """Anything with ``put(event)``; a ``queue.Queue`` qualifies."""

    def put(self, event: LinkEvent) -> None: ...


class AsyncEventChannel:
    """Single-consumer channel delivering events onto one asyncio loop.

    ``put`` may be called from any thread; the event is handed to the owning
    loop with ``call_soon_threadsafe`` and queued in arrival order.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[LinkEvent] = asyncio.Queue()

    def put(self, event: LinkEvent) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def get(self) -> LinkEvent:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def empty(self) -> bool:
        return self._queue.empty()
