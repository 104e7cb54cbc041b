"""Session coordinator: owns the SessionView and forwards intent to the link.

Every LinkController call runs on one dedicated worker thread, so link
operations execute one at a time in the order they were requested. Link
events come back through an AsyncEventChannel and are applied to the view
by a pump task on the owner loop; nothing else replaces the view.
"""
from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextlib import suppress
from dataclasses import replace
from typing import Any, Callable, List, Optional, Union

from controlrc.core.logging_setup import get_logger
from controlrc.link.controller import MSG_CONNECTING, LinkController, encode_command
from controlrc.link.errors import ConnectResult
from controlrc.link.events import AsyncEventChannel
from controlrc.session.commands import Command, Control, edge_command
from controlrc.session.view import SessionView

logger = get_logger("session.coordinator")

Listener = Callable[[SessionView], None]


def _payload(command: Union[Command, str, bytes]) -> bytes:
    if isinstance(command, Command):
        return command.payload
    return encode_command(command)


class SessionCoordinator:
    def __init__(self, controller: LinkController) -> None:
        self.controller = controller
        self._view = SessionView()
        self._listeners: List[Listener] = []

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._events: Optional[AsyncEventChannel] = None
        self._pump: Optional[asyncio.Task] = None

    @property
    def view(self) -> SessionView:
        return self._view

    def add_listener(self, listener: Listener) -> None:
        """Observe view changes; called on the owner loop with each new view."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> "SessionCoordinator":
        if self._pump is not None:
            return self
        self._loop = asyncio.get_running_loop()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="link-worker")
        self._events = AsyncEventChannel(self._loop)
        self.controller.subscribe(self._events)
        self._pump = asyncio.create_task(self._pump_events(), name="link-events")
        return self

    async def close(self) -> None:
        """Release the link and stop the worker. Safe to call twice."""
        if self._pump is None:
            return
        logger.info("Session closing - disconnecting")
        try:
            await self.disconnect()
        finally:
            self.controller.subscribe(None)
            self._pump.cancel()
            with suppress(asyncio.CancelledError):
                await self._pump
            self._pump = None
            self._executor.shutdown(wait=True)
            self._executor = None

    async def __aenter__(self) -> "SessionCoordinator":
        return await self.start()

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _publish(self, view: SessionView) -> None:
        self._view = view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as exc:  # noqa: BLE001
                logger.error("Error in session listener: %s", exc)

    async def _pump_events(self) -> None:
        while True:
            event = await self._events.get()
            try:
                self._publish(self._view.with_event(event))
                logger.info("Connection state changed: %s - %s", event.connected, event.message)
            finally:
                self._events.task_done()

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a controller call on the worker, then wait for its events to land."""
        if self._pump is None:
            raise RuntimeError("SessionCoordinator.start() must be awaited first")
        result = await self._loop.run_in_executor(self._executor, fn, *args)
        await self._events.join()
        return result

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    async def connect(self) -> Optional[ConnectResult]:
        """Connect to the peer. Returns None if an attempt is already running."""
        if self._view.connecting:
            logger.warning("Connect already in progress; ignoring request")
            return None
        self._publish(replace(self._view, connecting=True, message=MSG_CONNECTING))
        logger.info("Attempting to connect...")
        try:
            return await self._run(self.controller.connect)
        finally:
            if self._view.connecting:
                self._publish(replace(self._view, connecting=False))

    async def disconnect(self) -> None:
        logger.info("Disconnecting...")
        await self._run(self.controller.disconnect)

    async def send_command(self, command: Union[Command, str, bytes]) -> bool:
        if not self._view.connected:
            logger.warning("Cannot send command %r - not connected", command)
            return False
        payload = _payload(command)
        sent = await self._run(self.controller.send, payload)
        logger.debug("Sent command: %r - success: %s", payload, sent)
        return sent

    async def press(self, control: Control, pressed: bool) -> bool:
        return await self.send_command(edge_command(control, pressed))

    async def toggle_light(self) -> bool:
        """Flip the light flag and send the toggle command.

        The flag flips whether or not the command lands; the peer sends no
        acknowledgement to reconcile against.
        """
        light_on = not self._view.light_on
        self._publish(replace(self._view, light_on=light_on))
        await self.send_command(Command.LIGHT)
        logger.info("Light toggled: %s", light_on)
        return light_on
