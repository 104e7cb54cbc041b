"""Link controller: owns the single byte-stream connection to the peer.

Blocking. ``connect`` waits out the radio handshake; ``send`` and
``disconnect`` do short local I/O. Callers on an event loop run these on a
worker thread (see ``controlrc.session.coordinator``). State changes are
pushed to the subscribed event sink as ``LinkEvent(connected, message)``.
"""
from __future__ import annotations

import threading
from typing import BinaryIO, Optional, Union

from controlrc.core.logging_setup import get_logger
from controlrc.link.config import LinkConfig
from controlrc.link.errors import ConnectResult, LinkFailure
from controlrc.link.events import ConnectionState, EventSink, LinkEvent
from controlrc.link.permissions import Capability, PermissionChecker, PermissionModel, StaticPermissions, make_permissions
from controlrc.link.radio import BondedPeer, Radio, make_radio
from controlrc.link.streams import StreamHandle

logger = get_logger("link.controller")

MSG_CONNECTING = "connecting"
MSG_DISCONNECTED = "disconnected"
MSG_CONNECTION_LOST = "connection lost"
MSG_PERMISSION_DENIED = "bluetooth permissions not granted"
MSG_UNAVAILABLE = "bluetooth not available"
MSG_DISABLED = "bluetooth is disabled"


def encode_command(command: Union[bytes, str]) -> bytes:
    if isinstance(command, str):
        try:
            return command.encode("ascii")
        except UnicodeEncodeError as exc:
            raise ValueError(f"Commands must be ASCII, got {command!r}") from exc
    return bytes(command)


class LinkController:
    def __init__(self, config: LinkConfig, radio: Radio, permissions: PermissionChecker) -> None:
        self.config = config
        self.radio = radio
        self.permissions = permissions

        # Handle and sink are assigned and cleared together under _lock.
        self._handle: Optional[StreamHandle] = None
        self._sink: Optional[BinaryIO] = None
        self._peer: Optional[BondedPeer] = None
        self._lock = threading.Lock()
        self._listener: Optional[EventSink] = None

    @classmethod
    def from_config(cls, config: LinkConfig) -> "LinkController":
        if config.transport == "sim" and config.granted is None:
            # no host radio to hold permissions for
            permissions: PermissionChecker = StaticPermissions(Capability, PermissionModel(config.permission_model))
        else:
            permissions = make_permissions(config.permission_model, config.granted)
        return cls(config, make_radio(config), permissions)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def subscribe(self, sink: Optional[EventSink]) -> None:
        """Register the single event sink, replacing any previous one."""
        self._listener = sink

    def _notify(self, connected: bool, message: str) -> None:
        listener = self._listener
        if listener is None:
            logger.debug("No subscriber for state change (%s, %s)", connected, message)
            return
        listener.put(LinkEvent(connected=connected, message=message))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def is_available(self) -> bool:
        return self.radio.is_available()

    @property
    def is_enabled(self) -> bool:
        return self.radio.is_available() and self.radio.is_enabled()

    @property
    def is_connected(self) -> bool:
        with self._lock:
            handle = self._handle
        return handle is not None and handle.is_connected

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self.is_connected else ConnectionState.DISCONNECTED

    @property
    def peer(self) -> Optional[BondedPeer]:
        with self._lock:
            return self._peer

    def find_peer(self) -> Optional[BondedPeer]:
        """Search the bonded set for the configured peer name.

        Without enumeration permission the bonded set is treated as empty.
        """
        peers = self.radio.bonded_peers() if self.permissions.can_enumerate() else []
        logger.debug("Found %d bonded devices", len(peers))
        for peer in peers:
            logger.debug("Checking device: %s", peer.name)
            if peer.name == self.config.target_peer_name:
                return peer
        return None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def _fail(self, failure: LinkFailure, message: str, detail: str = "") -> ConnectResult:
        logger.warning("Connect failed (%s): %s", failure.value, message)
        self._notify(False, message)
        return ConnectResult(message=message, failure=failure, detail=detail)

    def connect(self) -> ConnectResult:
        target = self.config.target_peer_name
        logger.info("Starting connection to %s", target)

        if self.is_connected:
            peer = self.peer
            message = f"connected to {peer.name if peer else target}"
            logger.info("Link already open; not opening another")
            self._notify(True, message)
            return ConnectResult(message=message)

        with self._lock:
            stale = self._handle is not None
        if stale:
            logger.info("Releasing dead link before reconnecting")
            self._teardown()

        if not self.permissions.can_connect():
            missing = ", ".join(sorted(c.value for c in self.permissions.missing_for_connect()))
            return self._fail(LinkFailure.PERMISSION_DENIED, MSG_PERMISSION_DENIED, missing)
        if not self.radio.is_available():
            return self._fail(LinkFailure.UNAVAILABLE, MSG_UNAVAILABLE)
        if not self.radio.is_enabled():
            return self._fail(LinkFailure.DISABLED, MSG_DISABLED)

        handle: Optional[StreamHandle] = None
        try:
            peer = self.find_peer()
            if peer is None:
                return self._fail(
                    LinkFailure.PEER_NOT_FOUND,
                    f"{target} not found; pair the device first",
                )

            logger.info("%s found at %s, connecting...", peer.name, peer.address)
            try:
                self.radio.cancel_discovery()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not cancel discovery: %s", exc)

            handle = self.radio.open_stream(peer, self.config.service_uuid, self.config.connect_timeout_s)
            sink = handle.output_stream()
            with self._lock:
                self._handle, self._sink, self._peer = handle, sink, peer
        except OSError as exc:
            logger.error("I/O failure while connecting to %s", target, exc_info=True)
            self._teardown(pending=handle)
            return self._fail(LinkFailure.IO_FAILURE, f"connection error: {exc}", str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.error("Unexpected failure while connecting to %s", target, exc_info=True)
            self._teardown(pending=handle)
            return self._fail(LinkFailure.IO_FAILURE, f"error: {exc}", str(exc))

        message = f"connected to {peer.name}"
        logger.info("Connected successfully to %s", peer.name)
        self._notify(True, message)
        return ConnectResult(message=message)

    def send(self, command: Union[bytes, str]) -> bool:
        """Write ``command`` and flush it. Returns False when it was not sent.

        Text must be ASCII; anything else raises ValueError.
        """
        with self._lock:
            handle, sink = self._handle, self._sink
        if handle is None or sink is None:
            logger.warning("Cannot send %r - not connected", command)
            return False
        command = encode_command(command)
        if not handle.is_connected:
            logger.error("Link to %s went down before sending %r", self.config.target_peer_name, command)
            self._teardown()
            self._notify(False, MSG_CONNECTION_LOST)
            return False

        try:
            sink.write(command)
            sink.flush()
        except OSError as exc:
            logger.error("Error sending %r: %s", command, exc)
            self._teardown()
            self._notify(False, MSG_CONNECTION_LOST)
            return False

        logger.debug("Command sent: %r (%d bytes)", command, len(command))
        return True

    def _teardown(self, pending: Optional[StreamHandle] = None) -> None:
        """Close sink then handle, clearing both whatever happens.

        ``pending`` is a handle opened by an unfinished connect that never
        became the link.
        """
        try:
            resources = [self._sink, self._handle]
            if pending is not None and pending is not self._handle:
                resources.append(pending)
            for resource in resources:
                if resource is None:
                    continue
                try:
                    resource.close()
                except Exception as exc:  # noqa: BLE001
                    logger.error("Error while closing %s: %s", type(resource).__name__, exc)
        finally:
            with self._lock:
                self._handle = None
                self._sink = None
                self._peer = None

    def disconnect(self) -> None:
        """Release the link if any; always reports ``(False, "disconnected")``."""
        logger.info("Disconnecting...")
        try:
            self._teardown()
        finally:
            self._notify(False, MSG_DISCONNECTED)
