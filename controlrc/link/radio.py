"""Radio subsystem adapters: adapter state, bonded peers and stream opening.

``BluezRadio`` drives a Linux host through ``bluetoothctl``/``sdptool`` and
opens RFCOMM sockets. ``SerialRadio`` keeps the same discovery but talks
through an ``rfcomm bind``-ed tty with pyserial. ``SimRadio`` stands in for
the whole subsystem and connects to the TCP peer in ``sim_peer``.
"""
from __future__ import annotations

import re
import shutil
import socket
import subprocess
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from controlrc.core.logging_setup import get_logger
from controlrc.link.config import LinkConfig
from controlrc.link.errors import RadioCommandError
from controlrc.link.streams import SocketHandle, StreamHandle, open_serial

logger = get_logger("link.radio")

DEVICE_LINE = re.compile(r"^Device\s+(?P<address>(?:[0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2})\s+(?P<name>.+?)\s*$")
CHANNEL_LINE = re.compile(r"Channel:\s*(\d+)")
POWERED_LINE = re.compile(r"^\s*Powered:\s*(yes|no)\s*$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class BondedPeer:
    name: str
    address: str


def parse_devices(text: str) -> List[BondedPeer]:
    """Parse ``bluetoothctl devices`` output into peers."""
    peers = []
    for line in text.splitlines():
        match = DEVICE_LINE.match(line.strip())
        if match:
            peers.append(BondedPeer(name=match.group("name"), address=match.group("address").upper()))
    return peers


def parse_powered(text: str) -> bool:
    match = POWERED_LINE.search(text)
    return bool(match and match.group(1) == "yes")


def parse_rfcomm_channel(text: str) -> Optional[int]:
    match = CHANNEL_LINE.search(text)
    return int(match.group(1)) if match else None


class Radio:
    def is_available(self) -> bool:
        raise NotImplementedError

    def is_enabled(self) -> bool:
        raise NotImplementedError

    def bonded_peers(self) -> List[BondedPeer]:
        raise NotImplementedError

    def cancel_discovery(self) -> None:
        raise NotImplementedError

    def open_stream(self, peer: BondedPeer, service_uuid: uuid.UUID, timeout: float) -> StreamHandle:
        """Block until a byte stream to ``peer`` is ready; raise ``OSError`` on failure."""
        raise NotImplementedError


class BluezRadio(Radio):
    def __init__(self, config: LinkConfig, sysfs_root: Path = Path("/sys/class/bluetooth")) -> None:
        self.config = config
        self.sysfs_root = sysfs_root

    def _run(self, args: Sequence[str], timeout: float = 5.0) -> str:
        command = " ".join(args)
        if shutil.which(args[0]) is None:
            raise RadioCommandError(command, "not installed")
        try:
            completed = subprocess.run(
                list(args),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise RadioCommandError(command, f"timed out after {timeout}s") from exc
        if completed.returncode != 0:
            raise RadioCommandError(command, completed.stderr.strip() or f"exit {completed.returncode}")
        return completed.stdout

    def is_available(self) -> bool:
        if not hasattr(socket, "AF_BLUETOOTH"):
            return False
        try:
            return any(p.name.startswith("hci") for p in self.sysfs_root.iterdir())
        except OSError:
            return False

    def is_enabled(self) -> bool:
        try:
            return parse_powered(self._run(["bluetoothctl", "show"]))
        except RadioCommandError as exc:
            logger.warning("Cannot read adapter power state: %s", exc)
            return False

    def bonded_peers(self) -> List[BondedPeer]:
        # "devices Bonded" needs BlueZ >= 5.65; older releases only know "paired-devices"
        for args in (["bluetoothctl", "devices", "Bonded"], ["bluetoothctl", "paired-devices"]):
            try:
                return parse_devices(self._run(args))
            except RadioCommandError as exc:
                logger.debug("Bonded listing via '%s' failed: %s", " ".join(args), exc)
        logger.warning("Could not enumerate bonded devices")
        return []

    def cancel_discovery(self) -> None:
        self._run(["bluetoothctl", "scan", "off"])

    def resolve_channel(self, peer: BondedPeer, service_uuid: uuid.UUID) -> int:
        try:
            out = self._run(["sdptool", "search", "--bdaddr", peer.address, str(service_uuid)], timeout=10.0)
        except RadioCommandError as exc:
            logger.info("SDP lookup unavailable (%s); using channel %d", exc, self.config.rfcomm_channel)
            return self.config.rfcomm_channel
        channel = parse_rfcomm_channel(out)
        if channel is None:
            logger.info("No SDP record for %s on %s; using channel %d", service_uuid, peer.address, self.config.rfcomm_channel)
            return self.config.rfcomm_channel
        return channel

    def open_stream(self, peer: BondedPeer, service_uuid: uuid.UUID, timeout: float) -> StreamHandle:
        channel = self.resolve_channel(peer, service_uuid)
        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        try:
            sock.settimeout(timeout)
            sock.connect((peer.address, channel))
            sock.settimeout(self.config.write_timeout_s)
        except OSError:
            sock.close()
            raise
        logger.info("RFCOMM connected: %s channel %d", peer.address, channel)
        return SocketHandle(sock)


class SerialRadio(BluezRadio):
    """Bonded-peer discovery via BlueZ, stream via a pyserial tty."""

    def open_stream(self, peer: BondedPeer, service_uuid: uuid.UUID, timeout: float) -> StreamHandle:
        handle = open_serial(self.config.serial_device, self.config.baud_rate, self.config.write_timeout_s)
        logger.info("Serial link opened: %s @ %d baud for %s", self.config.serial_device, self.config.baud_rate, peer.address)
        return handle


class SimRadio(Radio):
    """Radio stand-in; connects to the TCP simulated peer."""

    def __init__(
        self,
        config: LinkConfig,
        *,
        available: bool = True,
        enabled: bool = True,
        bonded: Optional[List[str]] = None,
    ) -> None:
        self.config = config
        self.available = available
        self.enabled = enabled
        names = bonded if bonded is not None else config.sim_bonded
        self.peers = [BondedPeer(name=n, address=f"00:00:00:00:00:{i:02X}") for i, n in enumerate(names, start=1)]
        self.discovery_cancelled = 0

    def is_available(self) -> bool:
        return self.available

    def is_enabled(self) -> bool:
        return self.enabled

    def bonded_peers(self) -> List[BondedPeer]:
        return list(self.peers)

    def cancel_discovery(self) -> None:
        self.discovery_cancelled += 1

    def open_stream(self, peer: BondedPeer, service_uuid: uuid.UUID, timeout: float) -> StreamHandle:
        sock = socket.create_connection((self.config.sim_host, self.config.sim_port), timeout=timeout)
        sock.settimeout(self.config.write_timeout_s)
        logger.info("[SIM] connected to %s at %s:%d", peer.name, self.config.sim_host, self.config.sim_port)
        return SocketHandle(sock)


def make_radio(config: LinkConfig) -> Radio:
    if config.transport == "sim":
        return SimRadio(config)
    if config.transport == "serial":
        return SerialRadio(config)
    return BluezRadio(config)
