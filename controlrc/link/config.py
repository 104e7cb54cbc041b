"""Typed settings for the serial command link."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_PEER_NAME = "ESP32-AUTO"
# Serial Port Profile service class; unmodified peer firmware listens on it.
SPP_UUID = uuid.UUID("00001101-0000-1000-8000-00805F9B34FB")

TRANSPORTS = ("rfcomm", "serial", "sim")


@dataclass(slots=True)
class LinkConfig:
    target_peer_name: str = DEFAULT_PEER_NAME
    service_uuid: uuid.UUID = SPP_UUID
    transport: str = "rfcomm"
    rfcomm_channel: int = 1
    serial_device: str = "/dev/rfcomm0"
    baud_rate: int = 115200
    connect_timeout_s: float = 10.0
    write_timeout_s: float = 1.0
    permission_model: str = "capabilities"
    granted: Optional[List[str]] = None  # None = ask the host
    sim_host: str = "127.0.0.1"
    sim_port: int = 33333
    sim_bonded: List[str] = field(default_factory=lambda: [DEFAULT_PEER_NAME])

    def __post_init__(self) -> None:
        self.target_peer_name = str(self.target_peer_name).strip()
        if not self.target_peer_name:
            raise ValueError("link.target_peer_name must not be empty")
        if not isinstance(self.service_uuid, uuid.UUID):
            self.service_uuid = uuid.UUID(str(self.service_uuid))
        if self.transport not in TRANSPORTS:
            raise ValueError(f"Unknown link transport {self.transport!r}; expected one of {TRANSPORTS}")
        if self.connect_timeout_s <= 0 or self.write_timeout_s <= 0:
            raise ValueError("link timeouts must be positive")
        if self.permission_model not in ("capabilities", "location"):
            raise ValueError(f"Unknown permission model {self.permission_model!r}")

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "LinkConfig":
        raw = raw or {}
        granted = raw.get("granted")
        return cls(
            target_peer_name=raw.get("target_peer_name", DEFAULT_PEER_NAME),
            service_uuid=raw.get("service_uuid", str(SPP_UUID)),
            transport=str(raw.get("transport", "rfcomm")).lower(),
            rfcomm_channel=int(raw.get("rfcomm_channel", 1)),
            serial_device=str(raw.get("serial_device", "/dev/rfcomm0")),
            baud_rate=int(raw.get("baud_rate", 115200)),
            connect_timeout_s=float(raw.get("connect_timeout_s", 10.0)),
            write_timeout_s=float(raw.get("write_timeout_s", 1.0)),
            permission_model=str(raw.get("permission_model", "capabilities")).lower(),
            granted=[str(g).lower() for g in granted] if granted is not None else None,
            sim_host=str(raw.get("sim_host", "127.0.0.1")),
            sim_port=int(raw.get("sim_port", 33333)),
            sim_bonded=list(raw.get("sim_bonded", [DEFAULT_PEER_NAME])),
        )
