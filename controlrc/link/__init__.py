"""Serial command link to the remote device.

Components:
- controller.py: LinkController owning the single connection
- radio.py: BlueZ / serial / simulated radio adapters
- permissions.py: capability checks gating discovery and connect
- sim_peer.py: TCP stand-in for the remote device
"""
from controlrc.link.config import LinkConfig
from controlrc.link.controller import LinkController
from controlrc.link.errors import ConnectResult, LinkFailure
from controlrc.link.events import AsyncEventChannel, ConnectionState, LinkEvent

__all__ = [
    "AsyncEventChannel",
    "ConnectResult",
    "ConnectionState",
    "LinkConfig",
    "LinkController",
    "LinkEvent",
    "LinkFailure",
]
