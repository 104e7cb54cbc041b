"""Presentation-facing session state."""
from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict

from controlrc.link.controller import MSG_DISCONNECTED
from controlrc.link.events import ConnectionState, LinkEvent


@dataclass(frozen=True, slots=True)
class SessionView:
    connected: bool = False
    message: str = MSG_DISCONNECTED
    connecting: bool = False
    light_on: bool = False

    @property
    def state(self) -> ConnectionState:
        if self.connecting:
            return ConnectionState.CONNECTING
        if self.connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    def with_event(self, event: LinkEvent) -> "SessionView":
        # A link event always ends any connect attempt in progress.
        return replace(self, connected=event.connected, message=event.message, connecting=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data
