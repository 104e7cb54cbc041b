"""Failure taxonomy for the serial command link."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LinkFailure(Enum):
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    DISABLED = "disabled"
    PEER_NOT_FOUND = "peer_not_found"
    IO_FAILURE = "io_failure"


@dataclass(frozen=True, slots=True)
class ConnectResult:
    """Outcome of a connect attempt. Returned, never raised."""

    message: str
    failure: Optional[LinkFailure] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


class LinkError(Exception):
    """Base exception for link-layer errors."""


class RadioCommandError(LinkError):
    """Raised when a radio management command cannot be run."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"{command}: {reason}")
