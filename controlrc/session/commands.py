"""Single-byte command vocabulary understood by the peer firmware."""
from __future__ import annotations

from enum import Enum


class Command(Enum):
    FORWARD = "F"
    BACKWARD = "B"
    STOP = "S"          # stop longitudinal motion
    LEFT = "L"
    RIGHT = "R"
    CENTER = "C"        # stop lateral motion
    LIGHT = "N"         # toggle auxiliary light

    @property
    def payload(self) -> bytes:
        return self.value.encode("ascii")


class Control(Enum):
    """Momentary controls; each press and release edge sends one command."""

    FORWARD = "forward"
    BACKWARD = "backward"
    LEFT = "left"
    RIGHT = "right"


_PRESS = {
    Control.FORWARD: Command.FORWARD,
    Control.BACKWARD: Command.BACKWARD,
    Control.LEFT: Command.LEFT,
    Control.RIGHT: Command.RIGHT,
}
_RELEASE = {
    Control.FORWARD: Command.STOP,
    Control.BACKWARD: Command.STOP,
    Control.LEFT: Command.CENTER,
    Control.RIGHT: Command.CENTER,
}


def edge_command(control: Control, pressed: bool) -> Command:
    return _PRESS[control] if pressed else _RELEASE[control]


ALIASES = {
    "forward": Command.FORWARD,
    "backward": Command.BACKWARD,
    "back": Command.BACKWARD,
    "stop": Command.STOP,
    "left": Command.LEFT,
    "right": Command.RIGHT,
    "center": Command.CENTER,
    "centre": Command.CENTER,
    "light": Command.LIGHT,
    "neon": Command.LIGHT,
}


def parse_command(token: str) -> Command:
    """Accept a command letter (any case) or an alias like ``forward``."""
    t = token.strip()
    if len(t) == 1:
        try:
            return Command(t.upper())
        except ValueError:
            pass
    cmd = ALIASES.get(t.lower())
    if cmd is None:
        raise ValueError(f"Unknown command {token!r}")
    return cmd
