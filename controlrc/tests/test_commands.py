from __future__ import annotations

import pytest

from controlrc.session.commands import Command, Control, edge_command, parse_command


def test_every_command_is_one_ascii_byte() -> None:
    for cmd in Command:
        assert len(cmd.payload) == 1
    assert Command.LIGHT.payload == b"N"


@pytest.mark.parametrize(
    "control, pressed, expected",
    [
        (Control.FORWARD, True, "F"),
        (Control.FORWARD, False, "S"),
        (Control.BACKWARD, True, "B"),
        (Control.BACKWARD, False, "S"),
        (Control.LEFT, True, "L"),
        (Control.LEFT, False, "C"),
        (Control.RIGHT, True, "R"),
        (Control.RIGHT, False, "C"),
    ],
)
def test_edge_commands(control: Control, pressed: bool, expected: str) -> None:
    assert edge_command(control, pressed).value == expected


def test_parse_command_letters_and_aliases() -> None:
    assert parse_command("f") is Command.FORWARD
    assert parse_command(" N ") is Command.LIGHT
    assert parse_command("Stop") is Command.STOP
    assert parse_command("light") is Command.LIGHT


def test_parse_command_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        parse_command("x")
    with pytest.raises(ValueError):
        parse_command("jump")
