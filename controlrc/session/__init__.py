"""Session layer between operator intent and the serial command link.

Components:
- coordinator.py: SessionCoordinator owning the observable SessionView
- commands.py: single-byte command vocabulary and press/release mapping
- bridge.py: ZeroMQ bridge publishing session state
"""
from controlrc.session.commands import Command, Control, edge_command, parse_command
from controlrc.session.coordinator import SessionCoordinator
from controlrc.session.view import SessionView

__all__ = ["Command", "Control", "SessionCoordinator", "SessionView", "edge_command", "parse_command"]
