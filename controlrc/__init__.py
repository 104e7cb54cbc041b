"""Handheld remote control for a Bluetooth serial robot platform."""

__version__ = "0.1.0"
