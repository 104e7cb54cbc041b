"""Shared infrastructure: configuration, logging and ZeroMQ IPC."""
