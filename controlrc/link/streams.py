"""Connection handles wrapping the byte-stream transports."""
from __future__ import annotations

import select
import socket
from typing import BinaryIO, Optional

import serial


class StreamHandle:
    """An open connection to the peer and the source of its output sink."""

    @property
    def is_connected(self) -> bool:
        raise NotImplementedError

    def output_stream(self) -> BinaryIO:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class SocketHandle(StreamHandle):
    """RFCOMM or TCP socket already connected to the peer."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self._closed = False

    @property
    def is_connected(self) -> bool:
        """False once closed locally or once the peer has hung up.

        The peer never sends data, so a readable socket whose peek returns
        no bytes means end-of-stream.
        """
        if self._closed or self.sock.fileno() == -1:
            return False
        try:
            readable, _, _ = select.select([self.sock], [], [], 0)
            if readable and self.sock.recv(1, socket.MSG_PEEK) == b"":
                return False
        except (OSError, ValueError):
            return False
        return True

    def output_stream(self) -> BinaryIO:
        return self.sock.makefile("wb")

    def close(self) -> None:
        self._closed = True
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # already reset by the peer
        self.sock.close()


class SerialHandle(StreamHandle):
    """pyserial port, typically an ``rfcomm bind``-ed tty.

    The port is its own output sink; closing the sink closes the port.
    """

    def __init__(self, port: serial.Serial) -> None:
        self.port = port

    @property
    def is_connected(self) -> bool:
        return bool(self.port.is_open)

    def output_stream(self) -> BinaryIO:
        return self.port  # type: ignore[return-value]

    def close(self) -> None:
        self.port.close()


def open_serial(device: str, baud: int, write_timeout: float, timeout: Optional[float] = 0.2) -> SerialHandle:
    port = serial.Serial(
        port=device,
        baudrate=baud,
        timeout=timeout,
        write_timeout=write_timeout,
    )
    return SerialHandle(port)
