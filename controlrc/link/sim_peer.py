"""TCP-based stand-in for the remote device, for testing without a radio.

Records every command byte received. No acknowledgement is sent back; the
real peer does not send one either.
"""
from __future__ import annotations

import argparse
import socket
import threading
from typing import List, Optional, Tuple

from controlrc.core.logging_setup import get_logger

HOST = "127.0.0.1"
PORT = 33333

logger = get_logger("link.sim_peer")


class SimulatedPeer:
    def __init__(self, host: str = HOST, port: int = PORT) -> None:
        self.host = host
        self.port = port
        self.received = bytearray()
        self._lock = threading.Lock()
        self._server: Optional[socket.socket] = None
        self._clients: List[socket.socket] = []
        self._thread: Optional[threading.Thread] = None
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        if self._server is None:
            return self.host, self.port
        return self._server.getsockname()[:2]

    def start(self) -> "SimulatedPeer":
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind((self.host, self.port))
        server.listen()
        self._server = server
        self._running = True
        self._thread = threading.Thread(target=self._accept_loop, daemon=True, name="sim-peer")
        self._thread.start()
        logger.info("[sim_peer] listening on %s:%d", *self.address)
        return self

    def _accept_loop(self) -> None:
        while self._running:
            try:
                conn, addr = self._server.accept()
            except OSError:
                break  # server socket closed
            with self._lock:
                self._clients.append(conn)
            threading.Thread(target=self._handle_client, args=(conn, addr), daemon=True).start()

    def _handle_client(self, conn: socket.socket, addr) -> None:
        logger.info("[sim_peer] client: %s", addr)
        with conn:
            while True:
                try:
                    data = conn.recv(512)
                except OSError:
                    break
                if not data:
                    break
                logger.info("[sim_peer] recv: %r", data)
                with self._lock:
                    self.received.extend(data)
        with self._lock:
            if conn in self._clients:
                self._clients.remove(conn)

    def drop_clients(self) -> None:
        """Force-close every client connection from the peer side."""
        with self._lock:
            clients, self._clients = self._clients, []
        for conn in clients:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            conn.close()

    def stop(self) -> None:
        self._running = False
        self.drop_clients()
        if self._server is not None:
            self._server.close()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=1.0)

    def __enter__(self) -> "SimulatedPeer":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulated ESP32 peer over TCP")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    args = parser.parse_args()

    peer = SimulatedPeer(args.host, args.port).start()
    print(f"[sim_peer] listening on {args.host}:{args.port}")
    try:
        peer._thread.join()
    except KeyboardInterrupt:
        pass
    finally:
        peer.stop()


if __name__ == "__main__":
    main()
