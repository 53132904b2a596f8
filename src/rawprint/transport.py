"""TCP transport for raw (port 9100) printing."""

from __future__ import annotations

import logging
import socket
from typing import Callable, Optional

from .base import Transport
from .errors import PrinterConnectionError

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, int, Optional[float]], Transport]


class RawSocketTransport(Transport):
    """Blocking socket connected to a printer's raw print listener."""

    def __init__(self, sock: socket.socket, host: str, port: int):
        self._socket: Optional[socket.socket] = sock
        self.host = host
        self.port = port

    @classmethod
    def connect(cls, host: str, port: int, timeout: Optional[float] = None) -> "RawSocketTransport":
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as exc:
            raise PrinterConnectionError(
                f"Cannot connect to printer {host}:{port}: {exc}"
            ) from exc
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as exc:
            sock.close()
            raise PrinterConnectionError(
                f"Cannot configure connection to printer {host}:{port}: {exc}"
            ) from exc
        logger.debug("Connected to printer %s:%s", host, port)
        return cls(sock, host, port)

    @property
    def closed(self) -> bool:
        return self._socket is None

    def write(self, data: bytes) -> None:
        if self._socket is None:
            raise PrinterConnectionError(f"Connection to {self.host}:{self.port} is closed.")
        try:
            self._socket.sendall(data)
        except OSError as exc:
            raise PrinterConnectionError(
                f"Sending to printer {self.host}:{self.port} failed: {exc}"
            ) from exc
        logger.debug("Sent %d bytes to %s:%s", len(data), self.host, self.port)

    def close(self) -> None:
        sock, self._socket = self._socket, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already went away; nothing left to flush.
            pass
        finally:
            sock.close()

    def __enter__(self) -> "RawSocketTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_socket_transport(host: str, port: int, timeout: Optional[float] = None) -> Transport:
    return RawSocketTransport.connect(host, port, timeout)
