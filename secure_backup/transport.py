"""
Blocking TCP transport to a single backup server.

One ``TcpTransport`` owns one stream socket. It never retries: connect
failures are reported as ``False``, send/receive failures as
``TransportError`` (``TransportTimeout`` when the per-call timeout
elapses). Retry policy belongs to the session.
"""

from __future__ import annotations

import contextlib
import logging
import socket
from typing import Iterator, Optional

from .constants import SOCKET_TIMEOUT
from .errors import TransportError, TransportTimeout

logger = logging.getLogger(__name__)


class TcpTransport:
    def __init__(self, host: str, port: int, timeout: Optional[float] = SOCKET_TIMEOUT):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sock: Optional[socket.socket] = None

    @property
    def connected(self) -> bool:
        return self.sock is not None

    def connect(self) -> bool:
        """Resolve and connect; log and return ``False`` on any socket failure."""
        try:
            self.sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            logger.error("failed to connect to %s:%s (%s)", self.host, self.port, e)
            self.sock = None
            return False
        self.sock.settimeout(self.timeout)
        logger.info("connected to %s:%s", self.host, self.port)
        return True

    def send_all(self, data: bytes) -> None:
        sock = self._require_socket()
        try:
            sock.sendall(data)
        except socket.timeout as e:
            raise TransportTimeout(f"send of {len(data)} bytes timed out") from e
        except OSError as e:
            raise TransportError(f"send of {len(data)} bytes failed: {e}") from e

    def recv_exact(self, n: int) -> bytes:
        """Read exactly *n* bytes or raise on premature close."""
        sock = self._require_socket()
        buf = bytearray()
        while len(buf) < n:
            try:
                chunk = sock.recv(n - len(buf))
            except socket.timeout as e:
                raise TransportTimeout(
                    f"receive timed out after {len(buf)} of {n} bytes") from e
            except OSError as e:
                raise TransportError(f"receive failed: {e}") from e
            if not chunk:
                raise TransportError(
                    f"connection closed while reading data ({len(buf)} of {n} bytes)")
            buf.extend(chunk)
        return bytes(buf)

    @contextlib.contextmanager
    def timeout_at_most(self, seconds: float) -> Iterator[None]:
        """Cap the socket timeout at *seconds* for the duration of the block."""
        sock = self._require_socket()
        previous = sock.gettimeout()
        sock.settimeout(seconds if previous is None else min(previous, seconds))
        try:
            yield
        finally:
            if self.sock is sock:
                sock.settimeout(previous)

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None
            logger.debug("connection to %s:%s closed", self.host, self.port)

    def _require_socket(self) -> socket.socket:
        if self.sock is None:
            raise TransportError("transport is not connected")
        return self.sock

    def __enter__(self) -> "TcpTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
