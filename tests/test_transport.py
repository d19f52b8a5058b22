from __future__ import annotations

import socket
import threading

import pytest

from secure_backup.errors import TransportError, TransportTimeout
from secure_backup.transport import TcpTransport


@pytest.fixture
def listener():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)
    srv.settimeout(5)
    yield srv
    srv.close()


def serve_once(srv, send: bytes, hold: threading.Event | None = None, read_back: bool = False):
    """Accept one connection, send *send*, then close, wait for *hold* or read until EOF."""
    received = bytearray()

    def run():
        conn, _ = srv.accept()
        with conn:
            conn.sendall(send)
            if hold is not None:
                hold.wait(5)
            elif read_back:
                conn.settimeout(5)
                try:
                    while chunk := conn.recv(1024):
                        received.extend(chunk)
                except OSError:
                    pass

    t = threading.Thread(target=run, daemon=True)
    t.start()
    return t, received


def test_connect_failure_returns_false():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()                     # nothing listens here now

    transport = TcpTransport("127.0.0.1", port, timeout=2)
    assert transport.connect() is False
    assert not transport.connected


def test_send_and_recv_exact(listener):
    t, received = serve_once(listener, b"abcdef", read_back=True)
    with TcpTransport(*listener.getsockname(), timeout=5) as transport:
        assert transport.connect()
        assert transport.recv_exact(4) == b"abcd"
        assert transport.recv_exact(2) == b"ef"
        transport.send_all(b"ping")
    t.join(5)
    assert bytes(received) == b"ping"
    assert not transport.connected


def test_short_read_is_transport_error(listener):
    t, _ = serve_once(listener, b"x" * 60)
    with TcpTransport(*listener.getsockname(), timeout=5) as transport:
        assert transport.connect()
        with pytest.raises(TransportError, match="60 of 100"):
            transport.recv_exact(100)
    t.join(5)


def test_recv_timeout_is_distinct(listener):
    hold = threading.Event()
    t, _ = serve_once(listener, b"", hold=hold)
    with TcpTransport(*listener.getsockname(), timeout=0.2) as transport:
        assert transport.connect()
        with pytest.raises(TransportTimeout):
            transport.recv_exact(1)
    hold.set()
    t.join(5)


def test_use_before_connect():
    transport = TcpTransport("127.0.0.1", 1)
    with pytest.raises(TransportError, match="not connected"):
        transport.send_all(b"x")


def test_timeout_cap_applies_only_inside_block(listener):
    hold = threading.Event()
    t, _ = serve_once(listener, b"", hold=hold)
    with TcpTransport(*listener.getsockname(), timeout=None) as transport:
        assert transport.connect()
        with pytest.raises(TransportTimeout):
            with transport.timeout_at_most(0.2):
                transport.recv_exact(1)
        assert transport.sock.gettimeout() is None
    hold.set()
    t.join(5)
