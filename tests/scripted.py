"""Scripted doubles for driving the session without sockets or real RSA."""

from __future__ import annotations

import contextlib

from secure_backup import crypto
from secure_backup.errors import CryptoError, TransportError
from fake_server import decode_request, encode_response

SERVER_VERSION = 3
AES_KEY = bytes(range(16))


def reply(code, payload: bytes = b"") -> bytes:
    return encode_response(SERVER_VERSION, int(code), payload)


class ScriptedTransport:
    """Serves pre-encoded response frames and records every frame sent."""

    def __init__(self, *frames: bytes, connect_ok: bool = True):
        self.buffer = bytearray(b"".join(frames))
        self.connect_ok = connect_ok
        self.sent: list[bytes] = []
        self.timeout_caps: list[float] = []
        self.closed = False

    def connect(self) -> bool:
        return self.connect_ok

    def send_all(self, data: bytes) -> None:
        if self.closed:
            raise TransportError("transport is not connected")
        self.sent.append(bytes(data))

    def recv_exact(self, n: int) -> bytes:
        if len(self.buffer) < n:
            raise TransportError(f"connection closed while reading data ({len(self.buffer)} of {n} bytes)")
        data = bytes(self.buffer[:n])
        del self.buffer[:n]
        return data

    @contextlib.contextmanager
    def timeout_at_most(self, seconds: float):
        self.timeout_caps.append(seconds)
        yield

    def close(self) -> None:
        self.closed = True

    @property
    def requests(self):
        return [decode_request(frame) for frame in self.sent]

    @property
    def codes(self) -> list[int]:
        return [r.code for r in self.requests]


class FakeCrypto:
    """Deterministic stand-in for the RSA/AES collaborator."""

    PUBLIC_KEY = b"PUBLIC-KEY-DER"
    PRIVATE_KEY = b"PRIVATE-KEY-DER"

    encode_base64 = staticmethod(crypto.encode_base64)

    def __init__(self, aes_key: bytes = AES_KEY, fail_decrypt: bool = False):
        self.aes_key = aes_key
        self.fail_decrypt = fail_decrypt
        self.decrypted_with: list[bytes] = []

    def generate_key_pair(self):
        return self.PUBLIC_KEY, self.PRIVATE_KEY

    def decrypt_asymmetric(self, ciphertext: bytes, private_key: bytes) -> bytes:
        self.decrypted_with.append(private_key)
        if self.fail_decrypt:
            raise CryptoError("RSA decryption failed: bad ciphertext")
        return self.aes_key

    def encrypt_symmetric(self, plaintext: bytes, key: bytes) -> bytes:
        if len(key) != 16:
            raise CryptoError("AES key length must be 16 bytes")
        return b"ENC:" + plaintext
