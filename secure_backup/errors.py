"""
Error taxonomy for the secure backup client.

Each kind maps to one failure policy:

  TransportError    — connect/send/receive failed; never retried.
  ProtocolViolation — unexpected response code for the current state.
  CryptoError       — key generation, decryption or encryption failed.
  IntegrityMismatch — checksum mismatch; drives the bounded resend loop.
  RetryExhausted    — resend bound reached without a verified checksum.
  StorageError      — transfer.info / me.info missing or malformed.
"""

from __future__ import annotations

from typing import Optional


class BackupClientError(Exception):
    """Base class for every error raised by this package."""


class TransportError(BackupClientError):
    pass


class TransportTimeout(TransportError):
    """A single send or receive exceeded the configured socket timeout."""


class IncompleteFrame(TransportError):
    """Fewer bytes were available than a frame header declared."""

    def __init__(self, expected: int, received: int):
        super().__init__(f"incomplete frame: expected {expected} bytes, got {received}")
        self.expected = expected
        self.received = received


class ProtocolViolation(BackupClientError):
    def __init__(
        self,
        message: str,
        state: Optional[str] = None,
        received: Optional[int] = None,
        expected: Optional[int] = None,
    ):
        super().__init__(message)
        self.state = state
        self.received = received
        self.expected = expected

    def __str__(self) -> str:
        details = []
        if self.state is not None:
            details.append(f"state={self.state}")
        if self.received is not None:
            details.append(f"received={self.received}")
        if self.expected is not None:
            details.append(f"expected={self.expected}")
        if not details:
            return self.args[0]
        return f"{self.args[0]} ({', '.join(details)})"


class ServerRejected(ProtocolViolation):
    """The server explicitly refused the request (e.g. REGISTRATION_FAILED)."""


class CryptoError(BackupClientError):
    pass


class IntegrityMismatch(BackupClientError):
    def __init__(self, local_crc: int, server_crc: int):
        super().__init__(f"checksum mismatch: local {local_crc}, server {server_crc}")
        self.local_crc = local_crc
        self.server_crc = server_crc


class RetryExhausted(BackupClientError):
    def __init__(self, attempts: int):
        super().__init__(f"file not verified after {attempts} attempts")
        self.attempts = attempts


class StorageError(BackupClientError):
    pass
