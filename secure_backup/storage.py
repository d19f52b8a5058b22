"""
Persistent configuration and identity for the backup client.

transfer.info   line 1: host:port
                line 2: client name
                line 3: path of the file to back up
me.info         line 1: client name
                line 2: client id, 32 hex characters
                line 3+: base64 RSA private key (DER)
priv.key        base64 RSA private key (DER)
"""

from __future__ import annotations

import binascii
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

from .constants import (
    CLIENT_ID_SIZE,
    ME_INFO_FILENAME,
    PRIVATE_KEY_FILENAME,
    TRANSFER_INFO_FILENAME,
)
from .crypto import decode_base64
from .errors import CryptoError, StorageError


@dataclass(frozen=True)
class TransferInfo:
    server_address: str
    port: int
    client_name: str
    file_path: str


@dataclass(frozen=True)
class Identity:
    client_name: str
    client_id: bytes
    private_key_b64: str

    @property
    def private_key(self) -> bytes:
        return decode_base64(self.private_key_b64)


def parse_address(text: str) -> tuple[str, int]:
    host, sep, port_str = text.strip().rpartition(":")
    if not sep or not host:
        raise StorageError(f"expected host:port, got {text.strip()!r}")
    try:
        port = int(port_str)
    except ValueError:
        raise StorageError(f"invalid port {port_str!r}") from None
    if not 0 < port < 65536:
        raise StorageError(f"port out of range: {port}")
    return host, port


class Storage:
    """Reads and writes the client's info files inside *base_dir*."""

    def __init__(self, base_dir: str = "."):
        self.base_dir = base_dir

    def path(self, filename: str) -> str:
        return os.path.join(self.base_dir, filename)

    def _read_lines(self, filename: str) -> list[str]:
        path = self.path(filename)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return [line.rstrip("\r\n") for line in f]
        except OSError as e:
            raise StorageError(f"unable to open {path}: {e}") from e

    def read_transfer_info(self) -> TransferInfo:
        lines = self._read_lines(TRANSFER_INFO_FILENAME)
        if len(lines) < 3:
            raise StorageError(
                f"{TRANSFER_INFO_FILENAME} needs 3 lines (host:port, name, file path), got {len(lines)}")
        host, port = parse_address(lines[0])
        name = lines[1].strip()
        file_path = lines[2].strip()
        if not name:
            raise StorageError(f"{TRANSFER_INFO_FILENAME}: client name is empty")
        if not file_path:
            raise StorageError(f"{TRANSFER_INFO_FILENAME}: file path is empty")
        if not os.path.isabs(file_path):
            file_path = self.path(file_path)
        return TransferInfo(host, port, name, file_path)

    def has_identity(self) -> bool:
        return os.path.isfile(self.path(ME_INFO_FILENAME))

    def read_identity(self) -> Optional[Identity]:
        """Return the persisted identity, or ``None`` if this client never registered."""
        if not self.has_identity():
            return None
        lines = self._read_lines(ME_INFO_FILENAME)
        if len(lines) < 3:
            raise StorageError(f"{ME_INFO_FILENAME} needs 3 lines (name, id, key), got {len(lines)}")
        name = lines[0].strip()
        try:
            client_id = binascii.unhexlify(lines[1].strip())
        except (binascii.Error, ValueError) as e:
            raise StorageError(f"{ME_INFO_FILENAME}: client id is not hex: {e}") from e
        if len(client_id) != CLIENT_ID_SIZE:
            raise StorageError(
                f"{ME_INFO_FILENAME}: client id must be {CLIENT_ID_SIZE} bytes, got {len(client_id)}")
        private_key_b64 = "".join(line.strip() for line in lines[2:])
        if not private_key_b64:
            raise StorageError(f"{ME_INFO_FILENAME}: private key is empty")
        try:
            decode_base64(private_key_b64)
        except CryptoError as e:
            raise StorageError(f"{ME_INFO_FILENAME}: {e}") from e
        return Identity(name, client_id, private_key_b64)

    def write_identity(self, identity: Identity) -> None:
        content = "\n".join([
            identity.client_name,
            identity.client_id.hex(),
            identity.private_key_b64,
        ]) + "\n"
        self._write(ME_INFO_FILENAME, content)

    def write_private_key(self, private_key_b64: str) -> None:
        self._write(PRIVATE_KEY_FILENAME, private_key_b64 + "\n")

    def _write(self, filename: str, content: str) -> None:
        """Replace *filename* atomically: a crash leaves the old file or the new one."""
        path = self.path(filename)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{filename}.", dir=self.base_dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"unable to write {path}: {e}") from e

    @staticmethod
    def read_file_bytes(path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"unable to read {path}: {e}") from e
