"""
CRC-32 as computed by the POSIX ``cksum`` utility.

Polynomial 0x04C11DB7, MSB first, zero initial value; the message length
is folded in (least significant byte first) and the result complemented.
This is the checksum the server reports in FILE_RECEIVED_CRC_OK.
"""

from __future__ import annotations

CHUNK_SIZE = 64 * 1024
POLYNOMIAL = 0x04C11DB7


def _build_table() -> tuple[int, ...]:
    table = []
    for i in range(256):
        crc = i << 24
        for _ in range(8):
            crc = ((crc << 1) ^ POLYNOMIAL) if crc & 0x80000000 else (crc << 1)
        table.append(crc & 0xFFFFFFFF)
    return tuple(table)


CRC_TABLE = _build_table()


class Cksum:
    """Incremental ``cksum`` accumulator: ``update()`` then ``digest()``."""

    def __init__(self) -> None:
        self._crc = 0
        self._length = 0

    def update(self, data: bytes) -> None:
        crc = self._crc
        for byte in data:
            crc = (CRC_TABLE[((crc >> 24) ^ byte) & 0xFF] ^ (crc << 8)) & 0xFFFFFFFF
        self._crc = crc
        self._length += len(data)

    def digest(self) -> int:
        crc = self._crc
        length = self._length
        while length:
            crc = (CRC_TABLE[((crc >> 24) ^ length) & 0xFF] ^ (crc << 8)) & 0xFFFFFFFF
            length >>= 8
        return ~crc & 0xFFFFFFFF


def checksum_of_bytes(data: bytes) -> int:
    acc = Cksum()
    acc.update(data)
    return acc.digest()


def checksum_of_file(path: str) -> int:
    acc = Cksum()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            acc.update(chunk)
    return acc.digest()
