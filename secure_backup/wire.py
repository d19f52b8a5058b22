"""
Binary framing for the backup protocol.

Request frame (client -> server):
    client_id[16] | version(1) | code(2) | payload_size(4) | payload
Response frame (server -> client):
    version(1) | code(2) | payload_size(4) | payload

Multi-byte fields are big-endian. Frames are built from and parsed into
owned ``bytes`` buffers with explicit bounds checks; a response is either
complete or an ``IncompleteFrame`` error, never partially populated.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .constants import (
    CLIENT_ID_SIZE,
    FILE_NAME_FIELD_SIZE,
    REQUEST_HEADER_FORMAT,
    RESPONSE_HEADER_FORMAT,
)
from .errors import IncompleteFrame

REQUEST_HEADER_SIZE = struct.calcsize(REQUEST_HEADER_FORMAT)
RESPONSE_HEADER_SIZE = struct.calcsize(RESPONSE_HEADER_FORMAT)

# Response version bytes are shifted into the ASCII digit range ('3' for 3),
# requests carry the raw integer.
VERSION_ASCII_OFFSET = ord("0")


@dataclass(frozen=True, slots=True)
class Request:
    client_id: bytes
    version: int
    code: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        if len(self.client_id) != CLIENT_ID_SIZE:
            raise ValueError(f"client id must be {CLIENT_ID_SIZE} bytes, got {len(self.client_id)}")
        if not 0 <= self.version <= 0xFF:
            raise ValueError(f"version does not fit in one byte: {self.version}")

    @property
    def payload_size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True, slots=True)
class Response:
    version: str
    code: int
    payload_size: int
    payload: bytes = b""


def encode_request(request: Request) -> bytes:
    header = struct.pack(
        REQUEST_HEADER_FORMAT,
        request.client_id,
        request.version,
        request.code,
        request.payload_size,
    )
    return header + request.payload


def parse_response_header(header: bytes) -> tuple[str, int, int]:
    """Return ``(version, code, payload_size)`` from a 7-byte response header."""
    if len(header) != RESPONSE_HEADER_SIZE:
        raise IncompleteFrame(RESPONSE_HEADER_SIZE, len(header))
    raw_version, code, payload_size = struct.unpack(RESPONSE_HEADER_FORMAT, header)
    version = chr((raw_version + VERSION_ASCII_OFFSET) & 0xFF)
    return version, code, payload_size


def decode_response(header: bytes, payload: bytes) -> Response:
    version, code, payload_size = parse_response_header(header)
    if len(payload) != payload_size:
        raise IncompleteFrame(payload_size, len(payload))
    return Response(version, code, payload_size, bytes(payload))


def receive_response(transport) -> Response:
    """
    Read one response frame from *transport*.

    The header and the payload are two separate exact reads; a short read
    on either surfaces as a ``TransportError`` from the transport.
    """
    header = transport.recv_exact(RESPONSE_HEADER_SIZE)
    _, _, payload_size = parse_response_header(header)
    payload = transport.recv_exact(payload_size) if payload_size else b""
    return decode_response(header, payload)


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------
def fixed_field(text: str, size: int) -> bytes:
    """UTF-8 encode *text* into a null-padded field, keeping one terminator byte."""
    data = text.encode("utf-8")[:size - 1]
    return data.ljust(size, b"\0")


def file_transfer_payload(file_name: str, ciphertext: bytes) -> bytes:
    """``content_length(4) | file_name(255) | ciphertext``"""
    return (
        struct.pack("!I", len(ciphertext))
        + fixed_field(file_name, FILE_NAME_FIELD_SIZE)
        + ciphertext
    )

