"""
Protocol and configuration constants for the secure backup client.

Request and response codes are closed enumerations: a response code that
is not a member of ``ResponseCode`` is a protocol violation.
"""

import enum

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
TRANSFER_INFO_FILENAME = "transfer.info"
ME_INFO_FILENAME = "me.info"
PRIVATE_KEY_FILENAME = "priv.key"

SOCKET_TIMEOUT = 60                   # Per send/recv call, seconds
MAX_SEND_ATTEMPTS = 3                 # File transfer + CRC verification rounds
RECEIPT_TIMEOUT = 5                   # Cap on the optional CONFIRM_RECEIPT read, seconds

# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------
CLIENT_VERSION = 3

CLIENT_ID_SIZE = 16
NAME_FIELD_SIZE = 255                 # Null padded, 254 usable bytes
FILE_NAME_FIELD_SIZE = 255
CONTENT_SIZE_FIELD_SIZE = 4
CRC_FIELD_SIZE = 4

REQUEST_HEADER_FORMAT = "!16sBHI"     # ClientID(16) + Version(1) + Code(2) + PayloadSize(4)
RESPONSE_HEADER_FORMAT = "!BHI"       # Version(1) + Code(2) + PayloadSize(4)

RSA_KEY_BITS = 1024
AES_KEY_SIZE = 16                     # AES-128
AES_BLOCK_SIZE = 16

ZERO_CLIENT_ID = b"\0" * CLIENT_ID_SIZE


class RequestCode(enum.IntEnum):
    REGISTRATION = 1025
    SEND_PUBLIC_KEY = 1026
    RECONNECT = 1027
    SEND_FILE = 1028
    CRC_CORRECT = 1029
    CRC_INCORRECT_RESEND = 1030
    CRC_INCORRECT_DONE = 1031


class ResponseCode(enum.IntEnum):
    REGISTRATION_SUCCESS = 2100
    REGISTRATION_FAILED = 2101
    RECEIVED_PUBLIC_KEY_SEND_AES = 2102
    FILE_RECEIVED_CRC_OK = 2103
    CONFIRM_RECEIPT = 2104
    APPROVE_RECONNECT_SEND_AES = 2105
    RECONNECT_REJECTED = 2106
