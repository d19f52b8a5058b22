"""
Session state machine for one backup run.

Flow phases:
  Connect        — open the transport; no retry.
  Registration   — REGISTRATION with a zero client id; the server assigns
                   the 16-byte id.
  Reconnection   — RECONNECT with the persisted id; a rejection falls back
                   to Registration once, an approval carries the AES key.
  Key Exchange   — fresh RSA pair, persisted before the public key is sent;
                   the server answers with the RSA-encrypted AES key.
  File Transfer  — AES-encrypt the file, send it, and confirm the server's
                   checksum. Up to ``max_attempts`` sends; a mismatch asks
                   the server to expect a resend, exhaustion tells it to
                   give up.

The session owns the transport and closes it on exit (use ``with``).
Public ``run_*`` methods return ``True`` only for a verified transfer;
transport, protocol, crypto and retry failures are logged with the state
they occurred in and reported as ``False``. Storage faults propagate to
the caller.
"""

from __future__ import annotations

import enum
import os
import struct
from dataclasses import dataclass
from typing import Callable, Optional

from . import checksum, crypto
from .constants import (
    CLIENT_ID_SIZE,
    CLIENT_VERSION,
    CRC_FIELD_SIZE,
    FILE_NAME_FIELD_SIZE,
    MAX_SEND_ATTEMPTS,
    NAME_FIELD_SIZE,
    RECEIPT_TIMEOUT,
    ZERO_CLIENT_ID,
    RequestCode,
    ResponseCode,
)
from .errors import (
    CryptoError,
    IntegrityMismatch,
    ProtocolViolation,
    RetryExhausted,
    ServerRejected,
    TransportError,
)
from .logs import get_logger
from .storage import Identity, Storage, TransferInfo
from .wire import Request, Response, encode_request, file_transfer_payload, fixed_field, receive_response

logger = get_logger(__name__)

KNOWN_RESPONSE_CODES = frozenset(int(code) for code in ResponseCode)
REJECTION_CODES = frozenset({ResponseCode.REGISTRATION_FAILED, ResponseCode.RECONNECT_REJECTED})


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    REGISTERING = "registering"
    RECONNECTING = "reconnecting"
    KEY_EXCHANGE_PENDING = "key-exchange-pending"
    FILE_TRANSFERRING = "file-transferring"
    VERIFIED = "verified"
    EXHAUSTED = "exhausted"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class SessionConfig:
    version: int = CLIENT_VERSION
    max_attempts: int = MAX_SEND_ATTEMPTS
    name_field_size: int = NAME_FIELD_SIZE


def describe_code(code: int) -> str:
    try:
        return f"{code} ({ResponseCode(code).name})"
    except ValueError:
        return f"{code} (unknown)"


class Session:
    def __init__(
        self,
        transport,
        transfer_info: TransferInfo,
        storage: Storage,
        config: Optional[SessionConfig] = None,
        crypto_provider=crypto,
        checksum_of_file: Callable[[str], int] = checksum.checksum_of_file,
    ):
        self.transport = transport
        self.transfer_info = transfer_info
        self.storage = storage
        self.config = config or SessionConfig()
        self.crypto = crypto_provider
        self.checksum_of_file = checksum_of_file

        self.state = SessionState.DISCONNECTED
        self.client_id = ZERO_CLIENT_ID
        self.private_key: Optional[bytes] = None

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    @property
    def file_name(self) -> str:
        return os.path.basename(self.transfer_info.file_path)

    def _set_state(self, state: SessionState) -> None:
        logger.debug("state %s -> %s", self.state.value, state.value)
        self.state = state

    # -----------------------------------------------------------------------
    # Public flows
    # -----------------------------------------------------------------------
    def connect(self) -> bool:
        if not self.transport.connect():
            logger.error("unable to reach %s:%s, giving up",
                         self.transfer_info.server_address, self.transfer_info.port)
            self._set_state(SessionState.FAILURE)
            return False
        self._set_state(SessionState.CONNECTED)
        return True

    def run_registration(self) -> bool:
        return self._run(self._registration_flow)

    def run_reconnection(self, identity: Identity) -> bool:
        return self._run(self._reconnection_flow, identity)

    def _run(self, flow, *args) -> bool:
        try:
            flow(*args)
        except RetryExhausted as e:
            logger.error("transfer failed in state %s: %s", self.state.value, e)
        except ProtocolViolation as e:
            logger.server_error(str(e))
        except TransportError as e:
            logger.error("transport failure in state %s: %s", self.state.value, e)
        except CryptoError as e:
            logger.error("crypto failure in state %s: %s", self.state.value, e)
        else:
            self._set_state(SessionState.SUCCESS)
            return True
        self._set_state(SessionState.FAILURE)
        return False

    def _registration_flow(self) -> None:
        self._register()
        encrypted_key = self._exchange_keys()
        aes_key = self._decrypt_aes_key(encrypted_key)
        self._transfer_file(aes_key)

    def _reconnection_flow(self, identity: Identity) -> None:
        encrypted_key = self._reconnect(identity)
        if encrypted_key is None:
            logger.warning("reconnection rejected, registering %r as a new client",
                           self.transfer_info.client_name)
            self._registration_flow()
            return
        aes_key = self._decrypt_aes_key(encrypted_key)
        self._transfer_file(aes_key)

    # -----------------------------------------------------------------------
    # Request / response plumbing
    # -----------------------------------------------------------------------
    def _request(self, code: RequestCode, payload: bytes = b"") -> Request:
        return Request(self.client_id, self.config.version, int(code), payload)

    def _send(self, code: RequestCode, payload: bytes = b"") -> None:
        self.transport.send_all(encode_request(self._request(code, payload)))

    def _receive(self) -> Response:
        response = receive_response(self.transport)
        if response.code not in KNOWN_RESPONSE_CODES:
            raise ProtocolViolation(
                "unknown response code", state=self.state.value, received=response.code)
        logger.debug("received %s, %d byte payload", describe_code(response.code), response.payload_size)
        return response

    def _expect(self, response: Response, expected: ResponseCode) -> None:
        if response.code == expected:
            return
        error = ServerRejected if response.code in REJECTION_CODES else ProtocolViolation
        raise error(
            f"expected {describe_code(expected)}, got {describe_code(response.code)}",
            state=self.state.value,
            received=response.code,
            expected=int(expected),
        )

    def _name_field(self, name: str) -> bytes:
        return fixed_field(name, self.config.name_field_size)

    def _split_key_payload(self, response: Response) -> bytes:
        """``client_id(16) | encrypted AES key`` -> encrypted AES key."""
        if len(response.payload) <= CLIENT_ID_SIZE:
            raise ProtocolViolation(
                f"key payload too short ({response.payload_size} bytes)",
                state=self.state.value, received=response.code)
        echoed_id = response.payload[:CLIENT_ID_SIZE]
        if echoed_id != self.client_id:
            logger.warning("server echoed client id %s, expected %s",
                           echoed_id.hex(), self.client_id.hex())
        return response.payload[CLIENT_ID_SIZE:]

    # -----------------------------------------------------------------------
    # Phases
    # -----------------------------------------------------------------------
    def _register(self) -> None:
        self._set_state(SessionState.REGISTERING)
        name = self.transfer_info.client_name
        self.client_id = ZERO_CLIENT_ID
        logger.info("registering as %r", name)

        self._send(RequestCode.REGISTRATION, self._name_field(name))
        response = self._receive()
        self._expect(response, ResponseCode.REGISTRATION_SUCCESS)

        if len(response.payload) < CLIENT_ID_SIZE:
            raise ProtocolViolation(
                f"registration payload too short ({response.payload_size} bytes)",
                state=self.state.value, received=response.code)
        self.client_id = response.payload[:CLIENT_ID_SIZE]
        logger.info("registered, client id %s", self.client_id.hex())

    def _reconnect(self, identity: Identity) -> Optional[bytes]:
        """Return the encrypted AES key, or ``None`` if the server rejected us."""
        self._set_state(SessionState.RECONNECTING)
        self.client_id = identity.client_id
        logger.info("reconnecting as %r, client id %s", identity.client_name, identity.client_id.hex())

        self._send(RequestCode.RECONNECT, self._name_field(identity.client_name))
        response = self._receive()
        if response.code == ResponseCode.RECONNECT_REJECTED:
            logger.server_error("reconnection rejected (state=%s, received=%s)",
                                self.state.value, describe_code(response.code))
            return None
        self._expect(response, ResponseCode.APPROVE_RECONNECT_SEND_AES)

        self._set_state(SessionState.KEY_EXCHANGE_PENDING)
        self.private_key = identity.private_key
        return self._split_key_payload(response)

    def _exchange_keys(self) -> bytes:
        self._set_state(SessionState.KEY_EXCHANGE_PENDING)
        name = self.transfer_info.client_name

        public_key, private_key = self.crypto.generate_key_pair()
        self.private_key = private_key
        private_key_b64 = self.crypto.encode_base64(private_key)
        # Persist before talking to the server so a crash leaves a usable identity.
        self.storage.write_private_key(private_key_b64)
        self.storage.write_identity(Identity(name, self.client_id, private_key_b64))
        logger.info("generated RSA key pair, identity saved")

        self._send(RequestCode.SEND_PUBLIC_KEY, self._name_field(name) + public_key)
        response = self._receive()
        self._expect(response, ResponseCode.RECEIVED_PUBLIC_KEY_SEND_AES)
        return self._split_key_payload(response)

    def _decrypt_aes_key(self, encrypted_key: bytes) -> bytes:
        if self.private_key is None:
            raise CryptoError("no private key available to decrypt the AES key")
        aes_key = self.crypto.decrypt_asymmetric(encrypted_key, self.private_key)
        logger.info("AES key received (%d bytes)", len(aes_key))
        return aes_key

    def _transfer_file(self, aes_key: bytes) -> None:
        self._set_state(SessionState.FILE_TRANSFERRING)
        path = self.transfer_info.file_path

        plaintext = self.storage.read_file_bytes(path)
        ciphertext = self.crypto.encrypt_symmetric(plaintext, aes_key)
        request = self._request(RequestCode.SEND_FILE, file_transfer_payload(self.file_name, ciphertext))
        logger.info("sending %r: %d bytes, %d encrypted", self.file_name, len(plaintext), len(ciphertext))

        local_crc = self.checksum_of_file(path)
        self._send_with_crc_retry(encode_request(request), local_crc)

    def _send_with_crc_retry(self, frame: bytes, local_crc: int) -> None:
        attempts = self.config.max_attempts
        for attempt in range(1, attempts + 1):
            self.transport.send_all(frame)
            response = self._receive()

            if response.code != ResponseCode.FILE_RECEIVED_CRC_OK:
                logger.warning("attempt %d/%d: expected %s, got %s; trying again",
                               attempt, attempts,
                               describe_code(ResponseCode.FILE_RECEIVED_CRC_OK),
                               describe_code(response.code))
                continue

            try:
                self._verify_crc(response, local_crc)
            except IntegrityMismatch as e:
                logger.warning("attempt %d/%d: %s", attempt, attempts, e)
                if attempt < attempts:
                    self._send_crc_status(RequestCode.CRC_INCORRECT_RESEND)
                continue

            logger.info("checksum %d confirmed on attempt %d/%d", local_crc, attempt, attempts)
            self._set_state(SessionState.VERIFIED)
            self._send_crc_status(RequestCode.CRC_CORRECT)
            self._await_receipt()
            return

        self._set_state(SessionState.EXHAUSTED)
        self._send_crc_status(RequestCode.CRC_INCORRECT_DONE)
        self._await_receipt()
        raise RetryExhausted(attempts)

    def _verify_crc(self, response: Response, local_crc: int) -> None:
        if len(response.payload) < CRC_FIELD_SIZE:
            raise ProtocolViolation(
                f"checksum payload too short ({response.payload_size} bytes)",
                state=self.state.value, received=response.code)
        (server_crc,) = struct.unpack("!I", response.payload[-CRC_FIELD_SIZE:])
        if server_crc != local_crc:
            raise IntegrityMismatch(local_crc, server_crc)

    def _send_crc_status(self, code: RequestCode) -> None:
        logger.info("sending %s", code.name)
        self._send(code, fixed_field(self.file_name, FILE_NAME_FIELD_SIZE))

    def _await_receipt(self) -> None:
        """Read the server's CONFIRM_RECEIPT; its absence does not change the outcome."""
        try:
            with self.transport.timeout_at_most(RECEIPT_TIMEOUT):
                response = receive_response(self.transport)
        except TransportError as e:
            logger.warning("no receipt confirmation from server: %s", e)
            return
        if response.code != ResponseCode.CONFIRM_RECEIPT:
            logger.warning("expected %s, got %s",
                           describe_code(ResponseCode.CONFIRM_RECEIPT), describe_code(response.code))
