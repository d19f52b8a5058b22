"""
Cryptographic primitives used by the session.

  RSA-1024      — client key pair; the public half (DER SubjectPublicKeyInfo)
                  is sent to the server, which encrypts the AES key with it.
  RSA-OAEP      — SHA-1 / MGF1-SHA-1 decryption of the session AES key.
  AES-128-CBC   — file encryption, PKCS7 padded, random IV prefixed to the
                  ciphertext.
  base64        — textual form of the private key in me.info / priv.key.

All failures surface as ``CryptoError``.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .constants import AES_BLOCK_SIZE, AES_KEY_SIZE, RSA_KEY_BITS
from .errors import CryptoError

OAEP_PADDING = asym_padding.OAEP(
    mgf=asym_padding.MGF1(algorithm=hashes.SHA1()),
    algorithm=hashes.SHA1(),
    label=None,
)


# ---------------------------------------------------------------------------
# RSA
# ---------------------------------------------------------------------------
def generate_key_pair(bits: int = RSA_KEY_BITS) -> tuple[bytes, bytes]:
    """Return ``(public_der, private_der)`` for a fresh RSA key pair."""
    try:
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    except ValueError as e:
        raise CryptoError(f"RSA key generation failed: {e}") from e
    public_der = private_key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    private_der = private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return public_der, private_der


def load_private_key(private_der: bytes) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_der_private_key(private_der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CryptoError(f"malformed private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptoError("private key is not an RSA key")
    return key


def decrypt_asymmetric(ciphertext: bytes, private_der: bytes) -> bytes:
    try:
        return load_private_key(private_der).decrypt(ciphertext, OAEP_PADDING)
    except ValueError as e:
        raise CryptoError(f"RSA decryption failed: {e}") from e


# ---------------------------------------------------------------------------
# AES
# ---------------------------------------------------------------------------
def _check_aes_key(key: bytes) -> None:
    if len(key) != AES_KEY_SIZE:
        raise CryptoError(f"AES key length must be {AES_KEY_SIZE} bytes, got {len(key)}")


def encrypt_symmetric(plaintext: bytes, key: bytes) -> bytes:
    """AES-CBC encrypt *plaintext*; the 16-byte random IV leads the result."""
    _check_aes_key(key)
    iv = os.urandom(AES_BLOCK_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return iv + encryptor.update(padded) + encryptor.finalize()


# ---------------------------------------------------------------------------
# base64
# ---------------------------------------------------------------------------
def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(text: str) -> bytes:
    try:
        return base64.b64decode("".join(text.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError(f"invalid base64 data: {e}") from e
