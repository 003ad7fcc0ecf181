"""Cryptographic primitives for session commitments."""

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from skill_ledger.errors import DecryptionError, EncryptionError

KEY_SIZE_BYTES = 32
NONCE_SIZE_BYTES = 12
TAG_SIZE_BYTES = 16


def generate_key() -> bytes:
    """Return a fresh 256-bit AES key from the OS CSPRNG."""
    return AESGCM.generate_key(bit_length=KEY_SIZE_BYTES * 8)


def generate_nonce() -> bytes:
    """Return a fresh 96-bit GCM nonce from the OS CSPRNG."""
    return os.urandom(NONCE_SIZE_BYTES)


def encrypt(
    plaintext: bytes,
    key: bytes,
    iv: bytes,
    associated_data: bytes | None = None,
) -> bytes:
    """Encrypt with AES-256-GCM and return ciphertext followed by the tag."""
    _check_nonce(iv, EncryptionError)
    try:
        return AESGCM(key).encrypt(iv, plaintext, associated_data)
    except (ValueError, OverflowError, TypeError) as exc:
        raise EncryptionError(f"AES-GCM encryption failed: {exc}") from exc


def decrypt(
    ciphertext: bytes,
    key: bytes,
    iv: bytes,
    associated_data: bytes | None = None,
) -> bytes:
    """Decrypt ciphertext+tag, failing if authentication does not verify."""
    _check_nonce(iv, DecryptionError)
    if len(ciphertext) < TAG_SIZE_BYTES:
        raise DecryptionError("Ciphertext is shorter than the authentication tag")
    try:
        return AESGCM(key).decrypt(iv, ciphertext, associated_data)
    except InvalidTag as exc:
        raise DecryptionError("Authentication tag did not verify") from exc
    except (ValueError, TypeError) as exc:
        raise DecryptionError(f"AES-GCM decryption failed: {exc}") from exc


def hash_bytes(data: bytes) -> bytes:
    """Return the SHA-256 digest of data."""
    return hashlib.sha256(data).digest()


def hash_hex(data: bytes) -> str:
    """Return the SHA-256 digest of data as lowercase hex."""
    return hashlib.sha256(data).hexdigest()


def _check_nonce(iv: bytes, error: type[Exception]) -> None:
    if len(iv) != NONCE_SIZE_BYTES:
        raise error(f"Nonce must be {NONCE_SIZE_BYTES} bytes, got {len(iv)}")
