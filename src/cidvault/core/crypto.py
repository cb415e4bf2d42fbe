"""Symmetric encryption for cidvault.

This module provides:
- AES encryption in CFB mode with a random IV prefix
- A base64 inner encoding so that decryption under a wrong key is detected
- Key normalisation for keys read from JSON configuration
"""

import base64
import binascii
import os

from cryptography.hazmat.decrepit.ciphers.modes import CFB
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

from cidvault.core.types import CorruptCiphertext, DecodingError, InvalidKey

# AES constants
IV_SIZE = 16  # AES block size
KEY_SIZES = (16, 24, 32)  # AES-128, AES-192, AES-256


def as_key(value: str | bytes) -> bytes:
    """Normalise a key read from configuration into raw bytes.

    Args:
        value: Key as bytes, or as a text string (encoded as UTF-8).

    Returns:
        Raw key bytes.

    Raises:
        InvalidKey: If the key length is not a valid AES key size.
    """
    key = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    validate_key(key)
    return key


def validate_key(key: bytes) -> None:
    """Raise InvalidKey unless key is 16, 24 or 32 bytes long."""
    if len(key) not in KEY_SIZES:
        raise InvalidKey(
            f"Key must be 16, 24 or 32 bytes long, got {len(key)} bytes"
        )


def generate_key(size: int = 32) -> bytes:
    """Generate a random AES key.

    Returns:
        `size` bytes of random data (default 32, AES-256).
    """
    if size not in KEY_SIZES:
        raise InvalidKey(f"Unsupported key size: {size}")
    return os.urandom(size)


def encrypt(key: bytes, plaintext: bytes) -> bytes:
    """Encrypt data under key with a fresh random IV.

    The plaintext is base64-encoded before encryption.

    Args:
        key: 16, 24 or 32-byte AES key.
        plaintext: Data to encrypt.

    Returns:
        Encrypted data in format: iv (16 bytes) || AES-CFB(base64(plaintext))

    Raises:
        InvalidKey: If the key length is invalid.
    """
    validate_key(key)
    iv = os.urandom(IV_SIZE)
    encryptor = Cipher(algorithms.AES(key), CFB(iv)).encryptor()
    encoded = base64.b64encode(plaintext)
    return iv + encryptor.update(encoded) + encryptor.finalize()


def decrypt(key: bytes, ciphertext: bytes) -> bytes:
    """Decrypt data produced by encrypt().

    Args:
        key: The key used for encryption.
        ciphertext: Data in format: iv (16 bytes) || AES-CFB(base64(plaintext))

    Returns:
        Decrypted plaintext data.

    Raises:
        InvalidKey: If the key length is invalid.
        CorruptCiphertext: If the input is shorter than the IV.
        DecodingError: If the decrypted payload is not valid base64
            (usually a wrong key or tampered data).
    """
    validate_key(key)
    if len(ciphertext) < IV_SIZE:
        raise CorruptCiphertext(
            f"Ciphertext too short: {len(ciphertext)} bytes, need at least {IV_SIZE}"
        )
    iv = ciphertext[:IV_SIZE]
    decryptor = Cipher(algorithms.AES(key), CFB(iv)).decryptor()
    encoded = decryptor.update(ciphertext[IV_SIZE:]) + decryptor.finalize()
    try:
        return base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise DecodingError(f"Decrypted payload is not valid base64: {e}") from e
