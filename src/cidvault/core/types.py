"""Shared types and exceptions for cidvault.

This module defines the error taxonomy used by the codec, the cipher,
the stores and both pipelines.
"""

from __future__ import annotations

# Content addresses are plain strings (IPFS CIDv0, "Qm..." base58btc).
ContentAddress = str


class CidVaultError(Exception):
    """Base exception for all cidvault errors."""


class InvalidConfiguration(CidVaultError, ValueError):
    """A configuration value is unusable (chunk size, key, paths...)."""


class InvalidKey(InvalidConfiguration):
    """Encryption key has the wrong length."""


class CorruptCiphertext(CidVaultError):
    """Ciphertext is too short or otherwise cannot be decrypted."""


class DecodingError(CidVaultError):
    """Decrypted payload failed its inner base64 decoding step."""


class MalformedLocator(CidVaultError):
    """Locator token cannot be split into address and routing payload."""


class UploadFailed(CidVaultError):
    """Upload pipeline aborted.

    Attributes:
        key: Object key being written when the pipeline aborted.
        chunk_index: Index of the failing chunk (None for the manifest).
        attempts: Number of attempts made for the failing object.
    """

    def __init__(
        self,
        message: str,
        key: str | None = None,
        chunk_index: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.chunk_index = chunk_index
        self.attempts = attempts


class DownloadFailed(CidVaultError):
    """Download pipeline aborted.

    The partially written output is discarded; callers must restart
    the whole download.

    Attributes:
        key: Object key being read when the pipeline aborted.
        chunk_index: Index of the failing chunk (None for the manifest).
    """

    def __init__(
        self,
        message: str,
        key: str | None = None,
        chunk_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.chunk_index = chunk_index
