"""Content-addressed store clients.

This module provides:
- Abstract interface for a content-addressed store
- IPFSClient talking to a node through its HTTP RPC API
- LocalContentStore for offline use and testing
"""

from __future__ import annotations

import hashlib
import io
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

import base58
import httpx

from cidvault.core.codec import MULTIHASH_SHA256, is_valid_address
from cidvault.core.types import CidVaultError, ContentAddress

if TYPE_CHECKING:
    from cidvault.core.config import ContentStoreConfig

logger = logging.getLogger(__name__)

READ_BLOCK_SIZE = 64 * 1024


class ContentStoreError(CidVaultError):
    """Base exception for content store errors."""


class NodeUnreachable(ContentStoreError):
    """The content store node cannot be reached."""


class InvalidAddress(ContentStoreError):
    """A content address is malformed or unknown to the store."""


class ContentStore(ABC):
    """Abstract interface for a content-addressed store."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of the store."""

    @abstractmethod
    def address_of(self, stream: BinaryIO) -> ContentAddress:
        """Compute the content address of a stream without storing it.

        Identical bytes always yield identical addresses.
        """

    @abstractmethod
    def add(self, data: bytes) -> ContentAddress:
        """Store data and return its content address."""

    @abstractmethod
    def fetch(self, address: ContentAddress) -> bytes:
        """Retrieve the data stored under a content address.

        Raises:
            InvalidAddress: If the address is malformed or unknown.
            NodeUnreachable: If the store cannot be reached.
        """

    def address_of_bytes(self, data: bytes) -> ContentAddress:
        """Compute the content address of an in-memory buffer."""
        return self.address_of(io.BytesIO(data))

    def check_connection(self) -> str:
        """Verify the store is usable and return a version string."""
        return "local"

    def close(self) -> None:
        """Release client resources."""

    def __enter__(self) -> ContentStore:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()


class IPFSClient(ContentStore):
    """Client for the HTTP RPC API of an IPFS (Kubo) node."""

    def __init__(self, api_url: str, timeout: float = 60.0) -> None:
        """Initialize the client.

        Args:
            api_url: Base URL of the RPC API (e.g. "http://localhost:5001/api/v0").
            timeout: Request timeout in seconds.
        """
        self._api_url = api_url.rstrip("/")
        self._client = httpx.Client(base_url=self._api_url, timeout=timeout)

    @property
    def location(self) -> str:
        """Return the node API URL."""
        return f"IPFS: {self._api_url}"

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def _post(self, path: str, **kwargs: object) -> httpx.Response:
        """POST to the RPC API and map failures to store errors."""
        try:
            response = self._client.post(path, **kwargs)  # type: ignore[arg-type]
        except httpx.RequestError as e:
            raise NodeUnreachable(f"Could not reach IPFS node at {self._api_url}: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("Message", response.text)
            except ValueError:
                detail = response.text
            if response.status_code == 500 and "invalid" in detail.lower():
                raise InvalidAddress(detail)
            raise ContentStoreError(f"IPFS API error {response.status_code}: {detail}")
        return response

    @staticmethod
    def _parse_add(response: httpx.Response) -> ContentAddress:
        """Extract the hash from an /add response (newline-delimited JSON)."""
        lines = [line for line in response.text.splitlines() if line.strip()]
        if not lines:
            raise ContentStoreError("Empty response from IPFS add")
        address: str = json.loads(lines[-1])["Hash"]
        return address

    def check_connection(self) -> str:
        """Ask the node for its version.

        Raises:
            NodeUnreachable: If the daemon is not running.
        """
        response = self._post("/version")
        version: str = response.json().get("Version", "unknown")
        logger.info(f"Connected to IPFS node {self._api_url} (version {version})")
        return version

    def address_of(self, stream: BinaryIO) -> ContentAddress:
        """Hash a stream with the node without storing it."""
        response = self._post(
            "/add",
            params={"only-hash": "true", "pin": "false", "quieter": "true"},
            files={"file": ("file", stream, "application/octet-stream")},
        )
        return self._parse_add(response)

    def add(self, data: bytes) -> ContentAddress:
        """Add and pin data on the node."""
        response = self._post(
            "/add",
            params={"pin": "true", "quieter": "true"},
            files={"file": ("file", data, "application/octet-stream")},
        )
        return self._parse_add(response)

    def fetch(self, address: ContentAddress) -> bytes:
        """Read the content behind an address."""
        if not is_valid_address(address):
            raise InvalidAddress(f"Invalid content address: {address!r}")
        response = self._post("/cat", params={"arg": address})
        return response.content


def multihash_address(stream: BinaryIO) -> ContentAddress:
    """Base58 sha2-256 multihash of a stream ("Qm...", 46 characters).

    This is the address format of CIDv0, computed over the raw bytes
    rather than over an IPFS DAG node.
    """
    hasher = hashlib.sha256()
    for block in iter(lambda: stream.read(READ_BLOCK_SIZE), b""):
        hasher.update(block)
    return base58.b58encode(MULTIHASH_SHA256 + hasher.digest()).decode("ascii")


class LocalContentStore(ContentStore):
    """Directory-backed content store for offline use and testing."""

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Directory holding one file per stored address.
        """
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local content store: {self._base_path}"

    def address_of(self, stream: BinaryIO) -> ContentAddress:
        """Hash a stream without storing it."""
        return multihash_address(stream)

    def add(self, data: bytes) -> ContentAddress:
        """Store data under its address."""
        address = self.address_of_bytes(data)
        (self._base_path / address).write_bytes(data)
        return address

    def fetch(self, address: ContentAddress) -> bytes:
        """Read the data stored under an address."""
        if not is_valid_address(address):
            raise InvalidAddress(f"Invalid content address: {address!r}")
        path = self._base_path / address
        if not path.exists():
            raise InvalidAddress(f"Content not found: {address}")
        return path.read_bytes()


def create_content_store(config: ContentStoreConfig) -> ContentStore:
    """Factory function to create a content store from configuration.

    Raises:
        ValueError: If the store type is unknown.
    """
    if config.type == "local":
        return LocalContentStore(config.store_path)
    if config.type == "ipfs":
        return IPFSClient(config.api_url, timeout=config.timeout)
    raise ValueError(f"Unknown content store type: {config.type}")
