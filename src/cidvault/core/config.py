"""Configuration classes for cidvault.

This module defines:
- PipelineConfig: per-invocation settings for the upload/download pipelines
- ContentStoreConfig: IPFS node (or local store) settings and the source file
- ObjectStoreConfig: object store credentials, bucket and keys
- DownloadConfig: everything the download command needs

The from_dict constructors read the camelCase keys of the JSON files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cidvault.core.chunking import DEFAULT_CHUNK_SIZE, validate_chunk_size
from cidvault.core.codec import normalize_prefix
from cidvault.core.crypto import as_key
from cidvault.core.types import InvalidConfiguration

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_BACKOFF = 1.0  # seconds


def _parse_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}") from e


def _parse_bool(value: Any) -> bool:
    """Parse "true"/"false" strings (as written in the JSON files) or booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class PipelineConfig:
    """Settings passed by value into each pipeline invocation.

    Attributes:
        chunk_size: Size of each plaintext slice in bytes.
        max_attempts: Upload attempts per object before giving up.
        retry_backoff: Initial delay between attempts in seconds (doubles).
        verbose: Read back and reassemble uploads into debug_dir.
        debug_dir: Where verbose uploads are reassembled.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_backoff: float = DEFAULT_RETRY_BACKOFF
    verbose: bool = False
    debug_dir: Path = field(default_factory=lambda: Path("debug"))

    def __post_init__(self) -> None:
        """Validate chunk size and retry bound."""
        validate_chunk_size(self.chunk_size)
        if self.max_attempts < 1:
            raise InvalidConfiguration(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.retry_backoff < 0:
            raise InvalidConfiguration("retry_backoff cannot be negative")


@dataclass
class ContentStoreConfig:
    """Connection settings for the content-addressed store.

    Attributes:
        type: "ipfs" (HTTP RPC API of a running node) or "local".
        host_name: IPFS node host (optionally with scheme).
        port: IPFS API port.
        path: Source file to mirror (upload only).
        chunk_size: Chunk size in bytes (upload only).
        store_path: Directory of the local content store.
        timeout: HTTP timeout in seconds.
    """

    type: str = "ipfs"
    host_name: str = "localhost"
    port: str = "5001"
    path: str = ""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    store_path: str = "./content"
    timeout: float = 60.0

    def __post_init__(self) -> None:
        """Validate store type, host name and chunk size."""
        if self.type not in ("ipfs", "local"):
            raise InvalidConfiguration(f"Unknown content store type: {self.type}")
        if self.type == "ipfs" and self.host_name in ("", "ipfsHostName"):
            raise InvalidConfiguration("Invalid HostName")
        validate_chunk_size(self.chunk_size)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentStoreConfig:
        """Create from a parsed JSON configuration."""
        return cls(
            type=str(data.get("contentStore", "ipfs")),
            host_name=str(data.get("hostName", "localhost")),
            port=str(data.get("port", "5001")),
            path=str(data.get("path", "")),
            chunk_size=_parse_int(data.get("chunkSize", DEFAULT_CHUNK_SIZE), "chunkSize"),
            store_path=str(data.get("contentStorePath", "./content")),
            timeout=float(data.get("timeout", 60.0)),
        )

    @property
    def api_url(self) -> str:
        """Base URL of the node's HTTP RPC API."""
        host = self.host_name.rstrip("/")
        if not host.startswith(("http://", "https://")):
            host = f"http://{host}"
        if self.port:
            host = f"{host}:{self.port}"
        return f"{host}/api/v0"


@dataclass
class ObjectStoreConfig:
    """Object store credentials and destination.

    Attributes:
        type: "s3" (S3-compatible gateway) or "local".
        endpoint_url: Gateway URL.
        access_key: Access key ID.
        secret_key: Secret access key.
        region: Region name.
        bucket: Destination bucket.
        upload_path: Path prefix inside the bucket.
        serialized_scope: Pre-built access scope (used when set).
        key: Routing payload key.
        chunk_key: Chunk body key (defaults to key).
        disallow_reads: Caveat applied to restricted scopes.
        disallow_writes: Caveat applied to restricted scopes.
        disallow_deletes: Caveat applied to restricted scopes.
        store_path: Root directory of the local object store.
    """

    type: str = "s3"
    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str = "us-east-1"
    bucket: str = ""
    upload_path: str = ""
    serialized_scope: str = ""
    key: str = ""
    chunk_key: str = ""
    disallow_reads: bool = False
    disallow_writes: bool = False
    disallow_deletes: bool = False
    store_path: str = "./objects"

    def __post_init__(self) -> None:
        """Validate store type and normalise the upload path."""
        if self.type not in ("s3", "local"):
            raise InvalidConfiguration(f"Unknown object store type: {self.type}")
        self.upload_path = normalize_prefix(self.upload_path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectStoreConfig:
        """Create from a parsed JSON configuration.

        "satelliteURL" and "apiKey" are accepted as aliases of
        "endpointURL" and "accessKey".
        """
        return cls(
            type=str(data.get("objectStore", "s3")),
            endpoint_url=data.get("endpointURL") or data.get("satelliteURL") or None,
            access_key=data.get("accessKey") or data.get("apiKey") or None,
            secret_key=data.get("secretKey") or None,
            region=str(data.get("region") or "us-east-1"),
            bucket=str(data.get("bucketName", "")),
            upload_path=str(data.get("uploadPath", "")),
            serialized_scope=str(data.get("serializedScope", "")),
            key=str(data.get("key", "")),
            chunk_key=str(data.get("chunkKey", "")),
            disallow_reads=_parse_bool(data.get("disallowReads")),
            disallow_writes=_parse_bool(data.get("disallowWrites")),
            disallow_deletes=_parse_bool(data.get("disallowDeletes")),
            store_path=str(data.get("objectStorePath", "./objects")),
        )

    @property
    def routing_key(self) -> bytes:
        """Key encrypting the routing payload."""
        if not self.key:
            raise InvalidConfiguration("Missing 'key' in object store configuration")
        return as_key(self.key)

    @property
    def chunk_key_bytes(self) -> bytes:
        """Key encrypting chunk bodies (falls back to the routing key)."""
        if self.chunk_key:
            return as_key(self.chunk_key)
        return self.routing_key


@dataclass
class DownloadConfig:
    """Settings of the download command.

    The same JSON document carries the content store settings, the
    object store credentials, the shareable hash and the destination.
    """

    content_store: ContentStoreConfig
    object_store: ObjectStoreConfig
    share_hash: str = ""
    download_path: str = "./downloads"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DownloadConfig:
        """Create from a parsed JSON configuration."""
        return cls(
            content_store=ContentStoreConfig.from_dict(data),
            object_store=ObjectStoreConfig.from_dict(data),
            share_hash=str(data.get("shareableHash", "")),
            download_path=str(data.get("downloadPath", "./downloads")),
        )
