"""Object store clients for encrypted chunks and manifests.

This module provides:
- Abstract interfaces for an object store and an open bucket handle
- LocalObjectStore for development/testing
- S3ObjectStore for S3-compatible gateways (Storj, AWS, MinIO)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from cidvault.core.types import CidVaultError

if TYPE_CHECKING:
    from typing import Any

    from cidvault.core.config import ObjectStoreConfig
    from cidvault.stores.scope import AccessScope

logger = logging.getLogger(__name__)

# S3 error codes that are worth another attempt
TRANSIENT_ERROR_CODES = frozenset({
    "InternalError",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "ServiceUnavailable",
    "SlowDown",
    "500",
    "502",
    "503",
    "504",
})


class ObjectStoreError(CidVaultError):
    """Base exception for object store errors."""


class BucketNotFound(ObjectStoreError):
    """The requested bucket does not exist."""


class ObjectNotFound(ObjectStoreError):
    """The requested object does not exist."""


class TransientUploadError(ObjectStoreError):
    """A write failed in a way that may succeed on retry."""


class PermissionDenied(ObjectStoreError):
    """The credentials do not allow the operation."""


class BucketHandle(ABC):
    """An open bucket. Must be closed after use."""

    def __init__(self, name: str, scope: AccessScope | None = None) -> None:
        self._name = name
        self._scope = scope
        self._closed = False

    @property
    def name(self) -> str:
        """Return the bucket name."""
        return self._name

    @property
    def closed(self) -> bool:
        """Return True once close() has been called."""
        return self._closed

    def put(self, key: str, data: bytes) -> None:
        """Store a blob under key, overwriting any previous value.

        Raises:
            TransientUploadError: If the write may succeed on retry.
            PermissionDenied: If the scope does not allow writes to key.
        """
        self._ensure_open()
        if self._scope is not None:
            self._scope.check("write", self._name, key)
        self._put(key, data)

    def get(self, key: str) -> bytes:
        """Retrieve the blob stored under key.

        Raises:
            ObjectNotFound: If no object exists under key.
            PermissionDenied: If the scope does not allow reads of key.
        """
        self._ensure_open()
        if self._scope is not None:
            self._scope.check("read", self._name, key)
        return self._get(key)

    def close(self) -> None:
        """Release the bucket handle."""
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise ObjectStoreError(f"Bucket handle for {self._name} is closed")

    @abstractmethod
    def _put(self, key: str, data: bytes) -> None:
        """Backend-specific write."""

    @abstractmethod
    def _get(self, key: str) -> bytes:
        """Backend-specific read."""

    def __enter__(self) -> BucketHandle:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()


class ObjectStore(ABC):
    """Abstract interface for a bucket-based object store."""

    def __init__(self, scope: AccessScope | None = None) -> None:
        self._scope = scope

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of the store."""

    @abstractmethod
    def open_bucket(self, name: str) -> BucketHandle:
        """Open an existing bucket.

        Raises:
            BucketNotFound: If the bucket does not exist.
        """

    @abstractmethod
    def create_bucket(self, name: str) -> None:
        """Create a bucket."""

    def open_or_create_bucket(self, name: str) -> BucketHandle:
        """Open a bucket, creating it once if it does not exist.

        Raises:
            BucketNotFound: If the bucket is still missing after creation.
            ObjectStoreError: If creation fails.
        """
        try:
            return self.open_bucket(name)
        except BucketNotFound:
            logger.info(f"Bucket {name} not found, creating it")
        self.create_bucket(name)
        logger.info(f"Created bucket {name}")
        return self.open_bucket(name)

    def close(self) -> None:
        """Release client resources."""

    def __enter__(self) -> ObjectStore:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()


class LocalBucket(BucketHandle):
    """Bucket stored as a directory; object keys map to relative paths."""

    def __init__(self, name: str, path: Path, scope: AccessScope | None = None) -> None:
        super().__init__(name, scope)
        self._path = path

    def _object_path(self, key: str) -> Path:
        path = (self._path / key).resolve()
        if not path.is_relative_to(self._path) or path == self._path:
            raise PermissionDenied(f"Object key escapes bucket: {key}")
        return path

    def _put(self, key: str, data: bytes) -> None:
        path = self._object_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _get(self, key: str) -> bytes:
        path = self._object_path(key)
        if not path.is_file():
            raise ObjectNotFound(f"Object not found: {self._name}/{key}")
        return path.read_bytes()


class LocalObjectStore(ObjectStore):
    """Local filesystem object store for development and testing.

    Each bucket is a subdirectory of the root directory.
    """

    def __init__(self, base_path: Path | str, scope: AccessScope | None = None) -> None:
        """Initialize local storage.

        Args:
            base_path: Root directory holding one directory per bucket.
            scope: Optional access scope enforced on every operation.
        """
        super().__init__(scope)
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_path}"

    def _bucket_path(self, name: str) -> Path:
        if not name or "/" in name or name in (".", ".."):
            raise ObjectStoreError(f"Invalid bucket name: {name!r}")
        return self._base_path / name

    def open_bucket(self, name: str) -> BucketHandle:
        """Open an existing bucket directory."""
        path = self._bucket_path(name)
        if not path.is_dir():
            raise BucketNotFound(f"Bucket not found: {name}")
        return LocalBucket(name, path.resolve(), self._scope)

    def create_bucket(self, name: str) -> None:
        """Create a bucket directory."""
        if self._scope is not None:
            self._scope.check("write", name, "")
        self._bucket_path(name).mkdir(exist_ok=True)


def _error_code(error: Exception) -> str:
    response: Any = getattr(error, "response", None) or {}
    return str(response.get("Error", {}).get("Code", ""))


def _is_transient(error: Exception) -> bool:
    """Return True for connection and timeout failures (not credentials or parameters)."""
    from botocore.exceptions import (
        ConnectionClosedError,
        ConnectTimeoutError,
        EndpointConnectionError,
        ReadTimeoutError,
    )

    return isinstance(
        error,
        (ConnectionClosedError, ConnectTimeoutError, EndpointConnectionError, ReadTimeoutError),
    )


class S3Bucket(BucketHandle):
    """Bucket handle on an S3-compatible gateway."""

    def __init__(self, name: str, client: Any, scope: AccessScope | None = None) -> None:
        super().__init__(name, scope)
        self._client = client

    def _put(self, key: str, data: bytes) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._client.put_object(Bucket=self._name, Key=key, Body=data)
        except ClientError as e:
            code = _error_code(e)
            if code in ("AccessDenied", "403"):
                raise PermissionDenied(f"Write denied for {self._name}/{key}") from e
            if code == "NoSuchBucket":
                raise BucketNotFound(f"Bucket not found: {self._name}") from e
            if code in TRANSIENT_ERROR_CODES:
                raise TransientUploadError(f"Upload of {key} failed: {code}") from e
            raise ObjectStoreError(f"Upload of {key} failed: {e}") from e
        except BotoCoreError as e:
            if _is_transient(e):
                raise TransientUploadError(f"Upload of {key} failed: {e}") from e
            raise ObjectStoreError(f"Upload of {key} failed: {e}") from e

    def _get(self, key: str) -> bytes:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self._client.get_object(Bucket=self._name, Key=key)
            body: bytes = response["Body"].read()
            return body
        except ClientError as e:
            code = _error_code(e)
            if code in ("NoSuchKey", "404"):
                raise ObjectNotFound(f"Object not found: {self._name}/{key}") from e
            if code in ("AccessDenied", "403"):
                raise PermissionDenied(f"Read denied for {self._name}/{key}") from e
            raise ObjectStoreError(f"Download of {key} failed: {e}") from e
        except BotoCoreError as e:
            raise ObjectStoreError(f"Download of {key} failed: {e}") from e


class S3ObjectStore(ObjectStore):
    """S3-compatible object store (Storj gateway, AWS, MinIO, etc.)."""

    def __init__(self, scope: AccessScope) -> None:
        """Initialize the S3 client from an access scope.

        Args:
            scope: Endpoint, credentials, caveats and path restrictions.
        """
        import boto3

        super().__init__(scope)
        self._endpoint_url = scope.endpoint_url
        self._region = scope.region
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=scope.endpoint_url,
            aws_access_key_id=scope.access_key,
            aws_secret_access_key=scope.secret_key,
            region_name=scope.region,
        )

    @property
    def location(self) -> str:
        """Return the S3 endpoint."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}"
        return f"S3: {self._region}"

    def open_bucket(self, name: str) -> BucketHandle:
        """Check the bucket exists and return a handle on it."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._client.head_bucket(Bucket=name)
        except ClientError as e:
            code = _error_code(e)
            if code in ("404", "NoSuchBucket", "NotFound"):
                raise BucketNotFound(f"Bucket not found: {name}") from e
            if code in ("403", "AccessDenied"):
                raise PermissionDenied(f"Access to bucket {name} denied") from e
            raise ObjectStoreError(f"Could not open bucket {name}: {e}") from e
        except BotoCoreError as e:
            raise ObjectStoreError(f"Could not open bucket {name}: {e}") from e
        return S3Bucket(name, self._client, self._scope)

    def create_bucket(self, name: str) -> None:
        """Create a bucket in the configured region."""
        from botocore.exceptions import BotoCoreError, ClientError

        if self._scope is not None:
            self._scope.check("write", name, "")
        kwargs: dict[str, Any] = {"Bucket": name}
        if self._region and self._region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            self._client.create_bucket(**kwargs)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"Could not create bucket {name}: {e}") from e

    def close(self) -> None:
        """Close the underlying HTTP connections."""
        self._client.close()


def create_object_store(config: ObjectStoreConfig, scope: AccessScope) -> ObjectStore:
    """Factory function to create an object store from configuration.

    Args:
        config: Object store configuration (selects the backend).
        scope: Credentials and restrictions to use.

    Raises:
        ValueError: If the store type is unknown.
    """
    if config.type == "local":
        return LocalObjectStore(config.store_path, scope)
    if config.type == "s3":
        return S3ObjectStore(scope)
    raise ValueError(f"Unknown object store type: {config.type}")
