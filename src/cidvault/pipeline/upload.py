"""File upload with chunking and encryption.

This module provides:
- FileUploader: Splits a file, encrypts and addresses every chunk,
  uploads chunks and manifest with bounded retry, and builds the locator
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from cidvault.core.chunking import Chunk, chunk_count, split_stream
from cidvault.core.codec import (
    RoutingPayload,
    chunk_key,
    encode_manifest,
    encode_routing,
    manifest_key,
    normalize_prefix,
    pack_locator,
)
from cidvault.core.config import PipelineConfig
from cidvault.core.crypto import encrypt, validate_key
from cidvault.core.types import ContentAddress, DownloadFailed, UploadFailed
from cidvault.pipeline.download import reassemble
from cidvault.pipeline.retry import upload_with_retry
from cidvault.pipeline.types import ProgressCallback, TransferProgress, UploadResult
from cidvault.stores.content import ContentStoreError
from cidvault.stores.objects import ObjectStoreError, TransientUploadError

if TYPE_CHECKING:
    from cidvault.stores.content import ContentStore
    from cidvault.stores.objects import BucketHandle, ObjectStore

logger = logging.getLogger(__name__)


class FileUploader:
    """Mirrors one file into the object store.

    Chunks are processed strictly in order on the calling thread; the
    bucket is opened once per upload and closed on every exit path.
    """

    def __init__(
        self,
        content_store: ContentStore,
        object_store: ObjectStore,
        bucket: str,
        chunk_key: bytes,
        routing_key: bytes | None = None,
        path_prefix: str = "",
        config: PipelineConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            content_store: Store computing content addresses.
            object_store: Destination of chunks and manifest.
            bucket: Destination bucket (created once if missing).
            chunk_key: Key encrypting chunk bodies.
            routing_key: Key encrypting the routing payload (defaults to chunk_key).
            path_prefix: Storage path prefix inside the bucket.
            config: Pipeline settings (chunk size, retry bound, verbose).
            progress_callback: Optional callback for progress updates.
        """
        validate_key(chunk_key)
        if routing_key is not None:
            validate_key(routing_key)
        self._content_store = content_store
        self._object_store = object_store
        self._bucket = bucket
        self._chunk_key = chunk_key
        self._routing_key = routing_key if routing_key is not None else chunk_key
        self._path_prefix = normalize_prefix(path_prefix)
        self._config = config or PipelineConfig()
        self._progress_callback = progress_callback

    def upload_path(self, local_path: Path) -> UploadResult:
        """Upload a local file, keeping its name for the download side."""
        local_path = Path(local_path)
        if not local_path.is_file():
            raise UploadFailed(f"File not found: {local_path}")
        size = local_path.stat().st_size
        with open(local_path, "rb") as f:
            return self.upload_file(f, size, local_path.name)

    def upload_file(self, stream: BinaryIO, size: int, file_name: str) -> UploadResult:
        """Upload a seekable stream and return its locator.

        Args:
            stream: Seekable binary stream positioned at the start of the file.
            size: Total size of the stream in bytes.
            file_name: Name the file gets back on download.

        Returns:
            UploadResult holding the locator.

        Raises:
            UploadFailed: If any chunk or the manifest cannot be stored.
                No locator is produced in that case.
        """
        config = self._config
        total = chunk_count(size, config.chunk_size)
        logger.info(f"Uploading {file_name}: {size} bytes in {total} chunks")

        try:
            base_address = self._content_store.address_of(stream)
        except ContentStoreError as e:
            raise UploadFailed(f"Could not compute address of {file_name}: {e}") from e
        stream.seek(0)
        logger.info(f"Base address of {file_name}: {base_address}")

        try:
            bucket = self._object_store.open_or_create_bucket(self._bucket)
        except ObjectStoreError as e:
            raise UploadFailed(f"Could not open bucket {self._bucket}: {e}") from e

        with bucket:
            addresses: list[ContentAddress] = []
            bytes_transferred = 0
            for index, data in enumerate(split_stream(stream, config.chunk_size)):
                chunk = self._seal_chunk(index, data)
                key = chunk_key(self._path_prefix, base_address, chunk.address)
                self._put_with_retry(bucket, key, chunk.cipher, index)
                addresses.append(chunk.address)
                bytes_transferred += chunk.size
                logger.debug(f"Uploaded chunk {index + 1}/{total}: {chunk.address[:8]}...")

                if self._progress_callback:
                    self._progress_callback(TransferProgress(
                        file_name=file_name,
                        current_chunk=index + 1,
                        total_chunks=total,
                        bytes_transferred=bytes_transferred,
                        operation="upload",
                    ))

            if bytes_transferred != size:
                raise UploadFailed(
                    f"{file_name} changed during upload: expected {size} bytes, "
                    f"read {bytes_transferred}"
                )

            mkey = manifest_key(self._path_prefix, base_address)
            self._put_with_retry(bucket, mkey, encode_manifest(addresses), None)
            logger.info(f"Uploaded manifest {mkey} ({len(addresses)} chunks)")

            if config.verbose:
                self._verify(bucket, base_address, file_name)

        routing = RoutingPayload(
            bucket=self._bucket,
            path_prefix=self._path_prefix,
            file_name=file_name,
        )
        locator = pack_locator(base_address, encrypt(self._routing_key, encode_routing(routing)))

        return UploadResult(
            locator=locator,
            base_address=base_address,
            chunk_addresses=addresses,
            manifest_key=mkey,
            routing=routing,
            size=size,
        )

    def _seal_chunk(self, index: int, data: bytes) -> Chunk:
        """Encrypt one slice and address its ciphertext."""
        cipher = encrypt(self._chunk_key, data)
        try:
            address = self._content_store.address_of_bytes(cipher)
        except ContentStoreError as e:
            raise UploadFailed(
                f"Could not compute address of chunk {index}: {e}", chunk_index=index
            ) from e
        return Chunk(index=index, data=data, cipher=cipher, address=address)

    def _put_with_retry(
        self,
        bucket: BucketHandle,
        key: str,
        data: bytes,
        index: int | None,
    ) -> None:
        """Upload one object with its own retry budget.

        Raises:
            UploadFailed: When retries are exhausted or the error is fatal.
        """
        attempts = 0

        def attempt() -> None:
            nonlocal attempts
            attempts += 1
            bucket.put(key, data)

        try:
            upload_with_retry(
                attempt,
                max_attempts=self._config.max_attempts,
                retryable_exceptions=(TransientUploadError,),
                initial_backoff=self._config.retry_backoff,
            )
        except ObjectStoreError as e:
            raise UploadFailed(
                f"Could not upload {key} after {attempts} attempt(s): {e}",
                key=key,
                chunk_index=index,
                attempts=attempts,
            ) from e

    def _verify(self, bucket: BucketHandle, base_address: ContentAddress, file_name: str) -> None:
        """Read the upload back into the debug directory and check its address."""
        debug_dir = self._config.debug_dir
        debug_dir.mkdir(parents=True, exist_ok=True)
        local_path = debug_dir / Path(file_name).name

        try:
            reassemble(bucket, self._path_prefix, base_address, self._chunk_key, local_path)
            with open(local_path, "rb") as f:
                address = self._content_store.address_of(f)
        except (DownloadFailed, ContentStoreError, OSError) as e:
            raise UploadFailed(f"Read-back of {file_name} failed: {e}") from e

        if address != base_address:
            raise UploadFailed(
                f"Read-back of {file_name} does not match: {address} != {base_address}"
            )
        logger.info(f"Debug file {file_name} downloaded to {debug_dir}")
