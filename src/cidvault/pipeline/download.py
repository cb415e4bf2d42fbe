"""File download with decryption and reassembly.

This module provides:
- reassemble: Fetch a manifest and its chunks from an open bucket and
  write the decrypted file with an atomic rename
- FileDownloader: Entry points from a shareable hash, a locator, or an
  explicit routing payload
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from cidvault.core.codec import (
    RoutingPayload,
    chunk_key,
    decode_manifest,
    decode_routing,
    is_valid_address,
    manifest_key,
    unpack_locator,
)
from cidvault.core.crypto import decrypt, validate_key
from cidvault.core.types import (
    ContentAddress,
    CorruptCiphertext,
    DecodingError,
    DownloadFailed,
    InvalidConfiguration,
    MalformedLocator,
)
from cidvault.pipeline.types import DownloadResult, ProgressCallback, TransferProgress
from cidvault.stores.content import ContentStoreError, InvalidAddress
from cidvault.stores.objects import ObjectStoreError

if TYPE_CHECKING:
    from cidvault.stores.content import ContentStore
    from cidvault.stores.objects import BucketHandle, ObjectStore

logger = logging.getLogger(__name__)


def reassemble(
    bucket: BucketHandle,
    path_prefix: str,
    base_address: ContentAddress,
    key: bytes,
    local_path: Path,
    progress_callback: ProgressCallback | None = None,
) -> tuple[int, int]:
    """Rebuild a mirrored file from its manifest and chunks.

    Chunks are written in manifest order to a uniquely named hidden file
    next to local_path, which is then renamed over local_path. An existing
    file at local_path is replaced, never merged with. No partial file is
    left behind on failure.

    Args:
        bucket: Open bucket holding the manifest and chunks.
        path_prefix: Storage path prefix of the upload.
        base_address: Content address of the original file.
        key: Chunk decryption key.
        local_path: Destination file.
        progress_callback: Optional callback for progress updates.

    Returns:
        Tuple of (number of chunks, number of bytes written).

    Raises:
        DownloadFailed: If any fetch or decryption fails.
    """
    mkey = manifest_key(path_prefix, base_address)
    try:
        addresses = decode_manifest(bucket.get(mkey))
    except (ObjectStoreError, DecodingError) as e:
        raise DownloadFailed(f"Could not read manifest {mkey}: {e}", key=mkey) from e

    logger.info(f"Manifest {mkey} lists {len(addresses)} chunks")

    f = tempfile.NamedTemporaryFile(
        dir=local_path.parent, prefix=f".{local_path.name}.", suffix=".part", delete=False
    )
    tmp_path = Path(f.name)
    size = 0
    try:
        with f:
            for index, address in enumerate(addresses):
                ckey = chunk_key(path_prefix, base_address, address)
                try:
                    data = decrypt(key, bucket.get(ckey))
                except (ObjectStoreError, CorruptCiphertext, DecodingError) as e:
                    raise DownloadFailed(
                        f"Failed to download chunk {index} ({ckey}): {e}",
                        key=ckey,
                        chunk_index=index,
                    ) from e
                f.write(data)
                size += len(data)
                logger.debug(
                    f"Downloaded chunk {index + 1}/{len(addresses)}: {address[:8]}..."
                )

                if progress_callback:
                    progress_callback(TransferProgress(
                        file_name=local_path.name,
                        current_chunk=index + 1,
                        total_chunks=len(addresses),
                        bytes_transferred=size,
                        operation="download",
                    ))

        os.replace(tmp_path, local_path)

    except Exception:
        # Clean up temp file on failure
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise

    return len(addresses), size


class FileDownloader:
    """Handles file download with decryption and reassembly."""

    def __init__(
        self,
        object_store: ObjectStore,
        chunk_key: bytes,
        routing_key: bytes | None = None,
        content_store: ContentStore | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            object_store: Store holding the encrypted chunks.
            chunk_key: Key decrypting chunk bodies.
            routing_key: Key decrypting the routing payload (defaults to chunk_key).
            content_store: Store holding published locators (download_shared only).
            progress_callback: Optional callback for progress updates.
        """
        validate_key(chunk_key)
        if routing_key is not None:
            validate_key(routing_key)
        self._object_store = object_store
        self._chunk_key = chunk_key
        self._routing_key = routing_key if routing_key is not None else chunk_key
        self._content_store = content_store
        self._progress_callback = progress_callback

    def download_shared(self, share_hash: str, dest_dir: Path) -> DownloadResult:
        """Download a file from the shareable hash printed at upload time.

        Args:
            share_hash: Content address of the published locator.
            dest_dir: Directory receiving the file.

        Raises:
            InvalidAddress: If share_hash is malformed (checked before any
                network call).
            DownloadFailed: If the locator or the file cannot be retrieved.
        """
        if not is_valid_address(share_hash):
            raise InvalidAddress(f"Invalid Shareable Hash: {share_hash!r}")
        if self._content_store is None:
            raise InvalidConfiguration("A content store is required to resolve shareable hashes")

        try:
            locator = self._content_store.fetch(share_hash)
        except ContentStoreError as e:
            raise DownloadFailed(f"Could not fetch locator {share_hash}: {e}") from e

        logger.info(f"Fetched locator {share_hash} ({len(locator)} bytes)")
        return self.download_locator(locator, dest_dir)

    def download_locator(self, locator: bytes, dest_dir: Path) -> DownloadResult:
        """Download a file from its locator.

        The locator is parsed before any network call.

        Raises:
            MalformedLocator: If the locator cannot be parsed.
            DownloadFailed: If the routing payload or the file cannot be
                decrypted or retrieved.
        """
        base_address, encrypted_routing = unpack_locator(locator)
        try:
            routing = decode_routing(decrypt(self._routing_key, encrypted_routing))
        except (CorruptCiphertext, DecodingError) as e:
            raise DownloadFailed(f"Could not decrypt routing payload: {e}") from e
        return self.download_routing(base_address, routing, dest_dir)

    def download_routing(
        self,
        base_address: ContentAddress,
        routing: RoutingPayload,
        dest_dir: Path,
    ) -> DownloadResult:
        """Download a file whose bucket, path and name are already known.

        Args:
            base_address: Content address of the original file.
            routing: Bucket, storage path prefix and original file name.
            dest_dir: Directory receiving the file (created if missing).

        Returns:
            DownloadResult with local metadata.

        Raises:
            MalformedLocator: If base_address is not a valid content address.
            DownloadFailed: If the download fails.
        """
        if not is_valid_address(base_address):
            raise MalformedLocator(f"Invalid base address: {base_address!r}")

        # Only the final path component is trusted
        file_name = Path(routing.file_name).name
        if file_name in ("", ".", ".."):
            raise DownloadFailed(f"Invalid file name in routing payload: {routing.file_name!r}")

        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        local_path = dest_dir / file_name

        logger.info(f"Downloading {file_name} from bucket {routing.bucket}")
        try:
            bucket = self._object_store.open_bucket(routing.bucket)
        except ObjectStoreError as e:
            raise DownloadFailed(f"Could not open bucket {routing.bucket}: {e}") from e

        with bucket:
            count, size = reassemble(
                bucket,
                routing.path_prefix,
                base_address,
                self._chunk_key,
                local_path,
                self._progress_callback,
            )

        logger.info(f"Downloaded {file_name}: {count} chunks, {size} bytes")
        return DownloadResult(
            local_path=local_path,
            base_address=base_address,
            routing=routing,
            chunk_count=count,
            size=size,
        )
