"""Result and progress types for the upload and download pipelines."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from cidvault.core.codec import RoutingPayload
from cidvault.core.types import ContentAddress


@dataclass
class TransferProgress:
    """Progress information for one pipeline run."""

    file_name: str
    current_chunk: int
    total_chunks: int
    bytes_transferred: int
    operation: str  # "upload" or "download"

    @property
    def percent(self) -> float:
        """Get progress percentage."""
        if self.total_chunks == 0:
            return 100.0
        return (self.current_chunk / self.total_chunks) * 100


# Type alias for progress callback
ProgressCallback = Callable[[TransferProgress], None]


@dataclass
class UploadResult:
    """Result of a successful upload.

    The locator is the only artifact the user needs to keep.
    """

    locator: bytes
    base_address: ContentAddress
    chunk_addresses: list[ContentAddress]
    manifest_key: str
    routing: RoutingPayload
    size: int

    @property
    def chunk_count(self) -> int:
        """Number of chunks uploaded."""
        return len(self.chunk_addresses)


@dataclass
class DownloadResult:
    """Result of a successful download."""

    local_path: Path
    base_address: ContentAddress
    routing: RoutingPayload
    chunk_count: int
    size: int
