"""Fixed-size chunking for cidvault.

This module provides:
- Lazy splitting of a byte stream into fixed-size slices
- The Chunk dataclass carried through the upload pipeline
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

from cidvault.core.types import ContentAddress, InvalidConfiguration

# Default chunk size (in bytes), overridden by the content store config
DEFAULT_CHUNK_SIZE = 1 * 1024 * 1024  # 1 MB


@dataclass(frozen=True)
class Chunk:
    """One encrypted slice of a source file."""

    index: int
    data: bytes
    cipher: bytes
    address: ContentAddress

    @property
    def size(self) -> int:
        """Return the size of the plaintext slice in bytes."""
        return len(self.data)


def validate_chunk_size(chunk_size: int) -> int:
    """Check that a chunk size is usable.

    Raises:
        InvalidConfiguration: If chunk_size is not a positive integer.
    """
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
        raise InvalidConfiguration(f"Chunk size must be an integer, got {chunk_size!r}")
    if chunk_size <= 0:
        raise InvalidConfiguration(f"Chunk size must be positive, got {chunk_size}")
    return chunk_size


def chunk_count(size: int, chunk_size: int) -> int:
    """Number of chunks a stream of `size` bytes splits into."""
    validate_chunk_size(chunk_size)
    return -(-size // chunk_size)


def split_stream(stream: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Split a byte stream into fixed-size slices.

    Every slice is exactly chunk_size bytes except possibly the last one.
    Only one slice is held in memory at a time, and the stream is consumed
    as the iterator advances (it cannot be restarted).

    Args:
        stream: Readable binary stream.
        chunk_size: Slice length in bytes.

    Returns:
        Iterator over the slices, in stream order.

    Raises:
        InvalidConfiguration: If chunk_size <= 0 (raised immediately).
    """
    validate_chunk_size(chunk_size)
    return _iter_slices(stream, chunk_size)


def _iter_slices(stream: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    while True:
        data = _read_exactly(stream, chunk_size)
        if not data:
            return
        yield data
        if len(data) < chunk_size:
            return


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read up to size bytes, looping over short reads (pipes, sockets)."""
    parts = []
    remaining = size
    while remaining > 0:
        block = stream.read(remaining)
        if not block:
            break
        parts.append(block)
        remaining -= len(block)
    return b"".join(parts)
