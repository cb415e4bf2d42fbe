"""Core module - Cipher, chunking, wire formats and configuration."""

from cidvault.core.chunking import (
    DEFAULT_CHUNK_SIZE,
    Chunk,
    chunk_count,
    split_stream,
)
from cidvault.core.codec import (
    RoutingPayload,
    decode_manifest,
    decode_routing,
    encode_manifest,
    encode_routing,
    is_valid_address,
    pack_locator,
    unpack_locator,
)
from cidvault.core.config import (
    ContentStoreConfig,
    DownloadConfig,
    ObjectStoreConfig,
    PipelineConfig,
)
from cidvault.core.crypto import as_key, decrypt, encrypt, generate_key
from cidvault.core.types import (
    CidVaultError,
    ContentAddress,
    CorruptCiphertext,
    DecodingError,
    DownloadFailed,
    InvalidConfiguration,
    InvalidKey,
    MalformedLocator,
    UploadFailed,
)

__all__ = [
    # Chunking
    "Chunk",
    "DEFAULT_CHUNK_SIZE",
    "chunk_count",
    "split_stream",
    # Codec
    "RoutingPayload",
    "decode_manifest",
    "decode_routing",
    "encode_manifest",
    "encode_routing",
    "is_valid_address",
    "pack_locator",
    "unpack_locator",
    # Config
    "ContentStoreConfig",
    "DownloadConfig",
    "ObjectStoreConfig",
    "PipelineConfig",
    # Crypto
    "as_key",
    "decrypt",
    "encrypt",
    "generate_key",
    # Types
    "CidVaultError",
    "ContentAddress",
    "CorruptCiphertext",
    "DecodingError",
    "DownloadFailed",
    "InvalidConfiguration",
    "InvalidKey",
    "MalformedLocator",
    "UploadFailed",
]
