"""Wire formats for cidvault.

This module provides:
- Content address validation (IPFS CIDv0: "Qm" prefix, 46 base58 characters)
- Manifest serializer: chunk addresses joined by "," with a trailing ","
- Routing payload serializer: "bucket,pathPrefix,fileName" with "\\" escaping
- Locator codec: base address (46 ASCII bytes) followed by the encrypted
  routing payload, with no separator and no length field
- Object key layout shared by the upload and download pipelines

Escaping rule for routing fields: "\\" is written as "\\\\" and "," as "\\,".
Fields containing neither character serialize exactly as the legacy
unescaped format.
"""

from __future__ import annotations

from dataclasses import dataclass

import base58

from cidvault.core.types import (
    ContentAddress,
    DecodingError,
    InvalidConfiguration,
    MalformedLocator,
)

ADDRESS_PREFIX = "Qm"
ADDRESS_LENGTH = 46
# sha2-256 multihash header: function code 0x12, digest length 0x20
MULTIHASH_SHA256 = b"\x12\x20"

DELIMITER = ","
ESCAPE = "\\"
MANIFEST_SUFFIX = ".manifest"


def is_valid_address(address: str) -> bool:
    """Check that a string is a well-formed CIDv0 content address.

    Args:
        address: Candidate address.

    Returns:
        True if address has the "Qm" prefix, is 46 characters long and
        decodes to a sha2-256 multihash.
    """
    if len(address) != ADDRESS_LENGTH or not address.startswith(ADDRESS_PREFIX):
        return False
    try:
        raw = base58.b58decode(address)
    except ValueError:
        return False
    return len(raw) == 34 and raw[:2] == MULTIHASH_SHA256


# === Manifest ===


def encode_manifest(addresses: list[ContentAddress]) -> bytes:
    """Serialize chunk addresses, in index order, into a manifest blob.

    Raises:
        InvalidConfiguration: If an address contains the delimiter.
    """
    parts = []
    for address in addresses:
        if DELIMITER in address or not address:
            raise InvalidConfiguration(f"Cannot store address in manifest: {address!r}")
        parts.append(address + DELIMITER)
    return "".join(parts).encode("utf-8")


def decode_manifest(blob: bytes) -> list[ContentAddress]:
    """Parse a manifest blob back into the ordered list of chunk addresses.

    The trailing delimiter is stripped before splitting.

    Raises:
        DecodingError: If the blob is not UTF-8 or lists an invalid address.
    """
    try:
        text = blob.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodingError(f"Manifest is not valid UTF-8: {e}") from e

    text = text.removesuffix(DELIMITER)
    if not text:
        return []

    addresses = text.split(DELIMITER)
    for address in addresses:
        if not is_valid_address(address):
            raise DecodingError(f"Manifest contains an invalid address: {address!r}")
    return addresses


# === Routing payload ===


@dataclass(frozen=True)
class RoutingPayload:
    """Everything needed to find a mirrored file and name it on download."""

    bucket: str
    path_prefix: str
    file_name: str


def _escape(field: str) -> str:
    return field.replace(ESCAPE, ESCAPE + ESCAPE).replace(DELIMITER, ESCAPE + DELIMITER)


def encode_routing(routing: RoutingPayload) -> bytes:
    """Serialize a routing payload as "bucket,pathPrefix,fileName"."""
    fields = (routing.bucket, routing.path_prefix, routing.file_name)
    return DELIMITER.join(_escape(f) for f in fields).encode("utf-8")


def decode_routing(blob: bytes) -> RoutingPayload:
    """Parse a serialized routing payload.

    Raises:
        DecodingError: If the payload is not UTF-8, ends inside an escape
            sequence, or does not hold exactly three fields.
    """
    try:
        text = blob.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodingError(f"Routing payload is not valid UTF-8: {e}") from e

    fields: list[str] = []
    current: list[str] = []
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == ESCAPE:
            escaped = True
        elif char == DELIMITER:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    if escaped:
        raise DecodingError("Routing payload ends with a dangling escape")
    fields.append("".join(current))

    if len(fields) != 3:
        raise DecodingError(f"Routing payload has {len(fields)} fields, expected 3")
    return RoutingPayload(bucket=fields[0], path_prefix=fields[1], file_name=fields[2])


# === Locator ===


def pack_locator(base_address: ContentAddress, encrypted_routing: bytes) -> bytes:
    """Build the shareable locator: base address followed by the ciphertext.

    Raises:
        MalformedLocator: If base_address is not a valid content address.
    """
    if not is_valid_address(base_address):
        raise MalformedLocator(f"Invalid base address: {base_address!r}")
    return base_address.encode("ascii") + encrypted_routing


def unpack_locator(token: bytes) -> tuple[ContentAddress, bytes]:
    """Split a locator into its base address and encrypted routing payload.

    Raises:
        MalformedLocator: If the token is too short or its address window
            is not a valid content address.
    """
    if len(token) < ADDRESS_LENGTH:
        raise MalformedLocator(
            f"Locator too short: {len(token)} bytes, need at least {ADDRESS_LENGTH}"
        )
    window = token[:ADDRESS_LENGTH]
    try:
        base_address = window.decode("ascii")
    except UnicodeDecodeError as e:
        raise MalformedLocator("Locator address is not ASCII") from e
    if not is_valid_address(base_address):
        raise MalformedLocator(f"Locator address is invalid: {base_address!r}")
    return base_address, token[ADDRESS_LENGTH:]


# === Object keys ===


def normalize_prefix(path_prefix: str) -> str:
    """Ensure a non-empty storage path prefix ends with "/"."""
    if path_prefix and not path_prefix.endswith("/"):
        return path_prefix + "/"
    return path_prefix


def chunk_key(path_prefix: str, base_address: ContentAddress, address: ContentAddress) -> str:
    """Object key of a chunk: <prefix><base>/<chunk>."""
    return f"{normalize_prefix(path_prefix)}{base_address}/{address}"


def manifest_key(path_prefix: str, base_address: ContentAddress) -> str:
    """Object key of a manifest: <prefix><base>/<base>.manifest."""
    return f"{normalize_prefix(path_prefix)}{base_address}/{base_address}{MANIFEST_SUFFIX}"
