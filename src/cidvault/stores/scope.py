"""Serializable access scopes for the object store.

A scope bundles the endpoint and credentials needed to reach the object
store with optional caveats (disallowed operations) and path restrictions.
Serialized scopes can be handed to other users instead of raw credentials.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from cidvault.core.codec import normalize_prefix
from cidvault.core.types import InvalidConfiguration
from cidvault.stores.objects import PermissionDenied

if TYPE_CHECKING:
    from cidvault.core.config import ObjectStoreConfig

SCOPE_VERSION = 1
OPERATIONS = ("read", "write", "delete")


@dataclass(frozen=True)
class Caveat:
    """Operations a scope refuses."""

    disallow_reads: bool = False
    disallow_writes: bool = False
    disallow_deletes: bool = False

    def forbids(self, operation: str) -> bool:
        """Return True if the caveat forbids an operation."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        return bool(getattr(self, f"disallow_{operation}s"))

    def merge(self, other: Caveat) -> Caveat:
        """Combine two caveats; a forbidden operation stays forbidden."""
        return Caveat(
            disallow_reads=self.disallow_reads or other.disallow_reads,
            disallow_writes=self.disallow_writes or other.disallow_writes,
            disallow_deletes=self.disallow_deletes or other.disallow_deletes,
        )


@dataclass(frozen=True)
class PathRestriction:
    """Limits a scope to one bucket and key prefix."""

    bucket: str
    path_prefix: str = ""

    def allows(self, bucket: str, key: str) -> bool:
        """Return True if bucket/key falls inside the restriction."""
        return bucket == self.bucket and key.startswith(self.path_prefix)


@dataclass(frozen=True)
class AccessScope:
    """Endpoint, credentials and restrictions for the object store.

    Attributes:
        endpoint_url: Gateway URL (None for the provider default).
        access_key: Access key ID.
        secret_key: Secret access key.
        region: Region name.
        caveat: Operations the scope refuses.
        restrictions: Allowed bucket/prefix pairs (empty means unrestricted).
    """

    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str = "us-east-1"
    caveat: Caveat = field(default_factory=Caveat)
    restrictions: tuple[PathRestriction, ...] = ()

    @classmethod
    def from_config(cls, config: ObjectStoreConfig) -> AccessScope:
        """Build an unrestricted scope from raw credentials."""
        return cls(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            region=config.region,
        )

    def allows(self, operation: str, bucket: str, key: str) -> bool:
        """Return True if the scope permits an operation on bucket/key."""
        if self.caveat.forbids(operation):
            return False
        if not self.restrictions:
            return True
        return any(r.allows(bucket, key) for r in self.restrictions)

    def check(self, operation: str, bucket: str, key: str) -> None:
        """Raise PermissionDenied unless the operation is allowed."""
        if not self.allows(operation, bucket, key):
            raise PermissionDenied(
                f"Scope does not allow {operation} on {bucket}/{key}"
            )

    def restrict(
        self,
        caveat: Caveat | None = None,
        bucket: str | None = None,
        path_prefix: str = "",
    ) -> AccessScope:
        """Derive a narrower scope.

        Args:
            caveat: Extra operations to forbid.
            bucket: Limit the scope to this bucket.
            path_prefix: Limit the scope to keys under this prefix.

        Returns:
            New scope; the original is unchanged.

        Raises:
            PermissionDenied: If the requested path is outside the
                current restrictions.
        """
        merged = self.caveat.merge(caveat) if caveat else self.caveat
        restrictions = self.restrictions
        if bucket is not None:
            prefix = normalize_prefix(path_prefix)
            if self.restrictions and not any(
                r.allows(bucket, prefix) for r in self.restrictions
            ):
                raise PermissionDenied(
                    f"Cannot widen scope to {bucket}/{prefix}"
                )
            restrictions = (PathRestriction(bucket=bucket, path_prefix=prefix),)
        return replace(self, caveat=merged, restrictions=restrictions)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "v": SCOPE_VERSION,
            "endpoint_url": self.endpoint_url,
            "access_key": self.access_key,
            "secret_key": self.secret_key,
            "region": self.region,
            "caveat": {
                "disallow_reads": self.caveat.disallow_reads,
                "disallow_writes": self.caveat.disallow_writes,
                "disallow_deletes": self.caveat.disallow_deletes,
            },
            "restrictions": [
                {"bucket": r.bucket, "path_prefix": r.path_prefix}
                for r in self.restrictions
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessScope:
        """Create from a dictionary produced by to_dict()."""
        if data.get("v") != SCOPE_VERSION:
            raise InvalidConfiguration(f"Unsupported scope version: {data.get('v')!r}")
        caveat = data.get("caveat") or {}
        return cls(
            endpoint_url=data.get("endpoint_url"),
            access_key=data.get("access_key"),
            secret_key=data.get("secret_key"),
            region=data.get("region") or "us-east-1",
            caveat=Caveat(
                disallow_reads=bool(caveat.get("disallow_reads", False)),
                disallow_writes=bool(caveat.get("disallow_writes", False)),
                disallow_deletes=bool(caveat.get("disallow_deletes", False)),
            ),
            restrictions=tuple(
                PathRestriction(bucket=r["bucket"], path_prefix=r.get("path_prefix", ""))
                for r in data.get("restrictions", [])
            ),
        )

    def serialize(self) -> str:
        """Encode the scope as URL-safe base64 JSON."""
        payload = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")

    @classmethod
    def parse(cls, serialized: str) -> AccessScope:
        """Decode a scope produced by serialize().

        Raises:
            InvalidConfiguration: If the string is not a serialized scope.
        """
        try:
            payload = base64.urlsafe_b64decode(serialized.strip().encode("ascii"))
            data = json.loads(payload)
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise InvalidConfiguration(f"Invalid serialized scope: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfiguration("Invalid serialized scope: not an object")
        try:
            return cls.from_dict(data)
        except (KeyError, TypeError) as e:
            raise InvalidConfiguration(f"Invalid serialized scope: {e}") from e
