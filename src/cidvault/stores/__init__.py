"""Stores module - Content store and object store clients."""

from cidvault.stores.content import (
    ContentStore,
    ContentStoreError,
    InvalidAddress,
    IPFSClient,
    LocalContentStore,
    NodeUnreachable,
    create_content_store,
)
from cidvault.stores.objects import (
    BucketHandle,
    BucketNotFound,
    LocalObjectStore,
    ObjectNotFound,
    ObjectStore,
    ObjectStoreError,
    PermissionDenied,
    S3ObjectStore,
    TransientUploadError,
    create_object_store,
)
from cidvault.stores.scope import AccessScope, Caveat, PathRestriction

__all__ = [
    # Content store
    "ContentStore",
    "ContentStoreError",
    "IPFSClient",
    "InvalidAddress",
    "LocalContentStore",
    "NodeUnreachable",
    "create_content_store",
    # Object store
    "BucketHandle",
    "BucketNotFound",
    "LocalObjectStore",
    "ObjectNotFound",
    "ObjectStore",
    "ObjectStoreError",
    "PermissionDenied",
    "S3ObjectStore",
    "TransientUploadError",
    "create_object_store",
    # Scopes
    "AccessScope",
    "Caveat",
    "PathRestriction",
]
