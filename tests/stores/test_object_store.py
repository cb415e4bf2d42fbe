"""Tests for object store implementations."""

import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    NoCredentialsError,
    ParamValidationError,
    ReadTimeoutError,
)

from cidvault.core import (
    DownloadFailed,
    ObjectStoreConfig,
    PipelineConfig,
    RoutingPayload,
    UploadFailed,
)
from cidvault.pipeline import FileDownloader, FileUploader, upload_with_retry
from cidvault.stores import (
    AccessScope,
    BucketNotFound,
    Caveat,
    LocalContentStore,
    LocalObjectStore,
    ObjectNotFound,
    ObjectStoreError,
    PermissionDenied,
    S3ObjectStore,
    TransientUploadError,
    create_object_store,
)
from cidvault.stores.objects import S3Bucket

UNREACHABLE = "http://127.0.0.1:1"


def client_error(code: str, operation: str = "PutObject") -> ClientError:
    """Build a botocore ClientError with an error code."""
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def unreachable_store() -> S3ObjectStore:
    """S3 store whose gateway refuses every connection."""
    scope = AccessScope(endpoint_url=UNREACHABLE, access_key="testing", secret_key="testing")
    store = S3ObjectStore(scope)
    store._client = MagicMock()
    error = EndpointConnectionError(endpoint_url=UNREACHABLE)
    store._client.head_bucket.side_effect = error
    store._client.create_bucket.side_effect = error
    store._client.put_object.side_effect = error
    store._client.get_object.side_effect = error
    return store


class TestLocalObjectStore:
    """Tests for LocalObjectStore."""

    def test_open_missing_bucket(self, object_store: LocalObjectStore) -> None:
        """Opening a missing bucket raises BucketNotFound."""
        with pytest.raises(BucketNotFound):
            object_store.open_bucket("nope")

    def test_open_or_create(self, object_store: LocalObjectStore, tmp_path: Path) -> None:
        """open_or_create_bucket creates the bucket once."""
        with object_store.open_or_create_bucket("mirror") as bucket:
            assert bucket.name == "mirror"
        assert (tmp_path / "objects" / "mirror").is_dir()

        # Second call simply opens it
        with object_store.open_or_create_bucket("mirror") as bucket:
            assert bucket.name == "mirror"

    def test_put_and_get(self, object_store: LocalObjectStore) -> None:
        """Objects can be written and read under nested keys."""
        object_store.create_bucket("b")
        with object_store.open_bucket("b") as bucket:
            bucket.put("prefix/base/chunk", b"cipher")
            assert bucket.get("prefix/base/chunk") == b"cipher"

    def test_put_overwrites(self, object_store: LocalObjectStore) -> None:
        """Writing the same key replaces the value."""
        object_store.create_bucket("b")
        with object_store.open_bucket("b") as bucket:
            bucket.put("k", b"one")
            bucket.put("k", b"two")
            assert bucket.get("k") == b"two"

    def test_get_missing(self, object_store: LocalObjectStore) -> None:
        """Missing objects raise ObjectNotFound."""
        object_store.create_bucket("b")
        with object_store.open_bucket("b") as bucket, pytest.raises(ObjectNotFound):
            bucket.get("missing")

    def test_key_cannot_escape_bucket(self, object_store: LocalObjectStore) -> None:
        """Keys resolving outside the bucket directory are refused."""
        object_store.create_bucket("b")
        with object_store.open_bucket("b") as bucket, pytest.raises(PermissionDenied):
            bucket.put("../other/k", b"data")

    def test_invalid_bucket_name(self, object_store: LocalObjectStore) -> None:
        """Bucket names cannot be paths."""
        with pytest.raises(ObjectStoreError, match="Invalid bucket name"):
            object_store.create_bucket("a/b")

    def test_closed_handle(self, object_store: LocalObjectStore) -> None:
        """A closed handle refuses further use."""
        object_store.create_bucket("b")
        bucket = object_store.open_bucket("b")
        bucket.close()
        assert bucket.closed
        with pytest.raises(ObjectStoreError, match="closed"):
            bucket.put("k", b"data")

    def test_scope_caveat_enforced(self, tmp_path: Path) -> None:
        """Operations forbidden by the scope are refused."""
        scope = AccessScope(caveat=Caveat(disallow_reads=True))
        store = LocalObjectStore(tmp_path / "objects", scope)
        store.create_bucket("b")
        with store.open_bucket("b") as bucket:
            bucket.put("k", b"data")
            with pytest.raises(PermissionDenied, match="read"):
                bucket.get("k")

    def test_restricted_scope_cannot_create_bucket(self, tmp_path: Path) -> None:
        """Scopes limited to a path prefix cannot create buckets."""
        scope = AccessScope().restrict(bucket="b", path_prefix="uploads")
        store = LocalObjectStore(tmp_path / "objects", scope)
        with pytest.raises(PermissionDenied):
            store.open_or_create_bucket("b")


class TestS3ObjectStore:
    """Tests for S3ObjectStore using moto mock."""

    @pytest.fixture
    def scope(self) -> AccessScope:
        """Scope with fake credentials."""
        return AccessScope(access_key="testing", secret_key="testing", region="us-east-1")

    @pytest.fixture
    def mock_s3(self) -> None:
        """Set up moto mock for S3."""
        pytest.importorskip("moto")
        import boto3
        from moto import mock_aws

        with mock_aws():
            client = boto3.client("s3", region_name="us-east-1")
            client.create_bucket(Bucket="test-bucket")
            yield

    @pytest.fixture
    def store(self, mock_s3: None, scope: AccessScope) -> S3ObjectStore:
        """Create an S3ObjectStore instance for testing."""
        return S3ObjectStore(scope)

    def test_put_and_get(self, store: S3ObjectStore) -> None:
        """put() and get() should work correctly."""
        with store.open_bucket("test-bucket") as bucket:
            bucket.put("prefix/base/chunk", b"s3 encrypted data")
            assert bucket.get("prefix/base/chunk") == b"s3 encrypted data"

    def test_get_missing(self, store: S3ObjectStore) -> None:
        """Missing objects raise ObjectNotFound."""
        with store.open_bucket("test-bucket") as bucket, pytest.raises(ObjectNotFound):
            bucket.get("missing")

    def test_open_missing_bucket(self, store: S3ObjectStore) -> None:
        """Missing buckets raise BucketNotFound."""
        with pytest.raises(BucketNotFound):
            store.open_bucket("other-bucket")

    def test_open_or_create(self, store: S3ObjectStore) -> None:
        """Missing buckets are created once, then opened."""
        with store.open_or_create_bucket("new-bucket") as bucket:
            bucket.put("k", b"v")
            assert bucket.get("k") == b"v"

    def test_create_outside_us_east_1(self, mock_s3: None) -> None:
        """Other regions need a location constraint."""
        store = S3ObjectStore(
            AccessScope(access_key="testing", secret_key="testing", region="eu-west-1")
        )
        with store:
            store.create_bucket("eu-bucket")
            assert store.open_bucket("eu-bucket").name == "eu-bucket"

    def test_location(self, store: S3ObjectStore) -> None:
        """Location falls back to the region without an endpoint."""
        assert store.location == "S3: us-east-1"


class TestS3ErrorMapping:
    """Tests for botocore error translation."""

    @pytest.mark.parametrize("code", ["SlowDown", "ServiceUnavailable", "InternalError", "503"])
    def test_transient_put(self, code: str) -> None:
        """Throttling and server errors are retryable."""
        client = MagicMock()
        client.put_object.side_effect = client_error(code)
        with pytest.raises(TransientUploadError):
            S3Bucket("b", client).put("k", b"data")

    def test_connection_error_put(self) -> None:
        """Network failures during a write are retryable."""
        client = MagicMock()
        client.put_object.side_effect = EndpointConnectionError(endpoint_url="http://gw")
        with pytest.raises(TransientUploadError):
            S3Bucket("b", client).put("k", b"data")

    def test_access_denied_put(self) -> None:
        """AccessDenied is fatal."""
        client = MagicMock()
        client.put_object.side_effect = client_error("AccessDenied")
        with pytest.raises(PermissionDenied):
            S3Bucket("b", client).put("k", b"data")

    def test_no_such_bucket_put(self) -> None:
        """Writes to a vanished bucket raise BucketNotFound."""
        client = MagicMock()
        client.put_object.side_effect = client_error("NoSuchBucket")
        with pytest.raises(BucketNotFound):
            S3Bucket("b", client).put("k", b"data")

    def test_other_put_error(self) -> None:
        """Unknown codes are fatal store errors."""
        client = MagicMock()
        client.put_object.side_effect = client_error("InvalidArgument")
        with pytest.raises(ObjectStoreError) as exc_info:
            S3Bucket("b", client).put("k", b"data")
        assert not isinstance(exc_info.value, TransientUploadError)

    def test_head_bucket_forbidden(self) -> None:
        """403 on head_bucket is PermissionDenied."""
        store = S3ObjectStore.__new__(S3ObjectStore)
        store._scope = None
        store._client = MagicMock()
        store._client.head_bucket.side_effect = client_error("403", "HeadBucket")
        with pytest.raises(PermissionDenied):
            store.open_bucket("b")

    def test_head_bucket_unreachable(self) -> None:
        """A refused connection on head_bucket is an ObjectStoreError."""
        with pytest.raises(ObjectStoreError, match="Could not open bucket b"):
            unreachable_store().open_bucket("b")

    def test_create_bucket_unreachable(self) -> None:
        """A refused connection on create_bucket is an ObjectStoreError."""
        with pytest.raises(ObjectStoreError, match="Could not create bucket b"):
            unreachable_store().create_bucket("b")

    def test_open_or_create_unreachable(self) -> None:
        """Connection errors are not mistaken for a missing bucket."""
        store = unreachable_store()
        with pytest.raises(ObjectStoreError):
            store.open_or_create_bucket("b")
        store._client.create_bucket.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [
            EndpointConnectionError(endpoint_url=UNREACHABLE),
            ConnectionClosedError(endpoint_url=UNREACHABLE),
            ReadTimeoutError(endpoint_url=UNREACHABLE),
        ],
        ids=["endpoint", "closed", "read-timeout"],
    )
    def test_network_errors_are_transient(self, error: Exception) -> None:
        """Connection and timeout failures during a write are retryable."""
        client = MagicMock()
        client.put_object.side_effect = error
        with pytest.raises(TransientUploadError):
            S3Bucket("b", client).put("k", b"data")

    @pytest.mark.parametrize(
        "error",
        [NoCredentialsError(), ParamValidationError(report="Invalid bucket name")],
        ids=["no-credentials", "bad-parameter"],
    )
    def test_client_side_errors_not_retried(self, error: Exception) -> None:
        """Missing credentials and bad parameters fail on the first attempt."""
        client = MagicMock()
        client.put_object.side_effect = error
        bucket = S3Bucket("b", client)
        sleeps: list[float] = []

        with pytest.raises(ObjectStoreError) as exc_info:
            upload_with_retry(lambda: bucket.put("k", b"data"), sleep=sleeps.append)

        assert not isinstance(exc_info.value, TransientUploadError)
        assert client.put_object.call_count == 1
        assert sleeps == []


class TestUnreachableGateway:
    """Pipelines report an unreachable gateway as a failed transfer."""

    def test_upload_fails(self, content_store: LocalContentStore, key: bytes) -> None:
        """Uploading through a dead endpoint raises UploadFailed."""
        uploader = FileUploader(
            content_store=content_store,
            object_store=unreachable_store(),
            bucket="mirror",
            chunk_key=key,
            config=PipelineConfig(chunk_size=4, retry_backoff=0),
        )
        data = b"never leaves the machine"

        with pytest.raises(UploadFailed, match="Could not open bucket mirror"):
            uploader.upload_file(io.BytesIO(data), len(data), "note.txt")

    def test_download_fails(
        self, content_store: LocalContentStore, key: bytes, tmp_path: Path
    ) -> None:
        """Downloading through a dead endpoint raises DownloadFailed."""
        downloader = FileDownloader(object_store=unreachable_store(), chunk_key=key)
        base_address = content_store.address_of_bytes(b"anything")
        routing = RoutingPayload("mirror", "backups/", "note.txt")

        with pytest.raises(DownloadFailed, match="Could not open bucket mirror"):
            downloader.download_routing(base_address, routing, tmp_path / "out")

        assert not (tmp_path / "out" / "note.txt").exists()


class TestCreateObjectStore:
    """Tests for create_object_store factory."""

    def test_local(self, tmp_path: Path) -> None:
        """type=local builds a LocalObjectStore."""
        config = ObjectStoreConfig(type="local", store_path=str(tmp_path / "objs"))
        store = create_object_store(config, AccessScope())
        assert isinstance(store, LocalObjectStore)

    def test_s3(self) -> None:
        """type=s3 builds an S3ObjectStore on the scope's endpoint."""
        config = ObjectStoreConfig(endpoint_url="https://gateway.test")
        scope = AccessScope.from_config(config)
        with create_object_store(config, scope) as store:
            assert isinstance(store, S3ObjectStore)
            assert store.location == "S3: https://gateway.test"
